"""API v1 route aggregation.

Sub-routers carry no prefix; the app mounts ``api_router`` under
``settings.management_prefix``.
"""
from fastapi import APIRouter

from .auth_providers import router as auth_providers_router


ROUTERS = [
    auth_providers_router,
]


api_router = APIRouter()
for router in ROUTERS:
    api_router.include_router(router)

__all__ = ["api_router"]
