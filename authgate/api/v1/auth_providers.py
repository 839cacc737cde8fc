"""
Auth provider listing endpoints.

- GET /login - providers usable for login
- GET /link - providers usable for linking an account to the current user

Both accept ``includeDisabled`` to also list disabled providers.
"""

from typing import List

from fastapi import APIRouter, Depends, Query

from authgate.common.dependencies import get_provider_registry
from authgate.core.providers.registry import ProviderRegistry
from authgate.schemas.auth_provider import AuthProviderSummary

router = APIRouter(tags=["AuthProviders"])


@router.get("/login", response_model=List[AuthProviderSummary], response_model_exclude_none=True)
async def list_login_providers(
    include_disabled: bool = Query(False, alias="includeDisabled", description="Also list disabled providers"),
    registry: ProviderRegistry = Depends(get_provider_registry),
) -> List[AuthProviderSummary]:
    """List login providers."""
    return [AuthProviderSummary(**s) for s in registry.summaries(link=False, include_disabled=include_disabled)]


@router.get("/link", response_model=List[AuthProviderSummary], response_model_exclude_none=True)
async def list_link_providers(
    include_disabled: bool = Query(False, alias="includeDisabled", description="Also list disabled providers"),
    registry: ProviderRegistry = Depends(get_provider_registry),
) -> List[AuthProviderSummary]:
    """List link providers."""
    return [AuthProviderSummary(**s) for s in registry.summaries(link=True, include_disabled=include_disabled)]
