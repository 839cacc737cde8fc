"""
Common dependencies
"""

from fastapi import Request

from authgate.common.exceptions import InternalServerException
from authgate.core.providers.registry import ProviderRegistry


def get_provider_registry(request: Request) -> ProviderRegistry:
    """Provider registry installed on the app by setup_auth_providers."""
    registry = getattr(request.app.state, "provider_registry", None)
    if registry is None:
        raise InternalServerException("Auth providers are not set up")
    return registry
