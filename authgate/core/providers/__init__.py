"""
Auth provider module.

Wires third-party identity providers (OAuth 1/2, OpenID, LDAP, local and
custom schemes) into the app's login and account-linking flows.

Module layout:
- config.py: provider option schema (ProviderOptions)
- options.py: option resolution (ResolvedProviderDescriptor)
- loader.py: provider file discovery
- registry.py: provider registry
- cookies.py: link cookie and token cookies
- strategies/: scheme adapters and strategies
- flow.py: auth/callback request handling
- component.py: wiring onto a FastAPI app
"""

from authgate.core.providers.config import ProviderOptions, parse_provider_options
from authgate.core.providers.options import (
    ComponentOptions,
    ResolvedProviderDescriptor,
    resolve_provider_options,
)
from authgate.core.providers.registry import ProviderRegistry
from authgate.core.providers.loader import load_provider_configs
from authgate.core.providers.component import AuthProviderComponent, setup_auth_providers

__all__ = [
    "ProviderOptions",
    "parse_provider_options",
    "ComponentOptions",
    "ResolvedProviderDescriptor",
    "resolve_provider_options",
    "ProviderRegistry",
    "load_provider_configs",
    "AuthProviderComponent",
    "setup_auth_providers",
]
