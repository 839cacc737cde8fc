"""
Authentication strategies and scheme adapters.

Built-in adapters:
- OAuth2Adapter: OAuth 2.0 / OpenID Connect (default)
- OAuth1Adapter, OpenIDAdapter, LdapAdapter, LocalAdapter
- BasicProfileAdapter: custom basic profile schemes (ibm-connections-basic)

Usage:
    from authgate.core.providers.strategies import get_scheme_adapter

    adapter = get_scheme_adapter("ldap")
    verify = adapter.make_verify_function(descriptor, identity_service)
"""

from authgate.core.providers.strategies.adapters import (
    BasicProfileAdapter,
    LdapAdapter,
    LocalAdapter,
    OAuth1Adapter,
    OAuth2Adapter,
    OpenIDAdapter,
)
from authgate.core.providers.strategies.base import (
    AuthInfo,
    AuthStrategy,
    StrategyAdapter,
    StrategyOutcome,
    UserIdentityService,
    VerifyResult,
    make_login_callback,
)
from authgate.core.providers.strategies.factory import (
    get_scheme_adapter,
    list_supported_schemes,
    register_scheme_adapter,
)

__all__ = [
    "AuthInfo",
    "AuthStrategy",
    "StrategyAdapter",
    "StrategyOutcome",
    "UserIdentityService",
    "VerifyResult",
    "make_login_callback",
    "BasicProfileAdapter",
    "LdapAdapter",
    "LocalAdapter",
    "OAuth1Adapter",
    "OAuth2Adapter",
    "OpenIDAdapter",
    "get_scheme_adapter",
    "list_supported_schemes",
    "register_scheme_adapter",
]
