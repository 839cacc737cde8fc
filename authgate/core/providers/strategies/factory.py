"""
Scheme adapter factory.

Resolves an auth scheme name to its adapter, and a provider's configured
module/strategy pair to the strategy class.

Usage:
    from authgate.core.providers.strategies.factory import get_scheme_adapter

    adapter = get_scheme_adapter(descriptor.auth_scheme)  # None -> OAuth 2.0
    verify = adapter.make_verify_function(descriptor, identity_service)
"""

import importlib
from typing import Any, Callable, Dict, Optional, Type

from loguru import logger

from authgate.common.exceptions import ConfigurationError
from authgate.core.providers.config import BUILTIN_AUTH_SCHEMES
from authgate.core.providers.options import ResolvedProviderDescriptor
from authgate.core.providers.strategies.adapters import (
    BasicProfileAdapter,
    LdapAdapter,
    LocalAdapter,
    OAuth1Adapter,
    OAuth2Adapter,
    OpenIDAdapter,
)
from authgate.core.providers.strategies.base import (
    AuthStrategy,
    LoginCallbackFactory,
    StrategyAdapter,
    make_login_callback,
)

LOG_PREFIX = "[StrategyFactory]"

DEFAULT_STRATEGY_MODULE = "authgate.core.providers.strategies.oauth2"

# Built-in scheme adapters
_BUILTIN_ADAPTERS: Dict[str, Type[StrategyAdapter]] = {
    "ldap": LdapAdapter,
    "local": LocalAdapter,
    "oauth": OAuth1Adapter,
    "oauth1": OAuth1Adapter,
    "oauth 1.0": OAuth1Adapter,
    "openid": OpenIDAdapter,
    "openid connect": OAuth2Adapter,
    "oauth 2.0": OAuth2Adapter,
}

# Custom scheme adapters
# Register new schemes here
_CUSTOM_ADAPTERS: Dict[str, Type[StrategyAdapter]] = {
    "ibm-connections-basic": BasicProfileAdapter,
}

# Adapter instance cache
_adapter_instances: Dict[str, StrategyAdapter] = {}


def is_builtin_scheme(scheme: Optional[str]) -> bool:
    return scheme is None or scheme in BUILTIN_AUTH_SCHEMES


def get_scheme_adapter(scheme: Optional[str]) -> StrategyAdapter:
    """
    Get the adapter for an auth scheme.

    Args:
        scheme: Lower-cased scheme name; None means OAuth 2.0

    Returns:
        StrategyAdapter: Adapter instance

    Raises:
        ConfigurationError: Unknown custom scheme
    """
    key = scheme or "oauth 2.0"
    if key in _adapter_instances:
        return _adapter_instances[key]

    if is_builtin_scheme(scheme):
        adapter_class = _BUILTIN_ADAPTERS[key]
    else:
        adapter_class = _CUSTOM_ADAPTERS.get(key)
        if adapter_class is None:
            raise ConfigurationError(f'no adapter registered for auth scheme "{scheme}"')

    adapter = adapter_class()
    _adapter_instances[key] = adapter
    logger.debug(f"{LOG_PREFIX} Created adapter for scheme: {key}")
    return adapter


def register_scheme_adapter(scheme: str, adapter_class: Type[StrategyAdapter]) -> None:
    """
    Register an adapter for a custom auth scheme.

    Example:
        register_scheme_adapter("corporate-sso", CorporateSSOAdapter)
    """
    key = scheme.strip().lower()
    if key in BUILTIN_AUTH_SCHEMES:
        raise ValueError(f'"{scheme}" is a built-in auth scheme')
    _CUSTOM_ADAPTERS[key] = adapter_class
    _adapter_instances.pop(key, None)
    logger.info(f"{LOG_PREFIX} Registered scheme adapter: {key}")


def unregister_scheme_adapter(scheme: str) -> None:
    key = scheme.strip().lower()
    _CUSTOM_ADAPTERS.pop(key, None)
    _adapter_instances.pop(key, None)


def list_supported_schemes() -> list[str]:
    return list(_BUILTIN_ADAPTERS.keys()) + list(_CUSTOM_ADAPTERS.keys())


# ==================== Dynamic loading ====================


def _import_attribute(module_path: str, attribute: str, provider: str) -> Any:
    try:
        module = importlib.import_module(module_path)
    except ImportError as e:
        raise ConfigurationError(f'strategy module "{module_path}" not found ({e})', provider=provider) from e
    try:
        return getattr(module, attribute)
    except AttributeError as e:
        raise ConfigurationError(
            f'module "{module_path}" has no attribute "{attribute}"', provider=provider
        ) from e


def load_strategy_class(descriptor: ResolvedProviderDescriptor) -> Type[AuthStrategy]:
    """
    Load the strategy class configured for a provider.

    Falls back to the bundled OAuth2 strategy for OAuth 2.0 providers without a module.

    Raises:
        ConfigurationError: Module or class not found, or not an AuthStrategy
    """
    module_path = descriptor.module
    if not module_path:
        if descriptor.auth_scheme not in (None, "oauth 2.0", "openid connect"):
            raise ConfigurationError('"module" is required for this auth scheme', provider=descriptor.name)
        module_path = DEFAULT_STRATEGY_MODULE

    strategy_class = _import_attribute(module_path, descriptor.strategy or "Strategy", descriptor.name)
    if not (isinstance(strategy_class, type) and issubclass(strategy_class, AuthStrategy)):
        raise ConfigurationError(
            f'"{module_path}.{descriptor.strategy}" is not an AuthStrategy', provider=descriptor.name
        )
    return strategy_class


def load_login_callback_factory(descriptor: ResolvedProviderDescriptor) -> LoginCallbackFactory:
    """The provider's login callback factory (dotted path), or the default one."""
    if not descriptor.make_login_callback:
        return make_login_callback

    module_path, _, attribute = descriptor.make_login_callback.rpartition(".")
    if not module_path:
        raise ConfigurationError(
            f'"makeLoginCallback" must be a dotted path, got "{descriptor.make_login_callback}"',
            provider=descriptor.name,
        )
    factory: Callable[..., Any] = _import_attribute(module_path, attribute, descriptor.name)
    if not callable(factory):
        raise ConfigurationError(f'"{descriptor.make_login_callback}" is not callable', provider=descriptor.name)
    return factory


def strategy_options(descriptor: ResolvedProviderDescriptor) -> Dict[str, Any]:
    """Options handed to the strategy constructor."""
    options: Dict[str, Any] = {
        "authInfo": True,
        "passReqToCallback": True,
        **descriptor.strategy_options,
        "callbackURL": descriptor.callback_url,
        "session": descriptor.session,
    }
    if descriptor.success_redirect_url:
        options["successRedirect"] = descriptor.success_redirect_url
    if descriptor.failure_redirect_url:
        options["failureRedirect"] = descriptor.failure_redirect_url
    return options
