"""
Auth provider component.

Wires configured providers onto a FastAPI app:
1. load provider definitions (explicit mapping or providers directory)
2. resolve each provider's options
3. build the scheme adapter's verify function and the strategy
4. register the descriptor and install the flow routes

Configuration errors skip the affected provider (or abort the boot when
``strict_provider_setup`` is enabled). The registry is frozen afterwards.
"""

from typing import Any, Mapping, Optional

from fastapi import FastAPI
from loguru import logger

from authgate.common.exceptions import ConfigurationError, DuplicateProviderError
from authgate.core.security import CookieSigner
from authgate.core.providers.flow import ProviderFlow
from authgate.core.providers.loader import load_provider_configs
from authgate.core.providers.options import ComponentOptions, ResolvedProviderDescriptor, resolve_provider_options
from authgate.core.providers.registry import ProviderRegistry
from authgate.core.providers.strategies.base import UserIdentityService
from authgate.core.providers.strategies.factory import (
    get_scheme_adapter,
    load_login_callback_factory,
    load_strategy_class,
    strategy_options,
)
from authgate.core.session import SessionManager, StarletteSessionManager
from authgate.core.settings import Settings
from authgate.core.settings import settings as default_settings
from authgate.core.tokens import AccessTokenResolver, AccessTokenStore

LOG_PREFIX = "[AuthProviders]"


class AuthProviderComponent:
    """Sets up auth providers on an app."""

    def __init__(
        self,
        app: FastAPI,
        *,
        identity_service: UserIdentityService,
        token_store: Optional[AccessTokenStore] = None,
        settings: Optional[Settings] = None,
        registry: Optional[ProviderRegistry] = None,
        session_manager: Optional[SessionManager] = None,
    ):
        self.app = app
        self.settings = settings or default_settings
        self.identity_service = identity_service
        self.registry = registry if registry is not None else ProviderRegistry()
        self.session_manager = session_manager or StarletteSessionManager()
        self.component_options = ComponentOptions.from_settings(self.settings)
        self.signer = CookieSigner(self.settings.signed_cookie_secret) if self.settings.signed_cookie_secret else None
        self.token_resolver = AccessTokenResolver(token_store, self.signer)

        if self.settings.enable_session_support and not self.settings.session_secret:
            logger.warning(f"{LOG_PREFIX} Session support is enabled but no session secret is configured")

    def load_providers(self) -> Mapping[str, Any]:
        if not self.settings.providers_dir:
            logger.warning(f"{LOG_PREFIX} No providers directory configured, no auth providers loaded")
            return {}
        return load_provider_configs(self.settings.providers_dir, self.settings.environment)

    def setup(self, providers: Optional[Mapping[str, Any]] = None) -> ProviderRegistry:
        """
        Register all providers and install their routes.

        Args:
            providers: Mapping of provider name to raw options; loaded from the
                providers directory when None

        Returns:
            The frozen provider registry (also stored on ``app.state.provider_registry``)

        Raises:
            DuplicateProviderError: A provider name is registered twice
            ConfigurationError: Any configuration error when strict setup is enabled
        """
        if providers is None:
            providers = self.load_providers()

        for name, raw_options in providers.items():
            try:
                self.setup_provider(name, raw_options)
            except DuplicateProviderError:
                raise
            except ConfigurationError as e:
                if self.settings.strict_provider_setup:
                    raise
                logger.error(f"{LOG_PREFIX} Skipping auth provider '{name}': {e}")

        self.registry.freeze()
        self.app.state.provider_registry = self.registry
        logger.info(
            f"{LOG_PREFIX} {len(self.registry)} auth providers registered "
            f"({len(self.registry.login_providers())} login, {len(self.registry.link_providers())} link)"
        )
        return self.registry

    def setup_provider(self, name: str, raw_options: Any) -> ResolvedProviderDescriptor:
        """Resolve, register and (unless disabled) install one provider."""
        descriptor = resolve_provider_options(name, raw_options, self.component_options)

        # Disabled providers are listed but get no routes
        if descriptor.disabled:
            self.registry.add(descriptor)
            logger.debug(f"{LOG_PREFIX} Ignoring disabled auth provider {name}")
            return descriptor

        flow = self.build_flow(descriptor)
        self.registry.add(descriptor)
        flow.install(self.app)
        logger.info(f"{LOG_PREFIX} Auth provider ready: {name} (scheme={descriptor.auth_scheme or 'oauth 2.0'})")
        return descriptor

    def build_flow(self, descriptor: ResolvedProviderDescriptor) -> ProviderFlow:
        """
        Create the verify function, strategy and flow of a provider.

        Raises:
            ConfigurationError: Unknown scheme, missing module/strategy, missing cookie secret
        """
        name = descriptor.name
        if descriptor.link and self.signer is None:
            raise ConfigurationError("link providers require signed_cookie_secret to be set", provider=name)

        try:
            adapter = get_scheme_adapter(descriptor.auth_scheme)
        except ConfigurationError as e:
            raise ConfigurationError(str(e), provider=name) from e

        verify = adapter.make_verify_function(
            descriptor,
            self.identity_service,
            load_login_callback_factory(descriptor),
        )

        strategy_class = load_strategy_class(descriptor)
        try:
            strategy = strategy_class(name, strategy_options(descriptor), verify)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"failed to create strategy: {e}", provider=name) from e

        return ProviderFlow(
            descriptor,
            strategy,
            token_resolver=self.token_resolver,
            session_manager=self.session_manager,
            signer=self.signer,
            cookie_secure=self.settings.cookie_secure_effective,
            cookie_samesite=self.settings.cookie_samesite,
        )


def setup_auth_providers(
    app: FastAPI,
    *,
    identity_service: UserIdentityService,
    token_store: Optional[AccessTokenStore] = None,
    providers: Optional[Mapping[str, Any]] = None,
    settings: Optional[Settings] = None,
    registry: Optional[ProviderRegistry] = None,
    session_manager: Optional[SessionManager] = None,
) -> ProviderRegistry:
    """Set up auth providers on ``app``; see AuthProviderComponent.setup."""
    component = AuthProviderComponent(
        app,
        identity_service=identity_service,
        token_store=token_store,
        settings=settings,
        registry=registry,
        session_manager=session_manager,
    )
    return component.setup(providers)
