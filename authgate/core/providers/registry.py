"""
Provider registry.

In-memory store of resolved provider descriptors keyed by name. It is written
during startup only and frozen before the app starts serving, so reads need no
locking.
"""

from typing import Any, Dict, List, Optional, Tuple

from loguru import logger

from authgate.common.exceptions import ConfigurationError, DuplicateProviderError, ProviderNotFoundError
from authgate.core.providers.options import ResolvedProviderDescriptor

LOG_PREFIX = "[ProviderRegistry]"


class ProviderRegistry:
    """Add-once registry of auth providers."""

    def __init__(self) -> None:
        self._providers: Dict[str, ResolvedProviderDescriptor] = {}
        self._routes: Dict[Tuple[str, str], str] = {}
        self._frozen = False

    def add(self, descriptor: ResolvedProviderDescriptor) -> None:
        """
        Register a descriptor.

        Raises:
            DuplicateProviderError: Name already registered
            ConfigurationError: Registry frozen, or a route collides with another provider
        """
        if self._frozen:
            raise ConfigurationError(
                f'provider registry is frozen, can not add "{descriptor.name}"', provider=descriptor.name
            )
        if descriptor.name in self._providers:
            raise DuplicateProviderError(descriptor.name)

        # Disabled providers get no routes installed
        routes = [] if descriptor.disabled else descriptor.routes()
        for route in routes:
            owner = self._routes.get(route)
            if owner is not None:
                method, path = route
                raise ConfigurationError(
                    f'route {method} {path} is already used by provider "{owner}"', provider=descriptor.name
                )

        self._providers[descriptor.name] = descriptor
        for route in routes:
            self._routes[route] = descriptor.name
        logger.debug(f"{LOG_PREFIX} Registered provider: {descriptor.name}")

    def get(self, name: str) -> ResolvedProviderDescriptor:
        descriptor = self._providers.get(name)
        if descriptor is None:
            raise ProviderNotFoundError(name)
        return descriptor

    def find(self, name: str) -> Optional[ResolvedProviderDescriptor]:
        return self._providers.get(name)

    def list(self) -> List[ResolvedProviderDescriptor]:
        return list(self._providers.values())

    def login_providers(self, include_disabled: bool = False) -> List[ResolvedProviderDescriptor]:
        """Providers that support login requests."""
        return [d for d in self._providers.values() if not d.link and (include_disabled or not d.disabled)]

    def link_providers(self, include_disabled: bool = False) -> List[ResolvedProviderDescriptor]:
        """Providers that support linking user accounts."""
        return [d for d in self._providers.values() if d.link and (include_disabled or not d.disabled)]

    def summaries(self, link: bool, include_disabled: bool = False) -> List[Dict[str, Any]]:
        """Listing projection of the login (link=False) or link providers."""
        providers = self.link_providers(include_disabled) if link else self.login_providers(include_disabled)
        return [d.summary() for d in providers]

    def freeze(self) -> None:
        """End the write phase."""
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __contains__(self, name: object) -> bool:
        return name in self._providers

    def __len__(self) -> int:
        return len(self._providers)
