"""
Base classes for authentication strategies and scheme adapters.

- AuthStrategy: external verification mechanism (OAuth2 client, LDAP bind...).
  It either answers with a response (usually the redirect to the identity
  provider) or with the result of the verify function.
- StrategyAdapter: per auth scheme, builds the verify function that bridges a
  strategy's raw result (profile + scheme specific args) to the identity
  service's ``login``.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, Tuple

from fastapi import Request, Response
from loguru import logger

from authgate.core.providers.options import ResolvedProviderDescriptor
from authgate.core.tokens import AccessToken, get_request_access_token

LOG_PREFIX = "[AuthStrategy]"


@dataclass(frozen=True)
class AuthInfo:
    """Metadata produced by a successful verification."""

    identity: Any = None
    access_token: Optional[AccessToken] = None


@dataclass(frozen=True)
class VerifyResult:
    """Result of a verify function. ``user`` is None when nothing matched."""

    user: Any = None
    info: Optional[AuthInfo] = None


@dataclass(frozen=True)
class StrategyOutcome:
    """
    What a strategy produced for a request.

    ``response`` is set when the strategy answers the request itself (e.g. the
    redirect to the identity provider); otherwise ``user``/``info`` carry the
    verification result.
    """

    user: Any = None
    info: Optional[AuthInfo] = None
    response: Optional[Response] = None
    # (name, path) of strategy cookies to delete on whatever response ends the request
    expired_cookies: Tuple[Tuple[str, str], ...] = ()

    @classmethod
    def from_verify(cls, result: VerifyResult, expired_cookies: Tuple[Tuple[str, str], ...] = ()) -> "StrategyOutcome":
        return cls(user=result.user, info=result.info, expired_cookies=expired_cookies)


VerifyFunction = Callable[..., Awaitable[VerifyResult]]
LoginCallback = Callable[[Any, Any, Optional[AccessToken]], VerifyResult]
LoginCallbackFactory = Callable[[Callable[[Any, AuthInfo], VerifyResult]], LoginCallback]


class UserIdentityService(Protocol):
    """Identity persistence collaborator."""

    async def login(
        self,
        provider_name: str,
        auth_scheme: Optional[str],
        profile: Dict[str, Any],
        credentials: Dict[str, Any],
        options: Dict[str, Any],
    ) -> Tuple[Any, Any, Optional[AccessToken]]:
        """Find or create the user for ``profile``; returns (user, identity, access_token)."""
        ...


class AuthStrategy(ABC):
    """Base class for external authentication strategies."""

    def __init__(self, name: str, options: Dict[str, Any], verify: VerifyFunction):
        self.name = name
        self.options = options
        self.verify = verify

    @abstractmethod
    async def authenticate(self, request: Request, options: Dict[str, Any]) -> StrategyOutcome:
        """Authenticate the request (login flows)."""

    async def authorize(self, request: Request, options: Dict[str, Any]) -> StrategyOutcome:
        """Authorize a third-party account for an authenticated caller (link flows)."""
        return await self.authenticate(request, options)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name}>"


def make_login_callback(done: Callable[[Any, AuthInfo], VerifyResult]) -> LoginCallback:
    """
    Default login callback factory.

    Packages ``identity`` and ``token`` into an AuthInfo and hands it to ``done``.
    """

    def login_callback(user: Any, identity: Any, token: Optional[AccessToken] = None) -> VerifyResult:
        return done(user, AuthInfo(identity=identity, access_token=token or None))

    return login_callback


class StrategyAdapter(ABC):
    """
    Builds verify functions for one auth scheme.

    Subclasses turn the scheme specific verify arguments into the credentials
    handed to the identity service.
    """

    # Scheme identifier (override in subclasses)
    scheme: str = "base"
    # Login options applied unless the provider overrides them
    default_login_options: Dict[str, Any] = {"autoLogin": True}

    @abstractmethod
    def credentials(self, *args: Any, **kwargs: Any) -> Dict[str, Any]:
        """Map scheme specific verify arguments to credentials."""

    def login_options(self, descriptor: ResolvedProviderDescriptor) -> Dict[str, Any]:
        return {
            **self.default_login_options,
            **descriptor.strategy_options,
            "provider": descriptor.name,
            "authScheme": descriptor.auth_scheme,
            "link": descriptor.link,
        }

    def make_verify_function(
        self,
        descriptor: ResolvedProviderDescriptor,
        identity_service: UserIdentityService,
        login_callback_factory: LoginCallbackFactory = make_login_callback,
    ) -> VerifyFunction:
        """
        Create the verify function for a provider.

        Args:
            descriptor: Resolved provider options
            identity_service: Identity persistence
            login_callback_factory: Builds the callback that packages login results

        Returns:
            async verify(request, profile, *scheme_args) -> VerifyResult
        """
        base_options = self.login_options(descriptor)
        login_callback = login_callback_factory(VerifyResult)

        async def verify(request: Request, profile: Optional[Dict[str, Any]], *args: Any, **kwargs: Any) -> VerifyResult:
            # No identity: not an error, the flow ends without a user
            if not profile:
                return VerifyResult()

            options = dict(base_options)
            if descriptor.link:
                token = get_request_access_token(request)
                if token is not None:
                    options["linkUserId"] = token.user_id

            user, identity, token = await identity_service.login(
                descriptor.name,
                descriptor.auth_scheme,
                profile,
                self.credentials(*args, **kwargs),
                options,
            )
            logger.debug(f"{LOG_PREFIX} Identity login for provider {descriptor.name}: user={'yes' if user else 'no'}")
            return login_callback(user, identity, token)

        return verify

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} scheme={self.scheme}>"
