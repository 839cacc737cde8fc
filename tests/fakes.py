"""
Test doubles: identity service, token store and strategies.

Strategies here are loaded by dotted path (``module: fakes``) like any
external strategy module.
"""

from typing import Any, Dict, List, Optional, Tuple

from fastapi import Request
from fastapi.responses import RedirectResponse

from authgate.core.providers.strategies.base import AuthInfo, AuthStrategy, StrategyOutcome
from authgate.core.settings import Settings
from authgate.core.tokens import AccessToken

IDP_AUTHORIZE_URL = "https://idp.example.com/authorize"
TOKEN_TTL = 1209600
COOKIE_SECRET = "test-cookie-secret"
SESSION_SECRET = "test-session-secret"


def make_settings(**overrides: Any) -> Settings:
    values: Dict[str, Any] = {
        "environment": "test",
        "log_dir": None,
        "log_level": "WARNING",
        "signed_cookie_secret": COOKIE_SECRET,
        "providers_dir": None,
    }
    values.update(overrides)
    return Settings(**values)


class FakeIdentityService:
    """Creates one user per profile id. Profile id "nobody" matches no user. "crash" raises."""

    def __init__(self) -> None:
        self.calls: List[Dict[str, Any]] = []

    async def login(
        self,
        provider_name: str,
        auth_scheme: Optional[str],
        profile: Dict[str, Any],
        credentials: Dict[str, Any],
        options: Dict[str, Any],
    ) -> Tuple[Any, Any, Optional[AccessToken]]:
        self.calls.append(
            {
                "provider_name": provider_name,
                "auth_scheme": auth_scheme,
                "profile": profile,
                "credentials": credentials,
                "options": options,
            }
        )
        if profile.get("id") == "nobody":
            return None, None, None
        if profile.get("id") == "crash":
            raise RuntimeError("identity store unavailable")
        user = {"id": f"u-{profile['id']}"}
        identity = {"provider": provider_name, "externalId": profile["id"]}
        token = AccessToken(id=f"tok-{profile['id']}", ttl=TOKEN_TTL, user_id=user["id"])
        return user, identity, token


class FakeTokenStore:
    def __init__(self, tokens: Optional[Dict[str, AccessToken]] = None):
        self.tokens: Dict[str, AccessToken] = dict(tokens or {})

    async def find_by_id(self, token_id: str) -> Optional[AccessToken]:
        return self.tokens.get(token_id)


def _params(request: Request) -> Dict[str, Any]:
    params: Dict[str, Any] = dict(request.query_params)
    body = getattr(request.state, "body", None)
    if isinstance(body, dict):
        params.update(body)
    return params


class Strategy(AuthStrategy):
    """
    Redirects to the identity provider without ``code``; with ``code`` the
    code is taken as the external profile id. A ``nonce`` param is consumed
    like a single use state cookie.
    """

    async def authenticate(self, request: Request, options: Dict[str, Any]) -> StrategyOutcome:
        params = _params(request)
        if params.get("error"):
            return StrategyOutcome()
        code = params.get("code")
        if not code:
            return StrategyOutcome(response=RedirectResponse(IDP_AUTHORIZE_URL, status_code=302))
        expired = ((f"fake_nonce_{self.name}", "/"),) if params.get("nonce") else ()
        result = await self.verify(request, {"id": code}, "provider-access-token", "provider-refresh-token")
        return StrategyOutcome.from_verify(result, expired_cookies=expired)


class BrokenStrategy(AuthStrategy):
    def __init__(self, name: str, options: Dict[str, Any], verify: Any):
        raise ValueError("missing clientID")

    async def authenticate(self, request: Request, options: Dict[str, Any]) -> StrategyOutcome:
        return StrategyOutcome()


class NotAStrategy:
    pass


def tagging_login_callback(done: Any) -> Any:
    """Login callback factory that tags the identity."""

    def login_callback(user: Any, identity: Any, token: Any = None) -> Any:
        return done(user, AuthInfo(identity={"tagged": True, **(identity or {})}, access_token=token))

    return login_callback
