"""
Standard OAuth2/OIDC authorization code strategy.

Default strategy for OAuth 2.0 providers that configure no ``module``:
1. No ``code`` in the request: redirect to the provider's authorize URL
   (state kept in a signed, short-lived cookie)
2. ``code`` present: check state, exchange code for tokens, fetch userinfo,
   hand the mapped profile to the verify function
"""

import base64
import secrets
from typing import Any, Dict, Optional, cast
from urllib.parse import urlsplit

import httpx
from fastapi import Request
from fastapi.responses import RedirectResponse
from itsdangerous import BadSignature, SignatureExpired, TimestampSigner
from loguru import logger

from authgate.core.providers.options import append_query
from authgate.core.providers.strategies.base import AuthStrategy, StrategyOutcome, VerifyFunction

LOG_PREFIX = "[OAuth2Strategy]"

STATE_COOKIE_PREFIX = "oauth2_state_"
STATE_MAX_AGE_SECONDS = 600
HTTP_TIMEOUT_SECONDS = 10.0

DEFAULT_USER_MAPPING = {
    "id": "sub",
    "email": "email",
    "name": "name",
    "avatar": "picture",
}

# ==================== Built-in Provider Templates ====================
# Common OAuth provider defaults
# Users only need clientID/clientSecret

PROVIDER_TEMPLATES: Dict[str, Dict[str, Any]] = {
    "github": {
        "authorize_url": "https://github.com/login/oauth/authorize",
        "token_url": "https://github.com/login/oauth/access_token",
        "userinfo_url": "https://api.github.com/user",
        "scope": "read:user user:email",
        "user_mapping": {
            "id": "id",
            "email": "email",
            "name": "name",
            "avatar": "avatar_url",
        },
        "token_endpoint_auth_method": "client_secret_post",
        "userinfo_headers": {"Accept": "application/vnd.github+json"},
    },
    "google": {
        "authorize_url": "https://accounts.google.com/o/oauth2/v2/auth",
        "token_url": "https://oauth2.googleapis.com/token",
        "userinfo_url": "https://openidconnect.googleapis.com/v1/userinfo",
        "scope": "openid email profile",
    },
    "microsoft": {
        # {tenant} placeholder; default "common" (all accounts)
        "authorize_url": "https://login.microsoftonline.com/{tenant}/oauth2/v2.0/authorize",
        "token_url": "https://login.microsoftonline.com/{tenant}/oauth2/v2.0/token",
        "userinfo_url": "https://graph.microsoft.com/oidc/userinfo",
        "scope": "openid email profile",
        "default_tenant": "common",
    },
    "gitlab": {
        "authorize_url": "https://gitlab.com/oauth/authorize",
        "token_url": "https://gitlab.com/oauth/token",
        "userinfo_url": "https://gitlab.com/api/v4/user",
        "scope": "read_user",
        "user_mapping": {
            "id": "id",
            "email": "email",
            "name": "name",
            "avatar": "avatar_url",
        },
    },
}

# Passport-style option names accepted next to the snake_case ones
_OPTION_ALIASES = {
    "client_id": ("clientID", "clientId", "client_id"),
    "client_secret": ("clientSecret", "client_secret"),
    "authorize_url": ("authorizationURL", "authorizeURL", "authorize_url"),
    "token_url": ("tokenURL", "token_url"),
    "userinfo_url": ("userProfileURL", "userinfoURL", "userinfo_url"),
    "scope": ("scope",),
    "user_mapping": ("userMapping", "user_mapping"),
    "token_endpoint_auth_method": ("tokenEndpointAuthMethod", "token_endpoint_auth_method"),
    "userinfo_headers": ("userinfoHeaders", "userinfo_headers"),
    "tenant": ("tenant",),
}


class OAuth2Strategy(AuthStrategy):
    """Standard OAuth2/OIDC authorization code strategy."""

    def __init__(self, name: str, options: Dict[str, Any], verify: VerifyFunction):
        super().__init__(name, options, verify)

        template_name = options.get("template")
        template = PROVIDER_TEMPLATES.get(template_name, {}) if template_name else {}
        config: Dict[str, Any] = dict(template)
        for key, aliases in _OPTION_ALIASES.items():
            for alias in aliases:
                if options.get(alias) is not None:
                    config[key] = options[alias]
                    break

        tenant = config.get("tenant", config.get("default_tenant", "common"))
        self.client_id: str = str(config.get("client_id") or "").strip()
        self.client_secret: str = str(config.get("client_secret") or "").strip()
        self.authorize_url: str = config.get("authorize_url", "").replace("{tenant}", tenant)
        self.token_url: str = config.get("token_url", "").replace("{tenant}", tenant)
        self.userinfo_url: Optional[str] = config.get("userinfo_url")
        self.scope: str = config.get("scope", "openid email profile")
        self.user_mapping: Dict[str, str] = config.get("user_mapping") or DEFAULT_USER_MAPPING
        self.token_endpoint_auth_method: str = config.get("token_endpoint_auth_method", "client_secret_basic")
        self.userinfo_headers: Dict[str, str] = config.get("userinfo_headers") or {}
        self.callback_url: str = options.get("callbackURL", "")

        if not self.client_id or not self.client_secret:
            raise ValueError(f"OAuth2 provider '{name}' is missing clientID or clientSecret")
        if not self.authorize_url or not self.token_url:
            raise ValueError(f"OAuth2 provider '{name}' is missing authorizationURL or tokenURL")

        self._state_signer = TimestampSigner(self.client_secret, salt=f"authgate.oauth2.state.{name}")

    @property
    def state_cookie_name(self) -> str:
        return f"{STATE_COOKIE_PREFIX}{self.name}"

    @property
    def state_cookie_path(self) -> str:
        return urlsplit(self.callback_url).path or "/"

    async def authenticate(self, request: Request, options: Dict[str, Any]) -> StrategyOutcome:
        """
        OAuth2 flow: redirect, then code → token → userinfo → verify
        """
        params = _request_params(request)

        # Handle user denial / provider errors
        if params.get("error"):
            logger.warning(f"{LOG_PREFIX} {self.name}: {params.get('error')} - {params.get('error_description')}")
            return StrategyOutcome()

        code = params.get("code")
        if not code:
            return self._redirect_to_provider()

        # The state is single use whatever the outcome
        consumed = ((self.state_cookie_name, self.state_cookie_path),)
        if not self._state_matches(request, params.get("state")):
            logger.warning(f"{LOG_PREFIX} {self.name}: invalid or expired state")
            return StrategyOutcome(expired_cookies=consumed)

        tokens = await self._exchange_code_for_tokens(code)
        access_token = tokens.get("access_token") if tokens else None
        if not access_token:
            return StrategyOutcome(expired_cookies=consumed)

        raw_info = await self._fetch_userinfo(access_token)
        if raw_info is None:
            return StrategyOutcome(expired_cookies=consumed)

        profile = self.parse_profile(raw_info)
        result = await self.verify(request, profile, access_token, tokens.get("refresh_token"))
        return StrategyOutcome.from_verify(result, expired_cookies=consumed)

    # ==================== Steps ====================

    def _redirect_to_provider(self) -> StrategyOutcome:
        state = secrets.token_urlsafe(32)
        url = append_query(
            self.authorize_url,
            {
                "response_type": "code",
                "client_id": self.client_id,
                "redirect_uri": self.callback_url,
                "scope": self.scope,
                "state": state,
            },
        )
        response = RedirectResponse(url=url, status_code=302)
        response.set_cookie(
            key=self.state_cookie_name,
            value=self._state_signer.sign(state).decode("utf-8"),
            max_age=STATE_MAX_AGE_SECONDS,
            path=self.state_cookie_path,
            httponly=True,
            samesite="lax",
        )
        logger.info(f"{LOG_PREFIX} Redirecting to {self.name} authorization")
        return StrategyOutcome(response=response)

    def _state_matches(self, request: Request, state: Optional[str]) -> bool:
        cookie = request.cookies.get(self.state_cookie_name)
        if not state or not cookie:
            return False
        try:
            expected = self._state_signer.unsign(cookie, max_age=STATE_MAX_AGE_SECONDS).decode("utf-8")
        except (BadSignature, SignatureExpired):
            return False
        return secrets.compare_digest(expected, state)

    async def _exchange_code_for_tokens(self, code: str) -> Optional[Dict[str, Any]]:
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.callback_url,
        }
        headers: Dict[str, str] = {"Accept": "application/json"}

        if self.token_endpoint_auth_method == "client_secret_post":
            data["client_id"] = self.client_id
            data["client_secret"] = self.client_secret
        else:
            # Default to Basic Auth (client_secret_basic)
            credentials = base64.b64encode(f"{self.client_id}:{self.client_secret}".encode()).decode()
            headers["Authorization"] = f"Basic {credentials}"

        async with httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS) as client:
            response = await client.post(self.token_url, data=data, headers=headers)

        if response.status_code != 200:
            logger.error(f"{LOG_PREFIX} Token exchange failed: {response.status_code} - {response.text}")
            return None

        logger.info(f"{LOG_PREFIX} Token exchange successful for {self.name}")
        return cast(Dict[str, Any], response.json())

    async def _fetch_userinfo(self, access_token: str) -> Optional[Dict[str, Any]]:
        if not self.userinfo_url:
            logger.error(f"{LOG_PREFIX} No userinfo URL configured for {self.name}")
            return None

        headers = {
            "Authorization": f"Bearer {access_token}",
            **self.userinfo_headers,
        }
        async with httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS) as client:
            response = await client.get(self.userinfo_url, headers=headers)

        if response.status_code != 200:
            logger.error(f"{LOG_PREFIX} Userinfo fetch failed: {response.status_code} - {response.text}")
            return None

        logger.info(f"{LOG_PREFIX} Userinfo fetched for {self.name}")
        return cast(Dict[str, Any], response.json())

    def parse_profile(self, raw_info: Dict[str, Any]) -> Dict[str, Any]:
        """Map raw userinfo to a profile using ``user_mapping``."""
        mapping = self.user_mapping
        return {
            "provider": self.name,
            "id": str(raw_info.get(mapping.get("id", "sub"), "")),
            "email": raw_info.get(mapping.get("email", "email")),
            "name": raw_info.get(mapping.get("name", "name"), ""),
            "avatar": raw_info.get(mapping.get("avatar", "picture")),
            "raw": raw_info,
        }


def _request_params(request: Request) -> Dict[str, Any]:
    """Query parameters, overlaid with a parsed form/JSON body when present."""
    params: Dict[str, Any] = dict(request.query_params)
    body = getattr(request.state, "body", None)
    if isinstance(body, dict):
        params.update(body)
    return params


# Attribute looked up when a provider configures only ``module``
Strategy = OAuth2Strategy
