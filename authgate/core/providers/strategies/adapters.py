"""
Scheme adapters.

Built-in schemes:
- OAuth2Adapter: OAuth 2.0 / OpenID Connect (also the default when no scheme is set)
- OAuth1Adapter: OAuth 1.0
- OpenIDAdapter: OpenID 2.0
- LdapAdapter: LDAP bind
- LocalAdapter: username/password

Custom schemes:
- BasicProfileAdapter: basic profile schemes such as "ibm-connections-basic",
  whose strategies pass the profile plus the Set-Cookie header and the complete
  request URI of the profile lookup
"""

from typing import Any, Dict, Optional

from authgate.core.providers.strategies.base import StrategyAdapter


class OAuth2Adapter(StrategyAdapter):
    scheme = "oauth 2.0"

    def credentials(
        self,
        access_token: Optional[str] = None,
        refresh_token: Optional[str] = None,
        *args: Any,
        **kwargs: Any,
    ) -> Dict[str, Any]:
        return {"accessToken": access_token, "refreshToken": refresh_token}


class OAuth1Adapter(StrategyAdapter):
    scheme = "oauth 1.0"

    def credentials(
        self,
        token: Optional[str] = None,
        token_secret: Optional[str] = None,
        *args: Any,
        **kwargs: Any,
    ) -> Dict[str, Any]:
        return {"token": token, "tokenSecret": token_secret}


class OpenIDAdapter(StrategyAdapter):
    scheme = "openid"

    def credentials(self, identifier: Optional[str] = None, *args: Any, **kwargs: Any) -> Dict[str, Any]:
        return {"identifier": identifier}


class LdapAdapter(StrategyAdapter):
    scheme = "ldap"

    def credentials(self, *args: Any, **kwargs: Any) -> Dict[str, Any]:
        return {}


class LocalAdapter(StrategyAdapter):
    scheme = "local"

    def credentials(self, password: Optional[str] = None, *args: Any, **kwargs: Any) -> Dict[str, Any]:
        return {"password": password}


class BasicProfileAdapter(StrategyAdapter):
    """Profile-only schemes; the extra strategy arguments carry no credentials."""

    scheme = "basic-profile"
    default_login_options: Dict[str, Any] = {"autoLogin": True, "emailOptional": True}

    def credentials(
        self,
        set_cookie_header: Any = None,
        complete_request_uri: Optional[str] = None,
        *args: Any,
        **kwargs: Any,
    ) -> Dict[str, Any]:
        return {}
