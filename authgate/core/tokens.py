"""
Access token resolution.

Maps an access token id carried by the request (header, query, cookie or the
signed link cookie) to an AccessToken via the external token store, and
exposes it as ``request.state.access_token``.
"""

from dataclasses import dataclass
from typing import Any, Iterable, Optional, Protocol, runtime_checkable

from fastapi import Request
from loguru import logger

from authgate.core.security import ACCESS_TOKEN_COOKIE, CookieSigner

LOG_PREFIX = "[AccessToken]"


@dataclass(frozen=True)
class AccessToken:
    """Access token issued by the identity service. ``ttl`` is in seconds."""

    id: str
    ttl: int
    user_id: Any = None


@runtime_checkable
class AccessTokenStore(Protocol):
    """Token store collaborator."""

    async def find_by_id(self, token_id: str) -> Optional[AccessToken]: ...


def get_request_access_token(request: Request) -> Optional[AccessToken]:
    """Access token already resolved for this request, if any."""
    return getattr(request.state, "access_token", None)


class AccessTokenResolver:
    """Resolves the request's access token once and caches it on ``request.state``."""

    def __init__(self, store: Optional[AccessTokenStore], signer: Optional[CookieSigner] = None):
        self.store = store
        self.signer = signer

    def _candidate_ids(self, request: Request) -> Iterable[str]:
        authorization = request.headers.get("Authorization")
        if authorization:
            scheme, _, value = authorization.partition(" ")
            yield value.strip() if scheme.lower() == "bearer" and value else authorization.strip()

        query_token = request.query_params.get(ACCESS_TOKEN_COOKIE)
        if query_token:
            yield query_token

        cookie_token = request.cookies.get(ACCESS_TOKEN_COOKIE)
        if cookie_token:
            # Token cookies are always signed when a signer is configured
            if self.signer is None:
                yield cookie_token
            else:
                unsigned = self.signer.unsign(cookie_token)
                if unsigned:
                    yield unsigned

    async def _lookup(self, token_id: str) -> Optional[AccessToken]:
        if self.store is None or not token_id:
            return None
        return await self.store.find_by_id(token_id)

    async def resolve(self, request: Request) -> Optional[AccessToken]:
        """
        Resolve the caller's access token from header, query or cookie.

        A token already present on ``request.state`` is never overwritten.
        """
        existing = get_request_access_token(request)
        if existing is not None:
            return existing

        for token_id in self._candidate_ids(request):
            token = await self._lookup(token_id)
            if token is not None:
                request.state.access_token = token
                return token
        return None

    async def restore(self, request: Request, token_id: Optional[str]) -> Optional[AccessToken]:
        """Restore authentication from a token id carried in a (verified) cookie."""
        existing = get_request_access_token(request)
        if existing is not None:
            return existing
        if not token_id:
            return None

        token = await self._lookup(token_id)
        if token is None:
            logger.warning(f"{LOG_PREFIX} Token from link cookie not found or expired")
            return None
        request.state.access_token = token
        return token
