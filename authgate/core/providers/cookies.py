"""
Cookie helpers for provider flows.

- Link cookie: carries the caller's access token id across the external
  redirect of a link flow (signed, httpOnly, 5 minutes)
- Token cookies: access_token / userId cookies for redirect based clients
"""

import re
from dataclasses import dataclass
from typing import Any, Optional

from fastapi import Request, Response

from authgate.core.providers.options import ResolvedProviderDescriptor
from authgate.core.security import ACCESS_TOKEN_COOKIE, USER_ID_COOKIE, CookieSigner

LINK_COOKIE_PREFIX = "linkWithProvider_"
# 300 seconds / 5 minutes
LINK_COOKIE_MAX_AGE_MS = 300000

_CALLBACK_SUFFIX_RE = re.compile(r"/callback/?$", re.IGNORECASE)


@dataclass(frozen=True)
class CookieOptions:
    """Cookie attributes; max_age is in milliseconds."""

    path: str = "/"
    max_age: Optional[int] = None
    http_only: bool = False
    signed: bool = False
    domain: Optional[str] = None
    secure: bool = False
    same_site: str = "lax"

    @property
    def max_age_seconds(self) -> Optional[int]:
        return None if self.max_age is None else self.max_age // 1000


@dataclass(frozen=True)
class LinkCookie:
    name: str
    options: CookieOptions


def link_cookie(
    descriptor: ResolvedProviderDescriptor,
    *,
    secure: bool = False,
    same_site: str = "lax",
) -> LinkCookie:
    """
    Describe the link cookie of a provider.

    The cookie path is the callback path (or the auth path, depending on the
    configured path source) without its trailing ``/callback``.
    """
    source = descriptor.auth_path if descriptor.link_cookie_path_source == "auth" else descriptor.callback_path
    path = _CALLBACK_SUFFIX_RE.sub("", source) or "/"
    return LinkCookie(
        name=f"{LINK_COOKIE_PREFIX}{descriptor.name}",
        options=CookieOptions(
            path=path,
            max_age=LINK_COOKIE_MAX_AGE_MS,
            http_only=True,
            signed=True,
            secure=secure,
            same_site=same_site,
        ),
    )


def set_cookie(
    response: Response,
    name: str,
    value: str,
    options: CookieOptions,
    signer: Optional[CookieSigner] = None,
) -> None:
    """Set a cookie, signing the value when the options ask for it."""
    if options.signed:
        if signer is None:
            raise ValueError(f'cookie "{name}" must be signed but no cookie secret is configured')
        value = signer.sign(value)
    response.set_cookie(
        key=name,
        value=value,
        max_age=options.max_age_seconds,
        path=options.path,
        domain=options.domain,
        secure=options.secure,
        httponly=options.http_only,
        samesite=options.same_site,
    )


def set_link_cookie(response: Response, cookie: LinkCookie, token_id: str, signer: CookieSigner) -> None:
    set_cookie(response, cookie.name, token_id, cookie.options, signer)


def clear_link_cookie(response: Response, cookie: LinkCookie) -> None:
    response.delete_cookie(
        key=cookie.name,
        path=cookie.options.path,
        secure=cookie.options.secure,
        httponly=cookie.options.http_only,
        samesite=cookie.options.same_site,
    )


def read_link_cookie(request: Request, cookie: LinkCookie, signer: CookieSigner) -> Optional[str]:
    """Return the access token id stored in the link cookie, if valid and not expired."""
    raw = request.cookies.get(cookie.name)
    if not raw:
        return None
    return signer.unsign(raw, max_age=cookie.options.max_age_seconds)


def set_token_cookies(
    response: Response,
    user_id: Any,
    token_id: str,
    ttl: int,
    *,
    domain: Optional[str] = None,
    signer: Optional[CookieSigner] = None,
    secure: bool = False,
    same_site: str = "lax",
) -> None:
    """
    Set ``access_token`` and ``userId`` cookies for clients that read results from cookies.

    Args:
        ttl: Token time-to-live in seconds
        signer: Sign both cookies when the app has a cookie secret
    """
    options = CookieOptions(
        max_age=ttl * 1000,
        signed=signer is not None,
        domain=domain or None,
        secure=secure,
        same_site=same_site,
    )
    set_cookie(response, ACCESS_TOKEN_COOKIE, str(token_id), options, signer)
    set_cookie(response, USER_ID_COOKIE, str(user_id), options, signer)
