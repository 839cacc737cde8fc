"""
Session establishment on top of Starlette's SessionMiddleware.
"""

from typing import Any, Optional, Protocol

from fastapi import Request
from loguru import logger

from authgate.common.exceptions import SessionEstablishmentError

LOG_PREFIX = "[Session]"

SESSION_USER_KEY = "user_id"
RETURN_TO_KEY = "returnTo"


class SessionManager(Protocol):
    async def login(self, request: Request, user: Any) -> None: ...


def get_session(request: Request) -> Optional[dict]:
    """The request's session, or None when no session middleware is installed."""
    if "session" not in request.scope:
        return None
    return request.session


def pop_return_to(request: Request) -> Optional[str]:
    """Consume the ``returnTo`` location left by a "must be logged in" guard."""
    session = get_session(request)
    if not session:
        return None
    return session.pop(RETURN_TO_KEY, None) or None


def get_user_id(user: Any) -> Any:
    """Id of a user given as object or mapping."""
    if isinstance(user, dict):
        return user.get("id")
    return getattr(user, "id", None)


class StarletteSessionManager:
    """Stores the authenticated user id in ``request.session``."""

    def __init__(self, user_key: str = SESSION_USER_KEY):
        self.user_key = user_key

    async def login(self, request: Request, user: Any) -> None:
        """
        Establish the session for ``user``.

        Raises:
            SessionEstablishmentError: No session middleware, or the user has no id
        """
        session = get_session(request)
        if session is None:
            raise SessionEstablishmentError("Session support requires SessionMiddleware")

        user_id = get_user_id(user)
        if user_id is None:
            raise SessionEstablishmentError("Can not establish a session for a user without id")

        # Single write: the session either holds the new user or is left untouched
        session[self.user_key] = str(user_id)
        logger.debug(f"{LOG_PREFIX} Session established for user {user_id}")
