"""
Unified exception hierarchy (single entry point).

- **Startup errors**: `AuthGateError` and its subclasses are raised while provider
  configuration is resolved and registered. They never reach an HTTP client.
- **Request errors**: everything HTTP-facing inherits `AppException(HTTPException)`,
  which separates `status_code` (HTTP) from `code` (error code) and carries
  extra details in `data`.
- **Global handlers**: `register_exception_handlers` installs FastAPI handlers that
  render `authgate.common.response.error_response` bodies.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException
from pydantic import ValidationError as PydanticValidationError

from authgate.common.response import error_response

# ==================== Startup errors ====================


class AuthGateError(Exception):
    """Base class for provider setup errors."""


class ConfigurationError(AuthGateError):
    """Malformed or incomplete provider configuration."""

    def __init__(self, message: str, *, provider: Optional[str] = None):
        if provider:
            message = f'auth provider "{provider}": {message}'
        super().__init__(message)
        self.provider = provider


class DuplicateProviderError(ConfigurationError):
    """A provider with the same name is already registered."""

    def __init__(self, name: str):
        super().__init__(f'a provider with name "{name}" is already registered')
        self.provider = name


# ==================== HTTP errors ====================


class AppException(HTTPException):
    """Base application exception."""

    code: int
    data: Any

    def __init__(
        self,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        message: str = "Internal Server Error",
        *,
        code: int | None = None,
        data: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(status_code=status_code, detail=message, headers=headers)
        self.code = status_code if code is None else code
        self.data = data


class NotFoundException(AppException):
    """Resource not found (404)."""

    def __init__(self, message: str = "Resource not found", *, code: int | None = None, data: Any = None):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, message=message, code=code, data=data)


class BadRequestException(AppException):
    """Bad request (400)."""

    def __init__(self, message: str = "Bad request", *, code: int | None = None, data: Any = None):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, message=message, code=code, data=data)


class UnauthorizedException(AppException):
    """Unauthorized (401)."""

    def __init__(self, message: str = "Unauthorized", *, code: int | None = None, data: Any = None):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            message=message,
            code=code,
            data=data,
            headers={"WWW-Authenticate": "Bearer"},
        )


class InternalServerException(AppException):
    """Internal error (500)."""

    def __init__(self, message: str = "Internal Server Error", *, code: int | None = 1007, data: Any = None):
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, message=message, code=code, data=data)


class ProviderNotFoundError(NotFoundException):
    """No provider registered under the requested name."""

    def __init__(self, name: str):
        super().__init__(f'auth provider "{name}" not found', code=1004, data={"provider_name": name})
        self.provider = name


class AuthenticationFailure(UnauthorizedException):
    """External verification produced no user."""

    def __init__(self, provider: str, message: str = "authentication failed"):
        super().__init__(message, code=401, data={"provider_name": provider})
        self.provider = provider


class UnauthenticatedLinkAttempt(UnauthorizedException):
    """A link flow was initiated without an authenticated caller."""

    def __init__(self, provider: str, message: str = "No accessToken found in request object"):
        super().__init__(message, code=401, data={"provider_name": provider})
        self.provider = provider


class SessionEstablishmentError(InternalServerException):
    """Establishing the session failed after a successful verification."""

    def __init__(self, message: str = "Failed to establish session", *, data: Any = None):
        super().__init__(message, code=1009, data=data)


# ==================== Global handlers ====================

LOG_PREFIX = "[Errors]"


def _json_error(status_code: int, code: int, message: str, data: Any = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=error_response(message=message, code=code, data=data))


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> Response:
    """
    Render any HTTPException as an error body.

    ``AppException`` carries its own ``code`` and ``data``; plain Starlette errors
    (404 for unknown routes, 405 for a provider route hit with the wrong verb) use
    the status code as the error code.
    """
    code = getattr(exc, "code", exc.status_code)
    if exc.status_code >= 500:
        logger.error(f"{LOG_PREFIX} {request.method} {request.url.path} failed code={code}: {exc.detail}")
    return _json_error(exc.status_code, code, str(exc.detail), getattr(exc, "data", None))


async def validation_exception_handler(request: Request, exc: Exception) -> Response:
    errors = [
        {"field": ".".join(str(part) for part in err.get("loc", ())), "message": err.get("msg"), "type": err.get("type")}
        for err in getattr(exc, "errors", list)()
    ]
    return _json_error(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Request parameter validation failed",
        {"validation_errors": errors} if errors else None,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> Response:
    logger.opt(exception=exc).error(f"{LOG_PREFIX} Unhandled error on {request.method} {request.url.path}")

    from authgate.core.settings import settings

    if settings.debug:
        return _json_error(500, 500, str(exc), {"error_type": type(exc).__name__})
    return _json_error(500, 500, "Internal Server Error")


async def render_error(request: Request, exc: Exception) -> Response:
    """Error body for ``exc``, for callers that must add headers before the response leaves."""
    if isinstance(exc, StarletteHTTPException):
        return await http_exception_handler(request, exc)
    return await unhandled_exception_handler(request, exc)


def register_exception_handlers(app: Any) -> None:
    """Install the error body handlers on ``app``."""
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(PydanticValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
