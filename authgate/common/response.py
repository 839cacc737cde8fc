"""
Error body shared by every non-flow HTTP error.

Provider flows answer with their own ``state``/``provider_name`` shape; this body is
used for request errors, setup errors surfacing at request time and crashes.
"""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class ErrorBody(BaseModel):
    success: bool = False
    code: int
    message: str
    data: Any = None
    timestamp: str = Field(default_factory=_utc_timestamp)


def error_response(message: str = "Error", code: int = 400, data: Any = None) -> dict:
    """Serialized ``ErrorBody``."""
    return ErrorBody(code=code, message=message, data=data).model_dump()
