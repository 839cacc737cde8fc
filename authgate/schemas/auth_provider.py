"""
Auth provider listing schemas
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class AuthProviderSummary(BaseModel):
    """Public view of a provider, used by clients to render login/link buttons."""

    model_config = ConfigDict(extra="ignore")

    name: str
    authPath: str
    authMethod: str
    link: bool
    responseType: Literal["json", "redirect"]
    disabled: bool = False
    # only for non-GET auth routes
    authBodyFormat: Optional[str] = Field(default=None, description="Body parser of the auth route")
    # only for redirect providers
    successRedirectUrl: Optional[str] = None
    failureRedirectUrl: Optional[str] = None
