"""
Application settings
"""
from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, Field, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Project root (the directory holding the authgate package)
BASE_DIR = Path(__file__).resolve().parent.parent.parent
ENV_FILE = BASE_DIR / ".env"


class Settings(BaseSettings):
    """Application settings"""

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # App
    app_name: str = Field(
        default="authgate",
        description="Application name"
    )
    app_version: str = Field(
        default="0.1.0",
        description="Application version"
    )
    debug: bool = Field(
        default=False,
        validation_alias=AliasChoices("debug", "APP_DEBUG"),
        description="Enable debug mode"
    )
    environment: str = Field(
        default="development",
        validation_alias=AliasChoices("environment", "ENV", "APP_ENV"),
        description="Application environment; selects providers.<environment>.* files"
    )
    log_level: str = Field(
        default="INFO",
        validation_alias=AliasChoices("log_level", "LOGLEVEL"),
        description="Minimum log level"
    )
    log_dir: Optional[str] = Field(
        default="logs",
        description="Directory for rotating log files (empty disables file logging)"
    )

    # Provider routing
    context_root: str = Field(
        default="/auth",
        validation_alias=AliasChoices("context_root", "AUTH_CONTEXT_ROOT"),
        description="Path prefix under which all provider routes are mounted"
    )
    server_base_url: str = Field(
        default="http://localhost:3000",
        validation_alias=AliasChoices("server_base_url", "SERVER_BASE_URL", "BACKEND_URL"),
        description="Public base URL of this server (used for callback URLs)"
    )
    ui_base_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("ui_base_url", "UI_BASE_URL", "FRONTEND_URL"),
        description="Base URL for success/failure redirects (defaults to server_base_url)"
    )
    providers_dir: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("providers_dir", "AUTH_PROVIDERS_DIR"),
        description="Directory holding providers[.-env].(json|yaml|yml|py) files"
    )
    strict_provider_setup: bool = Field(
        default=False,
        validation_alias=AliasChoices("strict_provider_setup", "AUTH_STRICT_PROVIDER_SETUP"),
        description="Abort startup on the first provider configuration error"
    )
    management_prefix: str = Field(
        default="/api/v1/auth-providers",
        description="Prefix of the provider listing endpoints"
    )
    default_http_method: str = Field(
        default="GET",
        validation_alias=AliasChoices("default_http_method", "AUTH_DEFAULT_HTTP_METHOD"),
        description="HTTP method used for provider routes unless POST is configured"
    )
    link_cookie_path_source: str = Field(
        default="callback",
        validation_alias=AliasChoices("link_cookie_path_source", "AUTH_LINK_COOKIE_PATH_SOURCE"),
        description="Derive the link cookie path from the 'callback' or the 'auth' path"
    )

    # Sessions & cookies
    enable_session_support: bool = Field(
        default=False,
        validation_alias=AliasChoices("enable_session_support", "AUTH_ENABLE_SESSIONS"),
        description="Allow providers to establish server-side sessions"
    )
    session_secret: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("session_secret", "SESSION_SECRET"),
        description="Secret for the session cookie (required with session support)"
    )
    session_cookie: str = Field(
        default="authgate_session",
        description="Session cookie name"
    )
    signed_cookie_secret: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("signed_cookie_secret", "SIGNED_COOKIE_SECRET", "COOKIE_SECRET"),
        description="Secret for signed cookies (required by link providers)"
    )
    cookie_secure: bool = Field(
        default=False,
        validation_alias=AliasChoices("cookie_secure", "AUTH_COOKIE_SECURE"),
        description="Cookie Secure flag (auto-enabled in production)"
    )
    cookie_samesite: str = Field(
        default="lax",
        validation_alias=AliasChoices("cookie_samesite", "AUTH_COOKIE_SAMESITE"),
        description="Cookie SameSite attribute (lax, strict, none)"
    )

    @field_validator("default_http_method")
    @classmethod
    def parse_default_http_method(cls, v: str) -> str:
        method = (v or "GET").strip().upper()
        if method not in ("GET", "POST"):
            raise ValueError("default_http_method must be GET or POST")
        return method

    @field_validator("link_cookie_path_source")
    @classmethod
    def parse_link_cookie_path_source(cls, v: str) -> str:
        source = (v or "callback").strip().lower()
        if source not in ("callback", "auth"):
            raise ValueError("link_cookie_path_source must be 'callback' or 'auth'")
        return source

    @computed_field
    @property
    def ui_base_url_effective(self) -> str:
        """UI base URL, falling back to the server base URL"""
        return self.ui_base_url or self.server_base_url

    @computed_field
    @property
    def cookie_secure_effective(self) -> bool:
        """Secure cookies are forced in production"""
        if self.environment == "production":
            return True
        return self.cookie_secure


settings = Settings()
