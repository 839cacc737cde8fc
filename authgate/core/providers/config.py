"""
Auth provider option schema.

Validates the raw options of one provider, with support for:
- camelCase keys as used in provider files (snake_case accepted too)
- the nested legacy shape (routeOptions / strategyOptions / schemeOptions)
- env var expansion ${VAR_NAME}
- arbitrary extra keys, passed through to the strategy untouched
"""

import os
import re
from typing import Any, Dict, Mapping, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from authgate.common.exceptions import ConfigurationError

LOG_PREFIX = "[ProviderConfig]"

# Built-in schemes handled by the bundled adapters; everything else is a custom scheme
BUILTIN_AUTH_SCHEMES = (
    "ldap",
    "local",
    "oauth",
    "oauth1",
    "oauth 1.0",
    "openid",
    "openid connect",
    "oauth 2.0",
)

SUPPORTED_BODY_PARSERS = ("json", "urlencoded", "text", "raw")

# Legacy nested sections and the flat keys their route entries map to
_LEGACY_ROUTE_KEYS = {
    "path": "Path",
    "method": "HTTPMethod",
    "bodyParser": "BodyParser",
    "bodyParserOptions": "BodyParserOptions",
}
_LEGACY_SECTIONS = ("routeOptions", "strategyOptions", "schemeOptions")


class ProviderOptions(BaseModel):
    """Options of a single auth provider, as written in provider files."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        frozen=True,
    )

    # External strategy: dotted module path + attribute name
    module: Optional[str] = None
    strategy: str = "Strategy"
    auth_scheme: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("authScheme", "authType", "auth_scheme"),
    )

    # Flow
    link: bool = False
    session: bool = False
    json_response: bool = Field(default=False, validation_alias=AliasChoices("json", "json_response"))
    disabled: bool = False

    # Routes
    auth_path: Optional[str] = None
    auth_http_method: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("authHTTPMethod", "authHttpMethod", "auth_http_method"),
    )
    callback_path: Optional[str] = None
    callback_http_method: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("callbackHTTPMethod", "callbackHttpMethod", "callback_http_method"),
    )
    auth_body_parser: Optional[str] = None
    auth_body_parser_options: Dict[str, Any] = Field(default_factory=dict)
    callback_body_parser: Optional[str] = None
    callback_body_parser_options: Dict[str, Any] = Field(default_factory=dict)

    # Redirects & cookies
    success_redirect: Optional[str] = None
    failure_redirect: Optional[str] = None
    domain: Optional[str] = None

    # Dotted path to a replacement login callback factory
    make_login_callback: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def flatten_legacy_shape(cls, data: Any) -> Any:
        """Flatten routeOptions / strategyOptions / schemeOptions onto the top level."""
        if not isinstance(data, Mapping):
            return data
        if not any(section in data for section in _LEGACY_SECTIONS):
            return data

        flat: Dict[str, Any] = {}
        for section in ("schemeOptions", "strategyOptions"):
            flat.update(data.get(section) or {})

        for route_name, route in (data.get("routeOptions") or {}).items():
            if route_name not in ("auth", "callback") or not route:
                continue
            for legacy_key, suffix in _LEGACY_ROUTE_KEYS.items():
                if legacy_key in route:
                    flat[f"{route_name}{suffix}"] = route[legacy_key]

        # Flat keys win over nested ones
        flat.update({k: v for k, v in data.items() if k not in _LEGACY_SECTIONS})
        return flat

    @field_validator("auth_scheme")
    @classmethod
    def lower_auth_scheme(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip().lower()
        return v or None

    @property
    def strategy_options(self) -> Dict[str, Any]:
        """Keys not recognised by the schema (clientID, clientSecret, scope...)."""
        return dict(self.model_extra or {})


def expand_env_vars(obj: Any) -> Any:
    """Recursively replace ${VAR_NAME} with env var values."""
    if isinstance(obj, str):
        return re.sub(r"\$\{(\w+)\}", lambda m: os.environ.get(m.group(1), ""), obj)
    elif isinstance(obj, dict):
        return {k: expand_env_vars(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [expand_env_vars(i) for i in obj]
    return obj


def parse_provider_options(name: str, raw: Any) -> ProviderOptions:
    """
    Validate raw provider options.

    Args:
        name: Provider name (for error messages)
        raw: Raw options mapping (or an already parsed ProviderOptions)

    Returns:
        ProviderOptions

    Raises:
        ConfigurationError: Options are not a mapping or fail validation
    """
    if isinstance(raw, ProviderOptions):
        return raw
    if raw is None:
        raw = {}
    if not isinstance(raw, Mapping):
        raise ConfigurationError(f"options must be a mapping, got {type(raw).__name__}", provider=name)

    try:
        return ProviderOptions.model_validate(expand_env_vars(dict(raw)))
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(x) for x in err['loc']) or '<root>'}: {err['msg']}" for err in e.errors()
        )
        raise ConfigurationError(f"invalid options ({problems})", provider=name) from e
