"""
Provider option resolution.

Turns validated provider options into a fully resolved, immutable descriptor:
absolute route paths under the context root, HTTP methods, callback URL and
redirect URLs, and the effective session flag.

Usage:
    from authgate.core.providers.options import ComponentOptions, resolve_provider_options

    component_options = ComponentOptions.from_settings(settings)
    descriptor = resolve_provider_options("github", raw_options, component_options)
"""

import re
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional
from urllib.parse import parse_qsl, urlencode, urljoin, urlsplit, urlunsplit

from loguru import logger

from authgate.common.exceptions import ConfigurationError
from authgate.core.providers.config import SUPPORTED_BODY_PARSERS, ProviderOptions, parse_provider_options

LOG_PREFIX = "[ProviderOptions]"

LINK_SUCCESS_REDIRECT = "/account/authorize/result"
LINK_FAILURE_REDIRECT = "/account/authorize/result"
LOGIN_SUCCESS_REDIRECT = "/account"
LOGIN_FAILURE_REDIRECT = "/account/login"

_POST_RE = re.compile(r"^POST$", re.IGNORECASE)


@dataclass(frozen=True)
class ComponentOptions:
    """Global options shared by every provider."""

    context_root: str = "/auth"
    server_base_url: str = "http://localhost:3000"
    ui_base_url: Optional[str] = None
    enable_session_support: bool = False
    default_http_method: str = "GET"
    link_cookie_path_source: str = "callback"

    @property
    def ui_base_url_effective(self) -> str:
        return self.ui_base_url or self.server_base_url

    @classmethod
    def from_settings(cls, settings: Any) -> "ComponentOptions":
        """Build component options from application settings."""
        return cls(
            context_root=settings.context_root,
            server_base_url=settings.server_base_url,
            ui_base_url=settings.ui_base_url,
            enable_session_support=settings.enable_session_support,
            default_http_method=settings.default_http_method,
            link_cookie_path_source=settings.link_cookie_path_source,
        )


@dataclass(frozen=True)
class ResolvedProviderDescriptor:
    """Fully resolved provider options. Computed once at startup."""

    name: str
    auth_scheme: Optional[str]
    link: bool
    session: bool
    json: bool
    auth_path: str
    auth_http_method: str
    callback_path: str
    callback_http_method: str
    callback_url: str
    success_redirect_url: Optional[str] = None
    failure_redirect_url: Optional[str] = None
    disabled: bool = False
    domain: Optional[str] = None
    auth_body_parser: Optional[str] = None
    auth_body_parser_options: Dict[str, Any] = field(default_factory=dict)
    callback_body_parser: Optional[str] = None
    callback_body_parser_options: Dict[str, Any] = field(default_factory=dict)
    module: Optional[str] = None
    strategy: str = "Strategy"
    make_login_callback: Optional[str] = None
    strategy_options: Dict[str, Any] = field(default_factory=dict)
    link_cookie_path_source: str = "callback"

    @property
    def response_type(self) -> str:
        return "json" if self.json else "redirect"

    def to_dict(self) -> Dict[str, Any]:
        """Plain dict copy, keys in declaration order."""
        return asdict(self)

    def summary(self) -> Dict[str, Any]:
        """Public listing projection (no strategy options or secrets)."""
        summary: Dict[str, Any] = {
            "name": self.name,
            "authPath": self.auth_path,
            "authMethod": self.auth_http_method,
            "link": self.link,
            "responseType": self.response_type,
            "disabled": self.disabled,
        }
        if self.auth_http_method != "GET":
            summary["authBodyFormat"] = self.auth_body_parser
        if self.response_type == "redirect":
            summary["successRedirectUrl"] = self.success_redirect_url
            summary["failureRedirectUrl"] = self.failure_redirect_url
        return summary

    def routes(self) -> "list[tuple[str, str]]":
        """(method, path) pairs this provider serves."""
        routes = [(self.auth_http_method, self.auth_path)]
        if (self.callback_http_method, self.callback_path) not in routes:
            routes.append((self.callback_http_method, self.callback_path))
        return routes


# ==================== Path & URL helpers ====================


def http_method(method: Optional[str], default: str = "GET") -> str:
    """POST only when explicitly configured as such; the default policy otherwise."""
    if isinstance(method, str) and _POST_RE.match(method.strip()):
        return "POST"
    return default


def normalize_context_root(context_root: str) -> str:
    root = "/" + (context_root or "").strip("/")
    return "" if root == "/" else root


def under_context_root(context_root: str, path: str) -> str:
    """Prefix ``path`` with the context root unless it already is."""
    root = normalize_context_root(context_root)
    path = "/" + path.lstrip("/")
    if not root or path == root or path.startswith(root + "/"):
        return path
    return f"{root}{path}"


def default_auth_path(context_root: str, name: str, link: bool) -> str:
    root = normalize_context_root(context_root)
    return f"{root}/{name}/{'link' if link else 'login'}".lower()


def append_query(url: str, query: Dict[str, Any]) -> str:
    """Merge ``query`` into the query string of ``url``."""
    parts = urlsplit(url)
    params = dict(parse_qsl(parts.query, keep_blank_values=True))
    params.update({k: str(v) for k, v in query.items() if v is not None})
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(params), parts.fragment))


def make_success_redirect_url(success_redirect: Optional[str], link: bool, base_url: Optional[str]) -> str:
    target = success_redirect or (LINK_SUCCESS_REDIRECT if link else LOGIN_SUCCESS_REDIRECT)
    return urljoin(base_url or "/", target)


def make_failure_redirect_url(failure_redirect: Optional[str], link: bool, base_url: Optional[str]) -> str:
    target = failure_redirect or (LINK_FAILURE_REDIRECT if link else LOGIN_FAILURE_REDIRECT)
    return urljoin(base_url or "/", target)


def _body_parser(name: str, phase: str, method: str, parser: Optional[str]) -> Optional[str]:
    if method != "POST":
        return parser
    if not parser or not isinstance(parser, str):
        raise ConfigurationError(
            f'"{phase}BodyParser" is a required provider option and must be of type "String" '
            f'when using "{phase}HTTPMethod" === "POST"',
            provider=name,
        )
    if parser.lower() not in SUPPORTED_BODY_PARSERS:
        raise ConfigurationError(f'"{parser}" is not a supported bodyParser', provider=name)
    return parser.lower()


# ==================== Resolution ====================


def resolve_provider_options(
    name: str,
    raw_options: Any,
    component_options: ComponentOptions,
) -> ResolvedProviderDescriptor:
    """
    Resolve the options of one provider.

    Pure function of its inputs: the same input always yields an equal descriptor.

    Args:
        name: Provider name (unique key)
        raw_options: Raw options mapping or ProviderOptions
        component_options: Global options

    Returns:
        ResolvedProviderDescriptor

    Raises:
        ConfigurationError: Invalid options or missing/unsupported body parser
    """
    if not name or not isinstance(name, str):
        raise ConfigurationError("provider name must be a non-empty string")

    options: ProviderOptions = parse_provider_options(name, raw_options)
    context_root = component_options.context_root
    default_method = http_method(component_options.default_http_method)

    link = bool(options.link)

    session = bool(options.session)
    if session and not component_options.enable_session_support:
        logger.warning(
            f'{LOG_PREFIX} Can not enable session support for auth provider "{name}": '
            "sessions are disabled globally. Set enable_session_support if you need session support"
        )
        session = False

    auth_path = (
        under_context_root(context_root, options.auth_path)
        if options.auth_path
        else default_auth_path(context_root, name, link)
    )
    callback_path = (
        under_context_root(context_root, options.callback_path)
        if options.callback_path
        else f"{default_auth_path(context_root, name, link)}/callback"
    )

    auth_http_method = http_method(options.auth_http_method, default_method)
    callback_http_method = http_method(options.callback_http_method, default_method)

    auth_body_parser = _body_parser(name, "auth", auth_http_method, options.auth_body_parser)
    callback_body_parser = _body_parser(name, "callback", callback_http_method, options.callback_body_parser)

    callback_url = urljoin(component_options.server_base_url, callback_path)

    success_redirect_url = None
    failure_redirect_url = None
    # JSON providers return results in the response body and need no redirects
    if not options.json_response:
        base_url = component_options.ui_base_url_effective
        success_redirect_url = make_success_redirect_url(options.success_redirect, link, base_url)
        failure_redirect_url = make_failure_redirect_url(options.failure_redirect, link, base_url)

    return ResolvedProviderDescriptor(
        name=name,
        auth_scheme=options.auth_scheme,
        link=link,
        session=session,
        json=bool(options.json_response),
        auth_path=auth_path,
        auth_http_method=auth_http_method,
        callback_path=callback_path,
        callback_http_method=callback_http_method,
        callback_url=callback_url,
        success_redirect_url=success_redirect_url,
        failure_redirect_url=failure_redirect_url,
        disabled=bool(options.disabled),
        domain=options.domain,
        auth_body_parser=auth_body_parser,
        auth_body_parser_options=dict(options.auth_body_parser_options),
        callback_body_parser=callback_body_parser,
        callback_body_parser_options=dict(options.callback_body_parser_options),
        module=options.module,
        strategy=options.strategy,
        make_login_callback=options.make_login_callback,
        strategy_options=options.strategy_options,
        link_cookie_path_source=component_options.link_cookie_path_source,
    )
