"""
Provider authentication flow.

Installs the auth (initiate) and callback (complete) routes of one provider and
runs each request through three stages:

1. verify: run the strategy (authenticate for login, authorize for link)
2. establish_session: log the user into the session when the provider uses sessions
3. respond: JSON body or redirect, with token cookies for redirect clients

Link providers additionally carry the caller's access token across the
external redirect in a signed cookie (see cookies.link_cookie).
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse
from loguru import logger

from authgate.common.exceptions import (
    AppException,
    AuthenticationFailure,
    BadRequestException,
    SessionEstablishmentError,
    UnauthenticatedLinkAttempt,
    render_error,
)
from authgate.core.providers.cookies import (
    LinkCookie,
    clear_link_cookie,
    link_cookie,
    read_link_cookie,
    set_link_cookie,
    set_token_cookies,
)
from authgate.core.providers.options import ResolvedProviderDescriptor, append_query
from authgate.core.providers.strategies.base import AuthInfo, AuthStrategy, StrategyOutcome
from authgate.core.providers.strategies.factory import strategy_options
from authgate.core.security import CookieSigner
from authgate.core.session import SessionManager, get_user_id, pop_return_to
from authgate.core.tokens import AccessToken, AccessTokenResolver

LOG_PREFIX = "[ProviderFlow]"


class FlowState(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class FlowResult:
    """Outcome of the verify/session stages. Fatal errors are raised instead."""

    state: FlowState
    user: Any = None
    info: Optional[AuthInfo] = None
    error: Optional[AuthenticationFailure] = None

    @property
    def access_token(self) -> Optional[AccessToken]:
        return self.info.access_token if self.info else None


class ProviderFlow:
    """Request handling for one provider."""

    def __init__(
        self,
        descriptor: ResolvedProviderDescriptor,
        strategy: AuthStrategy,
        *,
        token_resolver: AccessTokenResolver,
        session_manager: SessionManager,
        signer: Optional[CookieSigner] = None,
        cookie_secure: bool = False,
        cookie_samesite: str = "lax",
    ):
        self.descriptor = descriptor
        self.strategy = strategy
        self.token_resolver = token_resolver
        self.session_manager = session_manager
        self.signer = signer
        self.cookie_secure = cookie_secure
        self.cookie_samesite = cookie_samesite
        self.strategy_options: Dict[str, Any] = strategy_options(descriptor)
        self.link_cookie: Optional[LinkCookie] = None

        if descriptor.link:
            if signer is None:
                raise ValueError("link providers need a cookie signer")
            self.link_cookie = link_cookie(descriptor, secure=cookie_secure, same_site=cookie_samesite)

    @property
    def name(self) -> str:
        return self.descriptor.name

    # ==================== Route installation ====================

    def install(self, app: FastAPI) -> None:
        """Register the auth and callback routes on ``app``."""
        d = self.descriptor
        if (d.auth_http_method, d.auth_path) == (d.callback_http_method, d.callback_path):
            app.add_api_route(
                d.auth_path,
                self.handle_shared,
                methods=[d.auth_http_method],
                name=f"{d.name}.auth",
                include_in_schema=False,
            )
            logger.debug(f"{LOG_PREFIX} Registered shared auth/callback handler for {d.name} on {d.auth_http_method} {d.auth_path}")
            return

        app.add_api_route(
            d.auth_path,
            self.handle_auth,
            methods=[d.auth_http_method],
            name=f"{d.name}.auth",
            include_in_schema=False,
        )
        app.add_api_route(
            d.callback_path,
            self.handle_callback,
            methods=[d.callback_http_method],
            name=f"{d.name}.callback",
            include_in_schema=False,
        )
        action = "authorize" if d.link else "authenticate"
        logger.debug(
            f"{LOG_PREFIX} Registered {action} handler for {d.name} on "
            f"{d.auth_http_method} {d.auth_path} and {d.callback_http_method} {d.callback_path}"
        )

    # ==================== Entry points ====================

    async def handle_shared(self, request: Request) -> Response:
        """auth path == callback path: a ``code`` in the query marks the provider's callback."""
        if request.query_params.get("code"):
            return await self.handle_callback(request)
        return await self.handle_auth(request)

    async def handle_auth(self, request: Request) -> Response:
        """Initiate authentication (login) or authorization (link)."""
        await self.parse_body(request, "auth")

        if not self.descriptor.link:
            await self.token_resolver.resolve(request)
            outcome = await self.strategy.authenticate(request, self.strategy_options)
            return await self.finish(request, outcome)

        cookie, signer = self.link_state()
        try:
            token = await self.require_access_token(request)
        except UnauthenticatedLinkAttempt as e:
            logger.warning(f"{LOG_PREFIX} Link attempt without access token for provider {self.name}")
            response = PlainTextResponse(str(e.detail), status_code=e.status_code)
            clear_link_cookie(response, cookie)
            return response

        outcome = await self.strategy.authorize(request, self.strategy_options)
        response = await self.finish(request, outcome)
        if outcome.response is not None:
            # Keep a reference to the caller for the callback request
            set_link_cookie(response, cookie, token.id, signer)
        return response

    async def handle_callback(self, request: Request) -> Response:
        """Complete authentication after the identity provider redirected back."""
        if not self.descriptor.link:
            await self.parse_body(request, "callback")
            await self.token_resolver.resolve(request)
            outcome = await self.strategy.authenticate(request, self.strategy_options)
            return await self.finish(request, outcome)

        cookie, signer = self.link_state()
        try:
            response = await self.complete_link(request, cookie, signer)
        except Exception as e:
            logger.warning(f"{LOG_PREFIX} Link callback for provider {self.name} failed: {type(e).__name__}")
            response = await render_error(request, e)

        # The link cookie is single use, whatever the outcome
        clear_link_cookie(response, cookie)
        return response

    async def complete_link(self, request: Request, cookie: LinkCookie, signer: CookieSigner) -> Response:
        token_id = read_link_cookie(request, cookie, signer)
        token = await self.token_resolver.restore(request, token_id)
        await self.parse_body(request, "callback")

        if token is None:
            logger.warning(f"{LOG_PREFIX} Link callback for provider {self.name} without authenticated caller")
            return self.respond(request, self.failure())

        outcome = await self.strategy.authorize(request, self.strategy_options)
        return await self.finish(request, outcome)

    # ==================== Stages ====================

    def link_state(self) -> Tuple[LinkCookie, CookieSigner]:
        if self.link_cookie is None or self.signer is None:
            raise ValueError(f"provider {self.name} does not link accounts")
        return self.link_cookie, self.signer

    async def finish(self, request: Request, outcome: StrategyOutcome) -> Response:
        """Use the strategy's own response or run the remaining stages, then expire consumed strategy cookies."""
        response = outcome.response if outcome.response is not None else await self.complete(request, outcome)
        for name, path in outcome.expired_cookies:
            response.delete_cookie(name, path=path)
        return response

    async def require_access_token(self, request: Request) -> AccessToken:
        token = await self.token_resolver.resolve(request)
        if token is None:
            raise UnauthenticatedLinkAttempt(self.name)
        return token

    def failure(self) -> FlowResult:
        return FlowResult(state=FlowState.FAILURE, error=AuthenticationFailure(self.name))

    async def complete(self, request: Request, outcome: StrategyOutcome) -> Response:
        result = self.verify(outcome)
        result = await self.establish_session(request, result)
        return self.respond(request, result)

    def verify(self, outcome: StrategyOutcome) -> FlowResult:
        if not outcome.user:
            logger.info(f"{LOG_PREFIX} Authentication failed for provider {self.name}")
            return self.failure()
        return FlowResult(state=FlowState.SUCCESS, user=outcome.user, info=outcome.info)

    async def establish_session(self, request: Request, result: FlowResult) -> FlowResult:
        """
        Log the user into the session.

        Raises:
            SessionEstablishmentError: The session could not be established
        """
        if result.state is not FlowState.SUCCESS or not self.descriptor.session:
            return result
        try:
            await self.session_manager.login(request, result.user)
        except SessionEstablishmentError:
            raise
        except Exception as e:
            raise SessionEstablishmentError(f"Failed to establish session: {e}") from e
        return result

    def respond(self, request: Request, result: FlowResult) -> Response:
        d = self.descriptor

        if result.state is FlowState.FAILURE:
            error = result.error or AuthenticationFailure(self.name)
            body = {
                "state": FlowState.FAILURE.value,
                "provider_name": self.name,
                "error_code": error.code,
                "error_message": str(error.detail),
            }
            if d.json:
                return JSONResponse(status_code=error.status_code, content=body)
            return RedirectResponse(url=append_query(d.failure_redirect_url or "/", body), status_code=302)

        user_id = get_user_id(result.user)
        token = result.access_token

        if d.json:
            content: Dict[str, Any] = {
                "state": FlowState.SUCCESS.value,
                "provider_name": self.name,
                "userId": user_id,
            }
            if token is not None:
                content["access_token"] = token.id
            return JSONResponse(status_code=200, content=content)

        redirect_to = append_query(
            pop_return_to(request) or d.success_redirect_url or "/",
            {"state": FlowState.SUCCESS.value, "provider_name": self.name},
        )
        response = RedirectResponse(url=redirect_to, status_code=302)
        if token is not None:
            set_token_cookies(
                response,
                user_id,
                token.id,
                token.ttl,
                domain=d.domain,
                signer=self.signer,
                secure=self.cookie_secure,
                same_site=self.cookie_samesite,
            )
        logger.info(f"{LOG_PREFIX} Authentication succeeded for provider {self.name}, user {user_id}")
        return response

    # ==================== Body parsing ====================

    async def parse_body(self, request: Request, phase: str) -> None:
        """Parse the request body of POST routes into ``request.state.body``."""
        d = self.descriptor
        if phase == "auth":
            method, parser, options = d.auth_http_method, d.auth_body_parser, d.auth_body_parser_options
        else:
            method, parser, options = d.callback_http_method, d.callback_body_parser, d.callback_body_parser_options
        if method != "POST" or not parser or request.method != "POST":
            return

        raw = await request.body()
        limit = options.get("limit")
        if isinstance(limit, int) and len(raw) > limit:
            raise AppException(status_code=413, message="Request body too large")

        if parser == "json":
            try:
                body: Any = json.loads(raw) if raw else {}
            except ValueError as e:
                raise BadRequestException("Invalid JSON body") from e
        elif parser == "urlencoded":
            form = await request.form()
            body = dict(form)
        elif parser == "text":
            body = raw.decode(options.get("charset", "utf-8"))
        else:
            body = raw
        request.state.body = body
