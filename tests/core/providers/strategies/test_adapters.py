"""
Tests for scheme adapters and the strategy factory.
"""

import pytest
from starlette.requests import Request

from authgate.common.exceptions import ConfigurationError
from authgate.core.providers.options import ComponentOptions, resolve_provider_options
from authgate.core.providers.strategies.adapters import (
    BasicProfileAdapter,
    LdapAdapter,
    LocalAdapter,
    OAuth1Adapter,
    OAuth2Adapter,
    OpenIDAdapter,
)
from authgate.core.providers.strategies.base import AuthInfo, VerifyResult
from authgate.core.providers.strategies.factory import (
    get_scheme_adapter,
    list_supported_schemes,
    load_login_callback_factory,
    load_strategy_class,
    register_scheme_adapter,
    strategy_options,
    unregister_scheme_adapter,
)
from authgate.core.providers.strategies.oauth2 import OAuth2Strategy
from authgate.core.tokens import AccessToken

import fakes
from fakes import FakeIdentityService


def descriptor(name="github", **raw):
    return resolve_provider_options(name, raw, ComponentOptions())


def make_request():
    return Request({"type": "http", "method": "GET", "path": "/", "query_string": b"", "headers": []})


class TestSchemeAdapters:
    @pytest.mark.parametrize(
        "scheme, adapter_class",
        [
            (None, OAuth2Adapter),
            ("oauth 2.0", OAuth2Adapter),
            ("openid connect", OAuth2Adapter),
            ("oauth", OAuth1Adapter),
            ("oauth1", OAuth1Adapter),
            ("oauth 1.0", OAuth1Adapter),
            ("openid", OpenIDAdapter),
            ("ldap", LdapAdapter),
            ("local", LocalAdapter),
            ("ibm-connections-basic", BasicProfileAdapter),
        ],
    )
    def test_scheme_resolution(self, scheme, adapter_class):
        assert isinstance(get_scheme_adapter(scheme), adapter_class)

    def test_adapters_are_cached(self):
        assert get_scheme_adapter("ldap") is get_scheme_adapter("ldap")

    def test_unknown_scheme(self):
        with pytest.raises(ConfigurationError, match='no adapter registered for auth scheme "saml"'):
            get_scheme_adapter("saml")

    def test_register_custom_scheme(self):
        class CorporateAdapter(LdapAdapter):
            scheme = "corporate-sso"

        register_scheme_adapter("Corporate-SSO", CorporateAdapter)
        try:
            assert isinstance(get_scheme_adapter("corporate-sso"), CorporateAdapter)
            assert "corporate-sso" in list_supported_schemes()
        finally:
            unregister_scheme_adapter("corporate-sso")
        with pytest.raises(ConfigurationError):
            get_scheme_adapter("corporate-sso")

    def test_builtin_scheme_can_not_be_replaced(self):
        with pytest.raises(ValueError):
            register_scheme_adapter("ldap", LdapAdapter)

    def test_credentials(self):
        assert OAuth2Adapter().credentials("at", "rt") == {"accessToken": "at", "refreshToken": "rt"}
        assert OAuth1Adapter().credentials("t", "s") == {"token": "t", "tokenSecret": "s"}
        assert OpenIDAdapter().credentials("https://id.example.com/u") == {"identifier": "https://id.example.com/u"}
        assert LocalAdapter().credentials("pw") == {"password": "pw"}
        assert LdapAdapter().credentials() == {}
        assert BasicProfileAdapter().credentials("cookie", "https://x/profile") == {}


class TestVerifyFunction:
    @pytest.mark.asyncio
    async def test_no_profile_is_no_match(self):
        identity = FakeIdentityService()
        verify = OAuth2Adapter().make_verify_function(descriptor(), identity)

        assert await verify(make_request(), None) == VerifyResult()
        assert await verify(make_request(), {}) == VerifyResult()
        assert identity.calls == []

    @pytest.mark.asyncio
    async def test_login_called_with_auto_login(self):
        identity = FakeIdentityService()
        d = descriptor(clientID="id", authScheme="OAuth 2.0")
        verify = OAuth2Adapter().make_verify_function(d, identity)

        result = await verify(make_request(), {"id": "alice"}, "at", "rt")

        assert result.user == {"id": "u-alice"}
        assert result.info == AuthInfo(
            identity={"provider": "github", "externalId": "alice"},
            access_token=AccessToken(id="tok-alice", ttl=fakes.TOKEN_TTL, user_id="u-alice"),
        )
        call = identity.calls[0]
        assert call["provider_name"] == "github"
        assert call["auth_scheme"] == "oauth 2.0"
        assert call["credentials"] == {"accessToken": "at", "refreshToken": "rt"}
        assert call["options"]["autoLogin"] is True
        assert call["options"]["provider"] == "github"
        assert call["options"]["clientID"] == "id"
        assert "linkUserId" not in call["options"]

    @pytest.mark.asyncio
    async def test_provider_can_override_auto_login(self):
        identity = FakeIdentityService()
        verify = LocalAdapter().make_verify_function(descriptor(authScheme="local", autoLogin=False), identity)
        await verify(make_request(), {"id": "bob"}, "pw")
        assert identity.calls[0]["options"]["autoLogin"] is False

    @pytest.mark.asyncio
    async def test_basic_profile_defaults(self):
        identity = FakeIdentityService()
        d = descriptor("connections", authScheme="ibm-connections-basic", module="x")
        verify = BasicProfileAdapter().make_verify_function(d, identity)
        await verify(make_request(), {"id": "carol"}, "set-cookie", "https://x/profile")

        options = identity.calls[0]["options"]
        assert options["autoLogin"] is True
        assert options["emailOptional"] is True

    @pytest.mark.asyncio
    async def test_link_flow_passes_caller(self):
        identity = FakeIdentityService()
        verify = OAuth2Adapter().make_verify_function(descriptor("gh-link", link=True), identity)
        request = make_request()
        request.state.access_token = AccessToken(id="tok-caller", ttl=60, user_id="u-caller")

        await verify(request, {"id": "dave"})
        assert identity.calls[0]["options"]["linkUserId"] == "u-caller"
        assert identity.calls[0]["options"]["link"] is True

    @pytest.mark.asyncio
    async def test_no_user(self):
        verify = OAuth2Adapter().make_verify_function(descriptor(), FakeIdentityService())
        result = await verify(make_request(), {"id": "nobody"})
        assert result.user is None

    @pytest.mark.asyncio
    async def test_identity_errors_propagate(self):
        class FailingIdentityService:
            async def login(self, *args):
                raise RuntimeError("db down")

        verify = OAuth2Adapter().make_verify_function(descriptor(), FailingIdentityService())
        with pytest.raises(RuntimeError, match="db down"):
            await verify(make_request(), {"id": "alice"})

    @pytest.mark.asyncio
    async def test_custom_login_callback(self):
        d = descriptor(makeLoginCallback="fakes.tagging_login_callback")
        factory = load_login_callback_factory(d)
        verify = OAuth2Adapter().make_verify_function(d, FakeIdentityService(), factory)

        result = await verify(make_request(), {"id": "erin"})
        assert result.info.identity["tagged"] is True


class TestStrategyLoading:
    def test_default_oauth2_strategy(self):
        assert load_strategy_class(descriptor()) is OAuth2Strategy
        assert load_strategy_class(descriptor(authScheme="openid connect")) is OAuth2Strategy

    def test_module_and_strategy(self):
        assert load_strategy_class(descriptor(module="fakes")) is fakes.Strategy
        assert load_strategy_class(descriptor(module="fakes", strategy="BrokenStrategy")) is fakes.BrokenStrategy

    def test_module_required_for_other_schemes(self):
        with pytest.raises(ConfigurationError, match='"module" is required'):
            load_strategy_class(descriptor(authScheme="ldap"))

    def test_missing_module(self):
        with pytest.raises(ConfigurationError, match="not found"):
            load_strategy_class(descriptor(module="no_such_strategy_module"))

    def test_missing_attribute(self):
        with pytest.raises(ConfigurationError, match='has no attribute "Nope"'):
            load_strategy_class(descriptor(module="fakes", strategy="Nope"))

    def test_not_a_strategy(self):
        with pytest.raises(ConfigurationError, match="is not an AuthStrategy"):
            load_strategy_class(descriptor(module="fakes", strategy="NotAStrategy"))

    def test_login_callback_must_be_dotted(self):
        with pytest.raises(ConfigurationError, match="dotted path"):
            load_login_callback_factory(descriptor(makeLoginCallback="plain"))

    def test_strategy_options(self):
        d = descriptor(clientID="id", clientSecret="secret")
        options = strategy_options(d)

        assert options["authInfo"] is True
        assert options["passReqToCallback"] is True
        assert options["clientID"] == "id"
        assert options["callbackURL"] == "http://localhost:3000/auth/github/login/callback"
        assert options["successRedirect"] == "http://localhost:3000/account"
        assert options["failureRedirect"] == "http://localhost:3000/account/login"
        assert options["session"] is False

    def test_json_strategy_options_have_no_redirects(self):
        options = strategy_options(descriptor(json=True))
        assert "successRedirect" not in options
        assert "failureRedirect" not in options
