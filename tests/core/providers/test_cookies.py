"""
Tests for cookie signing, link cookies and token cookies.
"""

import pytest
from fastapi import Response

from authgate.core.providers.cookies import (
    LINK_COOKIE_MAX_AGE_MS,
    clear_link_cookie,
    link_cookie,
    set_link_cookie,
    set_token_cookies,
)
from authgate.core.providers.options import ComponentOptions, resolve_provider_options
from authgate.core.security import CookieSigner


@pytest.fixture
def signer():
    return CookieSigner("secret")


def set_cookie_headers(response):
    return [value.decode("latin-1") for key, value in response.raw_headers if key == b"set-cookie"]


class TestCookieSigner:
    def test_sign_and_unsign(self, signer):
        signed = signer.sign("tok-1")
        assert signed != "tok-1"
        assert signer.unsign(signed) == "tok-1"

    def test_tampered_value(self, signer):
        signed = signer.sign("tok-1")
        assert signer.unsign("tok-2" + signed[5:]) is None
        assert signer.unsign("garbage") is None

    def test_other_secret(self, signer):
        assert CookieSigner("other").unsign(signer.sign("tok-1")) is None

    def test_empty_secret_rejected(self):
        with pytest.raises(ValueError):
            CookieSigner("")


class TestLinkCookie:
    def test_cookie_path_from_callback_path(self):
        d = resolve_provider_options("github-link", {"link": True}, ComponentOptions())
        cookie = link_cookie(d)

        assert cookie.name == "linkWithProvider_github-link"
        assert cookie.options.path == "/auth/github-link/link"
        assert cookie.options.max_age == LINK_COOKIE_MAX_AGE_MS == 300000
        assert cookie.options.max_age_seconds == 300
        assert cookie.options.http_only is True
        assert cookie.options.signed is True

    def test_cookie_path_from_auth_path(self):
        component = ComponentOptions(link_cookie_path_source="auth")
        d = resolve_provider_options("p", {"link": True, "authPath": "/p/start", "callbackPath": "/p/done"}, component)
        assert link_cookie(d).options.path == "/auth/p/start"

    def test_callback_path_without_suffix(self):
        d = resolve_provider_options("p", {"link": True, "callbackPath": "/p/return"}, ComponentOptions())
        assert link_cookie(d).options.path == "/auth/p/return"

    def test_set_and_clear(self, signer):
        d = resolve_provider_options("p", {"link": True}, ComponentOptions())
        cookie = link_cookie(d, secure=True)

        response = Response()
        set_link_cookie(response, cookie, "tok-1", signer)
        header = set_cookie_headers(response)[0]
        value = header.split(";")[0].split("=", 1)[1]

        assert header.startswith("linkWithProvider_p=")
        assert signer.unsign(value) == "tok-1"
        assert "httponly" in header.lower()
        assert "max-age=300" in header.lower()
        assert "path=/auth/p/link" in header.lower()
        assert "secure" in header.lower()

        cleared = Response()
        clear_link_cookie(cleared, cookie)
        assert "max-age=0" in set_cookie_headers(cleared)[0].lower()


class TestTokenCookies:
    def test_unsigned(self):
        response = Response()
        set_token_cookies(response, "u-1", "tok-1", 1209600, domain="example.com")
        headers = set_cookie_headers(response)

        assert headers[0].startswith("access_token=tok-1;")
        assert headers[1].startswith("userId=u-1;")
        for header in headers:
            assert "max-age=1209600" in header.lower()
            assert "domain=example.com" in header.lower()

    def test_signed(self, signer):
        response = Response()
        set_token_cookies(response, "u-1", "tok-1", 60, signer=signer)
        token_header, user_header = set_cookie_headers(response)

        assert signer.unsign(token_header.split(";")[0].split("=", 1)[1]) == "tok-1"
        assert signer.unsign(user_header.split(";")[0].split("=", 1)[1]) == "u-1"
