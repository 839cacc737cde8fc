"""
Tests for provider setup on an app.
"""

import json

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from authgate.common.exceptions import ConfigurationError, DuplicateProviderError
from authgate.core.providers.component import AuthProviderComponent, setup_auth_providers
from authgate.core.providers.registry import ProviderRegistry
from authgate.main import create_app

from fakes import FakeIdentityService, make_settings


def setup(providers, **settings_overrides):
    app = FastAPI()
    registry = setup_auth_providers(
        app,
        identity_service=FakeIdentityService(),
        providers=providers,
        settings=make_settings(**settings_overrides),
    )
    return app, registry


def test_registry_installed_and_frozen():
    app, registry = setup({"fake": {"module": "fakes"}})

    assert app.state.provider_registry is registry
    assert registry.frozen
    assert "fake" in registry
    paths = {route.path for route in app.routes}
    assert {"/auth/fake/login", "/auth/fake/login/callback"} <= paths


@pytest.mark.parametrize(
    "options",
    [
        {"authScheme": "saml", "module": "fakes"},
        {"authScheme": "ldap"},
        {"module": "no_such_strategy_module"},
        {"module": "fakes", "strategy": "BrokenStrategy"},
        {"module": "fakes", "authHTTPMethod": "POST"},
        {"template": "github"},
    ],
)
def test_bad_provider_is_skipped(options):
    app, registry = setup({"bad": options, "good": {"module": "fakes"}})

    assert "bad" not in registry
    assert "good" in registry


@pytest.mark.parametrize(
    "options",
    [
        {"authScheme": "saml", "module": "fakes"},
        {"module": "fakes", "strategy": "BrokenStrategy"},
    ],
)
def test_strict_setup_raises(options):
    with pytest.raises(ConfigurationError, match='auth provider "bad"'):
        setup({"bad": options}, strict_provider_setup=True)


def test_link_provider_requires_cookie_secret():
    app, registry = setup({"fakelink": {"module": "fakes", "link": True}}, signed_cookie_secret=None)
    assert "fakelink" not in registry

    with pytest.raises(ConfigurationError, match="signed_cookie_secret"):
        setup(
            {"fakelink": {"module": "fakes", "link": True}},
            signed_cookie_secret=None,
            strict_provider_setup=True,
        )


def test_route_collision_skips_second_provider():
    app, registry = setup(
        {
            "a": {"module": "fakes", "authPath": "/same"},
            "b": {"module": "fakes", "authPath": "/same"},
        }
    )
    assert "a" in registry
    assert "b" not in registry
    assert [r.name for r in app.routes if getattr(r, "path", None) == "/auth/same"] == ["a.auth"]


def test_duplicate_provider_is_fatal():
    app = FastAPI()
    registry = ProviderRegistry()
    component = AuthProviderComponent(
        app, identity_service=FakeIdentityService(), settings=make_settings(), registry=registry
    )
    component.setup_provider("fake", {"module": "fakes"})
    routes_before = len(app.routes)

    with pytest.raises(DuplicateProviderError):
        component.setup_provider("fake", {"module": "fakes", "authPath": "/other"})

    assert len(registry) == 1
    assert len(app.routes) == routes_before


def test_late_registration_rejected():
    app, registry = setup({"fake": {"module": "fakes"}})
    _, other = setup({"other": {"module": "fakes"}})

    with pytest.raises(ConfigurationError, match="frozen"):
        registry.add(other.get("other"))
    assert "other" not in registry


def test_providers_loaded_from_directory(tmp_path):
    (tmp_path / "providers.json").write_text(json.dumps({"fake": {"module": "fakes"}}), encoding="utf-8")
    (tmp_path / "providers.test.yaml").write_text("fakejson:\n  module: fakes\n  json: true\n", encoding="utf-8")

    app, registry = setup(None, providers_dir=str(tmp_path))

    assert [d.name for d in registry.list()] == ["fake", "fakejson"]


def test_no_providers_directory():
    app, registry = setup(None)
    assert len(registry) == 0
    assert registry.frozen


def test_create_app_lifespan():
    app = create_app(FakeIdentityService(), providers={"fake": {"module": "fakes"}}, settings=make_settings())
    with TestClient(app) as client:
        assert client.get("/auth/fake/login", follow_redirects=False).status_code == 302
