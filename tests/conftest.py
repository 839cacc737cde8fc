import pytest
from fastapi.testclient import TestClient

from authgate.core.tokens import AccessToken
from authgate.main import create_app

from fakes import FakeIdentityService, FakeTokenStore, make_settings


@pytest.fixture
def identity_service() -> FakeIdentityService:
    return FakeIdentityService()


@pytest.fixture
def token_store() -> FakeTokenStore:
    return FakeTokenStore({"tok-caller": AccessToken(id="tok-caller", ttl=3600, user_id="u-caller")})


@pytest.fixture
def build_client(identity_service, token_store):
    """Create a TestClient for an app with the given providers."""

    def _build(providers, settings=None, **kwargs):
        app = create_app(
            identity_service,
            token_store=token_store,
            providers=providers,
            settings=settings or make_settings(),
            **kwargs,
        )
        return TestClient(app)

    return _build
