"""
Shared fixtures for the relay tests.

The Google OAuth client is replaced by an AsyncMock so no test talks to the
network; test_oauth.py covers the real client against httpx.MockTransport.
"""

from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient

from utokyo_relay.auth.routes import get_oauth_client
from utokyo_relay.auth.signer import Signer
from utokyo_relay.config import Settings
from utokyo_relay.main import create_app


TEST_SESSION_KEY = "test-session-key-0123456789abcdef0123456789"


@pytest.fixture
def settings():
    """Settings built explicitly so the environment and .env are ignored."""
    return Settings(
        _env_file=None,
        GOOGLE_CLIENT_ID="test-client-id.apps.googleusercontent.com",
        GOOGLE_CLIENT_SECRET="test-client-secret",
        GOOGLE_REDIRECT_URL="http://localhost:3000/auth",
        SESSION_KEY=TEST_SESSION_KEY,
    )


@pytest.fixture
def signer(settings):
    return Signer(settings.SESSION_KEY)


@pytest.fixture
def oauth_client():
    """Stand-in for GoogleOAuthClient with a qualifying profile by default."""
    client = Mock()
    client.authorization_url.return_value = "https://accounts.google.com/o/oauth2/v2/auth?hd=g.ecc.u-tokyo.ac.jp"
    client.exchange_code = AsyncMock(return_value={"access_token": "mock-access-token"})
    client.fetch_emails = AsyncMock(
        return_value=["1234567890@g.ecc.u-tokyo.ac.jp", "alice@gmail.com"]
    )
    return client


@pytest.fixture
def app(settings, oauth_client):
    app = create_app(settings)
    app.dependency_overrides[get_oauth_client] = lambda: oauth_client
    return app


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client
