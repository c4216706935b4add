"""
Unit Tests for the Google OAuth client
======================================

Google is replaced by httpx.MockTransport, so these tests cover request
shape, response parsing and the mapping of failures onto relay errors.
"""

from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from utokyo_relay.auth.oauth import (
    AUTHORIZATION_ENDPOINT,
    PEOPLE_ME_ENDPOINT,
    SCOPES,
    TOKEN_ENDPOINT,
    GoogleOAuthClient,
)
from utokyo_relay.errors import OAuthExchangeError, UpstreamUnavailableError


def make_client(settings, handler) -> GoogleOAuthClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GoogleOAuthClient(settings, http_client)


class TestAuthorizationUrl:
    """Test suite for GoogleOAuthClient.authorization_url"""

    def test_contains_required_parameters(self, settings):
        url = make_client(settings, lambda request: httpx.Response(200)).authorization_url()

        parsed = urlparse(url)
        params = parse_qs(parsed.query)

        assert url.startswith(AUTHORIZATION_ENDPOINT)
        assert params["client_id"] == [settings.GOOGLE_CLIENT_ID]
        assert params["redirect_uri"] == [settings.GOOGLE_REDIRECT_URL]
        assert params["response_type"] == ["code"]
        assert params["access_type"] == ["online"]
        assert params["hd"] == ["g.ecc.u-tokyo.ac.jp"]
        assert params["scope"][0].split(" ") == SCOPES


class TestExchangeCode:
    """Test suite for GoogleOAuthClient.exchange_code"""

    @pytest.mark.asyncio
    async def test_posts_code_and_returns_tokens(self, settings):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["form"] = parse_qs(request.content.decode())
            return httpx.Response(200, json={"access_token": "ya29.token", "token_type": "Bearer"})

        tokens = await make_client(settings, handler).exchange_code("auth-code")

        assert tokens["access_token"] == "ya29.token"
        assert seen["url"] == TOKEN_ENDPOINT
        assert seen["form"]["code"] == ["auth-code"]
        assert seen["form"]["grant_type"] == ["authorization_code"]
        assert seen["form"]["client_secret"] == [settings.GOOGLE_CLIENT_SECRET]

    @pytest.mark.asyncio
    async def test_invalid_grant_raises_exchange_error(self, settings):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"error": "invalid_grant", "error_description": "Bad Request"})

        with pytest.raises(OAuthExchangeError) as exc_info:
            await make_client(settings, handler).exchange_code("expired-code")

        # Provider detail is logged, not returned.
        assert "invalid_grant" not in exc_info.value.message

    @pytest.mark.asyncio
    async def test_missing_access_token_raises_exchange_error(self, settings):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"token_type": "Bearer"})

        with pytest.raises(OAuthExchangeError):
            await make_client(settings, handler).exchange_code("auth-code")

    @pytest.mark.asyncio
    async def test_timeout_raises_upstream_unavailable(self, settings):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(UpstreamUnavailableError):
            await make_client(settings, handler).exchange_code("auth-code")

    @pytest.mark.asyncio
    async def test_network_error_raises_upstream_unavailable(self, settings):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(UpstreamUnavailableError):
            await make_client(settings, handler).exchange_code("auth-code")

    @pytest.mark.asyncio
    async def test_undecodable_body_raises_exchange_error(self, settings):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                headers={"content-encoding": "gzip", "content-type": "application/json"},
                content=b"notgzip",
            )

        with pytest.raises(OAuthExchangeError):
            await make_client(settings, handler).exchange_code("auth-code")

    @pytest.mark.asyncio
    async def test_request_uses_configured_timeout(self, settings):
        settings = settings.model_copy(update={"OAUTH_TIMEOUT_SECONDS": 2.5})
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["timeout"] = request.extensions["timeout"]
            return httpx.Response(200, json={"access_token": "ya29.token"})

        await make_client(settings, handler).exchange_code("auth-code")

        assert seen["timeout"] == {"connect": 2.5, "read": 2.5, "write": 2.5, "pool": 2.5}


class TestFetchEmails:
    """Test suite for GoogleOAuthClient.fetch_emails"""

    @pytest.mark.asyncio
    async def test_returns_values_in_order(self, settings):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["authorization"] = request.headers.get("authorization")
            seen["url"] = request.url
            return httpx.Response(200, json={
                "resourceName": "people/1",
                "emailAddresses": [
                    {"value": "1234567890@g.ecc.u-tokyo.ac.jp", "metadata": {"primary": True}},
                    {"value": "alice@gmail.com"},
                    {"metadata": {}},
                    "not-a-dict",
                ],
            })

        emails = await make_client(settings, handler).fetch_emails({"access_token": "ya29.token"})

        assert emails == ["1234567890@g.ecc.u-tokyo.ac.jp", "alice@gmail.com", None]
        assert seen["authorization"] == "Bearer ya29.token"
        assert str(seen["url"]).startswith(PEOPLE_ME_ENDPOINT)
        assert seen["url"].params["personFields"] == "emailAddresses"

    @pytest.mark.asyncio
    async def test_profile_without_addresses(self, settings):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"resourceName": "people/1"})

        assert await make_client(settings, handler).fetch_emails({"access_token": "t"}) == []

    @pytest.mark.asyncio
    async def test_rejected_token_raises_exchange_error(self, settings):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"error": {"code": 401}})

        with pytest.raises(OAuthExchangeError):
            await make_client(settings, handler).fetch_emails({"access_token": "revoked"})

    @pytest.mark.asyncio
    async def test_timeout_raises_upstream_unavailable(self, settings):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        with pytest.raises(UpstreamUnavailableError):
            await make_client(settings, handler).fetch_emails({"access_token": "t"})

    @pytest.mark.asyncio
    async def test_request_uses_configured_timeout(self, settings):
        settings = settings.model_copy(update={"OAUTH_TIMEOUT_SECONDS": 2.5})
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["timeout"] = request.extensions["timeout"]
            return httpx.Response(200, json={"emailAddresses": []})

        await make_client(settings, handler).fetch_emails({"access_token": "t"})

        assert seen["timeout"] == {"connect": 2.5, "read": 2.5, "write": 2.5, "pool": 2.5}
