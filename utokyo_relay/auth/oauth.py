"""
Google OAuth 2.0 client.

Thin adapter over the authorization code flow with Google:
- Building the authorization URL (restricted to the institutional domain)
- Exchanging an authorization code for tokens
- Fetching the email addresses of the signed-in user

Both network calls share one httpx.AsyncClient and are bounded by
OAUTH_TIMEOUT_SECONDS. Timeouts and transport failures raise
UpstreamUnavailableError; error responses and bodies that cannot be
decoded raise OAuthExchangeError.
"""

import logging
from typing import Any, Dict, List
from urllib.parse import urlencode

import httpx

from utokyo_relay.config import Settings
from utokyo_relay.errors import OAuthExchangeError, UpstreamUnavailableError

logger = logging.getLogger(__name__)


# =============================================================================
# Google Endpoints
# =============================================================================

AUTHORIZATION_ENDPOINT = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_ENDPOINT = "https://oauth2.googleapis.com/token"
PEOPLE_ME_ENDPOINT = "https://people.googleapis.com/v1/people/me"

SCOPES = [
    "openid",
    "email",
    "profile",
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/userinfo.profile",
]


class GoogleOAuthClient:
    """
    Google authorization code flow for one registered OAuth client.

    Args:
        settings: Settings with the Google client credentials
        http_client: Shared async HTTP client, owned by the application
    """

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        self.settings = settings
        self.http_client = http_client
        self.timeout = httpx.Timeout(settings.OAUTH_TIMEOUT_SECONDS)

    # =========================================================================
    # Login
    # =========================================================================

    def authorization_url(self) -> str:
        """
        Build the URL the browser is redirected to for login.

        The ``hd`` parameter asks Google to only offer accounts of the
        institutional domain. It is a hint: the callback still checks the
        returned identifiers.
        """
        params = {
            "client_id": self.settings.GOOGLE_CLIENT_ID,
            "redirect_uri": self.settings.GOOGLE_REDIRECT_URL,
            "response_type": "code",
            "scope": " ".join(SCOPES),
            "access_type": "online",
            "hd": self.settings.ALLOWED_DOMAIN,
        }
        return f"{AUTHORIZATION_ENDPOINT}?{urlencode(params)}"

    # =========================================================================
    # Token Exchange
    # =========================================================================

    async def exchange_code(self, code: str) -> Dict[str, Any]:
        """
        Exchange an authorization code for tokens.

        Args:
            code: Authorization code from the callback query string

        Returns:
            Token response containing at least ``access_token``

        Raises:
            OAuthExchangeError: If Google rejects the code
            UpstreamUnavailableError: If Google cannot be reached in time
        """
        payload = {
            "code": code,
            "client_id": self.settings.GOOGLE_CLIENT_ID,
            "client_secret": self.settings.GOOGLE_CLIENT_SECRET,
            "redirect_uri": self.settings.GOOGLE_REDIRECT_URL,
            "grant_type": "authorization_code",
        }

        response = await self._send(
            "POST",
            TOKEN_ENDPOINT,
            data=payload,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )

        if not response.is_success:
            error_data = _json_or_empty(response)
            error_msg = error_data.get("error_description") or error_data.get("error") or "unknown error"
            logger.warning(
                f"Token exchange rejected: {error_msg}",
                extra={"status_code": response.status_code},
            )
            raise OAuthExchangeError("Unable to exchange the authorization code with Google")

        token_data = _json_or_empty(response)
        if not token_data.get("access_token"):
            raise OAuthExchangeError("Token response from Google did not contain an access token")

        return token_data

    # =========================================================================
    # Profile
    # =========================================================================

    async def fetch_emails(self, tokens: Dict[str, Any]) -> List[Any]:
        """
        Fetch the email addresses of the user the tokens belong to.

        Values are returned as Google sends them, in order, without any
        filtering; the callback decides which of them qualify.

        Raises:
            OAuthExchangeError: If the profile request is rejected
            UpstreamUnavailableError: If Google cannot be reached in time
        """
        response = await self._send(
            "GET",
            PEOPLE_ME_ENDPOINT,
            params={"personFields": "emailAddresses"},
            headers={"Authorization": f"Bearer {tokens.get('access_token', '')}"},
        )

        if not response.is_success:
            logger.warning(
                "Profile request rejected",
                extra={"status_code": response.status_code},
            )
            raise OAuthExchangeError("Unable to fetch the user profile from Google")

        profile = _json_or_empty(response)
        addresses = profile.get("emailAddresses") or []
        if not isinstance(addresses, list):
            return []

        return [entry.get("value") for entry in addresses if isinstance(entry, dict)]

    # =========================================================================
    # Transport
    # =========================================================================

    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            return await self.http_client.request(method, url, timeout=self.timeout, **kwargs)
        except httpx.TimeoutException as e:
            logger.warning(f"Timed out calling {url}: {e!r}")
            raise UpstreamUnavailableError("Google did not respond in time") from e
        except httpx.TransportError as e:
            logger.warning(f"Network error calling {url}: {e!r}")
            raise UpstreamUnavailableError("Unable to reach Google") from e
        except httpx.HTTPError as e:
            logger.warning(f"Unusable response from {url}: {e!r}")
            raise OAuthExchangeError("Google returned a response that could not be read") from e


def _json_or_empty(response: httpx.Response) -> Dict[str, Any]:
    if not response.headers.get("content-type", "").startswith("application/json"):
        return {}
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


__all__ = [
    "GoogleOAuthClient",
    "AUTHORIZATION_ENDPOINT",
    "TOKEN_ENDPOINT",
    "PEOPLE_ME_ENDPOINT",
    "SCOPES",
]
