"""
Authentication routes for Google login, the OAuth callback and session lookup.

This module implements the OAuth 2.0 authorization code flow with Google and
issues the signed credentials cookie pair once an institutional account has
been identified.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse, Response

from utokyo_relay.auth.oauth import GoogleOAuthClient
from utokyo_relay.auth.session import (
    Authenticated,
    SessionResult,
    get_app_settings,
    get_session,
    get_signer,
    require_credentials,
    store_session,
)
from utokyo_relay.auth.signer import Signer
from utokyo_relay.auth.utils import build_credentials
from utokyo_relay.config import Settings
from utokyo_relay.errors import (
    CallbackRequestError,
    IneligibleIdentityError,
    RelayError,
)
from utokyo_relay.models import CredentialPayload, ErrorResponse

logger = logging.getLogger(__name__)


NOT_SIGNED_IN = "Not signed in"


# =============================================================================
# Router Setup
# =============================================================================

auth_router = APIRouter(
    tags=["authentication"],
)


def get_oauth_client(request: Request) -> GoogleOAuthClient:
    """OAuth client built at startup and kept on app.state."""
    return request.app.state.oauth_client


# =============================================================================
# Session Endpoints
# =============================================================================

@auth_router.get("/")
async def index(session: SessionResult = Depends(get_session)) -> Response:
    """
    Return the signed credential payload, or a plain "Not signed in".

    The payload is returned byte for byte as it was signed.
    """
    if isinstance(session, Authenticated):
        return Response(content=session.payload, media_type="application/json")
    return PlainTextResponse(NOT_SIGNED_IN)


@auth_router.get("/me", response_model=CredentialPayload)
async def me(credentials: CredentialPayload = Depends(require_credentials)) -> CredentialPayload:
    """Parsed credential payload of the signed-in user; 401 otherwise."""
    return credentials


# =============================================================================
# Login Endpoint
# =============================================================================

@auth_router.get("/login", response_class=RedirectResponse)
async def login(oauth_client: GoogleOAuthClient = Depends(get_oauth_client)):
    """
    Redirect the browser to Google's consent page.

    No state parameter is generated or checked on the way back; the flow
    relies on the signed cookie alone.
    """
    return RedirectResponse(url=oauth_client.authorization_url(), status_code=302)


# =============================================================================
# Callback Endpoint
# =============================================================================

async def handle_callback(
    code: str,
    oauth_client: Any,
    domain: str,
) -> CredentialPayload:
    """
    Turn an authorization code into a credential payload.

    Steps:
    1. Exchange the code for tokens
    2. Fetch the user's email addresses with those tokens
    3. Pick the first address of the institutional domain as canonical ID

    Args:
        code: Authorization code from the callback
        oauth_client: Object providing exchange_code() and fetch_emails()
        domain: Institutional domain the canonical ID must belong to

    Returns:
        CredentialPayload ready to be signed

    Raises:
        OAuthExchangeError: If Google rejects the code or profile request
        UpstreamUnavailableError: If Google cannot be reached in time
        IneligibleIdentityError: If no address belongs to the domain
    """
    tokens = await oauth_client.exchange_code(code)
    identifiers = await oauth_client.fetch_emails(tokens)

    credentials = build_credentials(identifiers, domain)
    if credentials is None:
        raise IneligibleIdentityError(
            f"No eligible account identifier: sign in with your @{domain} account"
        )

    return credentials


@auth_router.get("/auth")
async def callback(
    code: Optional[str] = Query(None, description="Authorization code from Google"),
    error: Optional[str] = Query(None, description="Error code if authentication failed"),
    oauth_client: GoogleOAuthClient = Depends(get_oauth_client),
    signer: Signer = Depends(get_signer),
    settings: Settings = Depends(get_app_settings),
):
    """
    Handle the OAuth callback from Google.

    On success the credentials cookie pair is set and the browser is sent
    to ``/``. On failure a JSON error body is returned and no cookie is
    written.

    Query Parameters:
        code: Authorization code from Google
        error: Error code if the user denied consent or login failed

    Returns:
        RedirectResponse to ``/`` or JSONResponse with the error
    """
    try:
        if error:
            raise CallbackRequestError(
                f"Google sign-in was not completed: {error}",
                code="access_denied",
            )
        if not code:
            raise CallbackRequestError("Missing authorization code")

        credentials = await handle_callback(code, oauth_client, settings.ALLOWED_DOMAIN)

    except IneligibleIdentityError as e:
        logger.info(f"Refused session for ineligible account: {e.message}")
        return _error_response(e)
    except RelayError as e:
        logger.warning(
            f"OAuth callback failed: {e.message}",
            extra={"error_code": e.code},
            exc_info=True,
        )
        return _error_response(e)

    response = RedirectResponse(url="/", status_code=302)
    store_session(response, credentials, signer, settings)

    logger.info(
        "Issued credentials cookie",
        extra={"account_id": credentials.id, "identifier_count": len(credentials.emails)},
    )
    return response


def _error_response(exc: RelayError) -> JSONResponse:
    body = ErrorResponse(error=exc.code, message=exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=body.model_dump(mode="json", exclude_none=True),
    )
