"""
Signed Cookie Session Module
============================

Handles storing and verifying the credentials cookie pair:

- ``<prefix>.credentials``      raw JSON credential payload
- ``<prefix>.credentials.sig``  hex HMAC of that payload

A session is valid if and only if the signature matches the payload under
the process-wide signing key. Nothing is stored server-side, so there is no
expiry and no revocation: a session lasts until the client drops the
cookies or a new login replaces them.

A missing or tampered cookie is the normal "not signed in" state and is
reported as Unauthenticated, never raised.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from fastapi import Depends, HTTPException, Request, Response, status

from utokyo_relay.auth.signer import Signer
from utokyo_relay.config import Settings
from utokyo_relay.models import CredentialPayload

logger = logging.getLogger(__name__)


# =============================================================================
# Verification Results
# =============================================================================

@dataclass(frozen=True)
class Authenticated:
    """Session cookie pair with a valid signature."""
    payload: str

    def credentials(self) -> CredentialPayload:
        """
        Parse the payload into a CredentialPayload.

        Raises:
            ValueError: If the signed payload is not a credential record
        """
        return CredentialPayload.model_validate_json(self.payload)


@dataclass(frozen=True)
class Unauthenticated:
    """No usable session: cookies missing or signature mismatch."""
    reason: str


SessionResult = Union[Authenticated, Unauthenticated]


# =============================================================================
# Verifier
# =============================================================================

class SessionVerifier:
    """
    Verifies credentials cookies against a Signer.

    Args:
        signer: Signer holding the process-wide key
        settings: Settings providing the cookie names
    """

    def __init__(self, signer: Signer, settings: Settings):
        self.signer = signer
        self.payload_cookie = settings.session_cookie_name
        self.signature_cookie = settings.signature_cookie_name

    def verify(self, payload: Optional[str], claimed_signature: Optional[str]) -> SessionResult:
        """
        Check a payload against its claimed signature.

        Returns:
            Authenticated(payload) on match, Unauthenticated otherwise
        """
        if not payload:
            return Unauthenticated("missing payload")
        if not claimed_signature:
            return Unauthenticated("missing signature")
        if not self.signer.verify(payload, claimed_signature):
            return Unauthenticated("signature mismatch")
        return Authenticated(payload)

    def verify_request(self, request: Request) -> SessionResult:
        """Verify the credentials cookies sent with a request."""
        result = self.verify(
            request.cookies.get(self.payload_cookie),
            request.cookies.get(self.signature_cookie),
        )
        if isinstance(result, Unauthenticated) and result.reason == "signature mismatch":
            logger.info(
                "Rejected credentials cookie with invalid signature",
                extra={"path": request.url.path},
            )
        return result


# =============================================================================
# Cookie Helpers
# =============================================================================

def session_cookie_kwargs(settings: Settings, key: str, value: str) -> Dict[str, Any]:
    return {
        "key": key,
        "value": value,
        "httponly": True,
        "secure": settings.COOKIE_SECURE,
        "samesite": "lax",
        "path": "/",
    }


def store_session(
    response: Response,
    credentials: CredentialPayload,
    signer: Signer,
    settings: Settings,
) -> str:
    """
    Write the credentials cookie pair onto a response.

    The payload is serialized once and that exact string is both signed and
    stored, so the cookie always verifies.

    Returns:
        The stored payload string
    """
    payload = credentials.serialize()
    signature = signer.sign(payload)
    response.set_cookie(**session_cookie_kwargs(settings, settings.session_cookie_name, payload))
    response.set_cookie(**session_cookie_kwargs(settings, settings.signature_cookie_name, signature))
    return payload


# =============================================================================
# FastAPI Dependencies
# =============================================================================

def get_signer(request: Request) -> Signer:
    """Signer built at startup and kept on app.state."""
    return request.app.state.signer


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_session_verifier(
    signer: Signer = Depends(get_signer),
    settings: Settings = Depends(get_app_settings),
) -> SessionVerifier:
    return SessionVerifier(signer, settings)


async def get_session(
    request: Request,
    verifier: SessionVerifier = Depends(get_session_verifier),
) -> SessionResult:
    """
    FastAPI dependency returning the session state of the current request.

    Usage in routes:
        @router.get("/")
        async def index(session: SessionResult = Depends(get_session)):
            if isinstance(session, Authenticated):
                ...
    """
    return verifier.verify_request(request)


async def require_credentials(
    session: SessionResult = Depends(get_session),
) -> CredentialPayload:
    """
    FastAPI dependency for routes that need a signed-in user.

    Raises:
        HTTPException: 401 when there is no valid session
    """
    if isinstance(session, Unauthenticated):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not signed in",
        )

    try:
        return session.credentials()
    except ValueError:
        # Signed with our key but not a credential record.
        logger.warning("Signed credentials cookie has an unexpected shape", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not signed in",
        )


__all__ = [
    "Authenticated",
    "Unauthenticated",
    "SessionResult",
    "SessionVerifier",
    "store_session",
    "session_cookie_kwargs",
    "get_signer",
    "get_app_settings",
    "get_session_verifier",
    "get_session",
    "require_credentials",
]
