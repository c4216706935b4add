"""
Relay error taxonomy.

Every failure the OAuth callback can report to a client derives from
RelayError and carries an HTTP status, a stable error code and a message
that is safe to show. ConfigurationError is fatal and only raised at startup.

Note that a missing or tampered credentials cookie is NOT an error here:
it is the normal "not signed in" state (see auth.session.Unauthenticated).
"""

from typing import Any, Dict

from fastapi import status


class ConfigurationError(Exception):
    """Missing or invalid configuration (signing key, OAuth credentials)."""
    pass


class RelayError(Exception):
    """Base exception for per-request failures surfaced as JSON errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "relay_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "message": self.message}


class CallbackRequestError(RelayError):
    """The provider redirected back without a usable authorization code."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, code: str = "missing_code"):
        super().__init__(message)
        self.code = code


class OAuthExchangeError(RelayError):
    """The provider rejected the code exchange or the profile request."""

    status_code = status.HTTP_502_BAD_GATEWAY
    code = "exchange_failed"


class UpstreamUnavailableError(RelayError):
    """The provider could not be reached or did not answer in time."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "upstream_unavailable"


class IneligibleIdentityError(RelayError):
    """No identifier in the profile belongs to the institutional domain."""

    status_code = status.HTTP_403_FORBIDDEN
    code = "ineligible_account"


__all__ = [
    "ConfigurationError",
    "RelayError",
    "CallbackRequestError",
    "OAuthExchangeError",
    "UpstreamUnavailableError",
    "IneligibleIdentityError",
]
