"""
Data Models Module

Pydantic models for the credential payload stored in the session cookie and
for the JSON bodies the relay returns.
"""

import json
from datetime import datetime, timezone
from typing import List

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# Credential Models
# ============================================================================

class CredentialPayload(BaseModel):
    """Identity record carried in the signed credentials cookie."""
    id: str = Field(..., description="Canonical 10-digit account ID", pattern=r"^[0-9]{10}$")
    emails: List[str] = Field(default_factory=list, description="Identifiers returned by the provider")

    def serialize(self) -> str:
        """
        Deterministic JSON encoding used as the signed cookie value.

        Keys are sorted and separators fixed so the same identity always
        yields the same bytes, and therefore the same signature.
        """
        return json.dumps(
            self.model_dump(),
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=True,
        )


# ============================================================================
# Health Check Models
# ============================================================================

class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service health status")
    service: str = Field(..., description="Service name")
    version: str = Field(..., description="Service version")


# ============================================================================
# Error Models
# ============================================================================

class ErrorResponse(BaseModel):
    """Standardized error response model."""
    error: str = Field(..., description="Error type or code")
    message: str = Field(..., description="Human-readable error message")
    timestamp: datetime = Field(default_factory=_utcnow, description="Error timestamp")
