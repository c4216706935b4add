"""
Configuration module for the credential relay.

This module uses Pydantic Settings to load and validate environment variables
for the Google OAuth client, the session signing key, cookie handling and the
HTTP server.

Environment variables are loaded from .env file or system environment.
"""

import re
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from utokyo_relay.errors import ConfigurationError


DEFAULT_ALLOWED_DOMAIN = "g.ecc.u-tokyo.ac.jp"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Everything the relay needs at startup lives here: Google OAuth client
    credentials, the session signing key, cookie policy and server binding.
    """

    # =========================================================================
    # Google OAuth Configuration
    # =========================================================================

    GOOGLE_CLIENT_ID: str = Field(
        ...,
        description="OAuth client ID issued by Google Cloud Console",
        min_length=1,
    )

    GOOGLE_CLIENT_SECRET: str = Field(
        ...,
        description="OAuth client secret issued by Google Cloud Console",
        min_length=1,
    )

    GOOGLE_REDIRECT_URL: str = Field(
        ...,
        description="Redirect URL registered with Google (e.g., https://relay.example.com/auth)",
        min_length=1,
    )

    OAUTH_TIMEOUT_SECONDS: float = Field(
        default=10.0,
        description="Timeout applied to the token exchange and the profile fetch",
        gt=0,
        le=120,
    )

    # =========================================================================
    # Domain-based Access Control
    # =========================================================================

    ALLOWED_DOMAIN: str = Field(
        default=DEFAULT_ALLOWED_DOMAIN,
        description="Institutional email domain an account identifier must belong to",
        min_length=1,
    )

    # =========================================================================
    # Session Cookie Configuration
    # =========================================================================

    SESSION_KEY: str = Field(
        ...,
        description="Secret key for signing the credentials cookie",
        min_length=1,
    )

    COOKIE_PREFIX: str = Field(
        default="utokyo",
        description="Prefix of the credentials cookie names",
        min_length=1,
    )

    COOKIE_SECURE: bool = Field(
        default=False,
        description="Mark the credentials cookies as Secure (HTTPS only)",
    )

    # =========================================================================
    # Server Configuration
    # =========================================================================

    HOST: str = Field(
        default="0.0.0.0",
        description="Host to bind the relay server",
    )

    PORT: int = Field(
        default=3000,
        description="Port to bind the relay server",
        ge=1,
        le=65535,
    )

    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    # =========================================================================
    # Pydantic Settings Configuration
    # =========================================================================

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def session_cookie_name(self) -> str:
        """Name of the cookie holding the raw credential payload."""
        return f"{self.COOKIE_PREFIX}.credentials"

    @property
    def signature_cookie_name(self) -> str:
        """Name of the cookie holding the hex signature of the payload."""
        return f"{self.session_cookie_name}.sig"

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("SESSION_KEY")
    @classmethod
    def validate_session_key(cls, v: str) -> str:
        """
        Reject a signing key made only of whitespace.

        Raises:
            ValueError: If the key is blank
        """
        if not v.strip():
            raise ValueError("SESSION_KEY must not be blank")
        return v

    @field_validator("ALLOWED_DOMAIN")
    @classmethod
    def validate_allowed_domain(cls, v: str) -> str:
        """
        Validate ALLOWED_DOMAIN is a bare domain name.

        Args:
            v: Raw domain string

        Returns:
            Lowercased domain

        Raises:
            ValueError: If the domain contains '@', whitespace or no dot
        """
        domain = v.strip().lower()
        if "." not in domain or "@" in domain or re.search(r"\s", domain):
            raise ValueError(
                f"Invalid domain format: '{v}'. "
                "Expected format: 'example.ac.jp'"
            )
        return domain

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        level = v.upper()
        if level not in allowed_levels:
            raise ValueError(f"LOG_LEVEL must be one of {allowed_levels}, got: {v}")
        return level


# =============================================================================
# Settings Singleton
# =============================================================================

@lru_cache()
def get_settings() -> Settings:
    """
    Get or create a singleton Settings instance.

    This function is cached so that the settings are loaded only once
    during the application lifecycle.

    Returns:
        Settings instance with all configuration loaded and validated.

    Raises:
        ConfigurationError: If required environment variables are missing
                            or invalid. This is fatal at startup.
    """
    try:
        return Settings()
    except ValidationError as e:
        missing = sorted({str(err["loc"][0]) for err in e.errors() if err.get("loc")})
        raise ConfigurationError(
            f"Invalid or missing configuration: {', '.join(missing) or 'unknown'}"
        ) from e


# =============================================================================
# Configuration Helpers
# =============================================================================

def validate_configuration(settings: Optional[Settings] = None) -> dict:
    """
    Validate configuration settings and return a status report.

    Secrets are never included in the report.

    Returns:
        Dictionary with validation status, errors and warnings.

    Example:
        >>> status = validate_configuration()
        >>> if not status["valid"]:
        ...     print(status["errors"])
    """
    settings = settings or get_settings()
    errors: List[str] = []
    warnings: List[str] = []

    if len(settings.SESSION_KEY) < 32:
        warnings.append("SESSION_KEY is shorter than recommended (32+ chars)")

    if not settings.GOOGLE_REDIRECT_URL.startswith(("http://", "https://")):
        errors.append("GOOGLE_REDIRECT_URL must be an absolute http(s) URL")
    elif settings.GOOGLE_REDIRECT_URL.startswith("https://") and not settings.COOKIE_SECURE:
        warnings.append("Redirect URL uses HTTPS but COOKIE_SECURE is disabled")

    return {
        "valid": len(errors) == 0,
        "errors": errors,
        "warnings": warnings,
        "allowed_domain": settings.ALLOWED_DOMAIN,
        "cookie_names": [settings.session_cookie_name, settings.signature_cookie_name],
    }
