"""Pydantic models for OAuth tokens and their stored form.

A ``StoredToken`` is what the credential store keeps for one account
alias. The store only ever sees its JSON serialization.
"""

from datetime import datetime, timedelta, timezone
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from goog_cli.exceptions import ConfigError

GOOGLE_AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"  # nosec B105 - public endpoint


def _as_utc(value: datetime | None) -> datetime | None:
    """Make a datetime timezone-aware, treating naive values as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class TokenStatus(str, Enum):
    """State of the token stored for an alias."""

    VALID = "valid"
    EXPIRED = "expired"
    MISSING = "missing"
    INVALID = "invalid"


class OAuthToken(BaseModel):
    """An OAuth2 access/refresh token pair.

    Attributes:
        access_token: Bearer token sent to Google APIs.
        token_type: Token type, always "Bearer" for Google.
        refresh_token: Long-lived token used to mint new access tokens.
            Tokens without one cannot refresh themselves.
        expires_at: Access token expiry. ``None`` means no known expiry.
        scopes: Scopes granted when the token was issued.
    """

    access_token: str = Field(..., description="OAuth access token")
    token_type: str = Field(default="Bearer", description="Token type")
    refresh_token: str | None = Field(default=None, description="OAuth refresh token")
    expires_at: datetime | None = Field(default=None, description="Access token expiry (UTC)")
    scopes: list[str] = Field(default_factory=list, description="Granted scopes")

    @field_validator("expires_at")
    @classmethod
    def _ensure_timezone(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)

    def is_expired(self, buffer_seconds: int = 60) -> bool:
        """Check whether the access token is expired or about to expire.

        Args:
            buffer_seconds: Treat the token as expired this many seconds early.

        Returns:
            True if the token expires within ``buffer_seconds``.
        """
        if self.expires_at is None:
            return False
        return datetime.now(timezone.utc) + timedelta(seconds=buffer_seconds) >= self.expires_at


class TokenMetadata(BaseModel):
    """Bookkeeping stored alongside a token.

    Holds no alias: renaming an account moves the stored bytes to the
    new key unchanged.
    """

    provider: str = Field(default="google", description="OAuth provider")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the token was first stored",
    )
    last_refreshed: datetime | None = Field(default=None, description="Last refresh time")


class StoredToken(BaseModel):
    """Versioned envelope persisted in the credential store."""

    version: int = Field(default=1, description="Storage format version")
    metadata: TokenMetadata
    token: OAuthToken


class TokenInfo(BaseModel):
    """Read-only token introspection used by status commands."""

    alias: str
    has_token: bool = False
    is_expired: bool = False
    expiry_time: str = ""
    scopes: list[str] = Field(default_factory=list)
    token_type: str = ""


class OAuthClientConfig(BaseModel):
    """OAuth client registration used for authorization and refresh."""

    client_id: str = ""
    client_secret: str = ""
    auth_uri: str = GOOGLE_AUTH_URI
    token_uri: str = GOOGLE_TOKEN_URI
    redirect_host: str = "localhost"
    redirect_port: int = 8085
    redirect_path: str = "/callback"

    @property
    def redirect_uri(self) -> str:
        return f"http://{self.redirect_host}:{self.redirect_port}{self.redirect_path}"

    def validate_credentials(self) -> None:
        """Ensure a client ID and secret are configured.

        Raises:
            ConfigError: If either value is missing.
        """
        if not self.client_id:
            raise ConfigError(
                "OAuth client ID is not set. Set GOOG_CLIENT_ID or 'client_id' in the config file."
            )
        if not self.client_secret:
            raise ConfigError(
                "OAuth client secret is not set. "
                "Set GOOG_CLIENT_SECRET or 'client_secret' in the config file."
            )

    def to_client_config(self, redirect_uri: str | None = None) -> dict:
        """Build the client-secrets dictionary expected by google-auth-oauthlib."""
        return {
            "installed": {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "auth_uri": self.auth_uri,
                "token_uri": self.token_uri,
                "redirect_uris": [redirect_uri or self.redirect_uri],
            }
        }
