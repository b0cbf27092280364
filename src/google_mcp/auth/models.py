"""Data models for OAuth client credentials and tokens.

Credential and token JSON is validated against these pydantic schemas
at the load boundary. Field names follow the on-disk formats: the
Google Cloud Console ``credentials.json`` download and the
``tokens.json`` written by this package.
"""

import time
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class SessionState(str, Enum):
    """Authentication state of a ``SessionManager``."""

    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    AUTHENTICATED = "authenticated"


class TokenStatus(str, Enum):
    """Status of the persisted token source."""

    VALID = "valid"
    EXPIRED = "expired"
    MISSING = "missing"
    INVALID = "invalid"


class ClientCredentials(BaseModel):
    """OAuth client identifier, secret and allowed redirect URIs.

    Attributes:
        client_id: OAuth client ID issued by Google Cloud Console.
        client_secret: OAuth client secret.
        redirect_uris: Redirect URIs registered for the client.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    client_id: str = Field(..., min_length=1, description="OAuth client ID")
    client_secret: str = Field(..., min_length=1, description="OAuth client secret")
    redirect_uris: list[str] = Field(default_factory=list, description="Registered redirect URIs")


class CredentialsFile(BaseModel):
    """Shape of a downloaded client credentials file.

    Desktop clients are stored under ``installed``, web application
    clients under ``web``. At least one block must be present.
    """

    model_config = ConfigDict(extra="ignore")

    installed: ClientCredentials | None = None
    web: ClientCredentials | None = None

    @model_validator(mode="after")
    def _require_block(self) -> "CredentialsFile":
        if self.installed is None and self.web is None:
            raise ValueError("expected an 'installed' or 'web' credential block")
        return self

    @property
    def client(self) -> ClientCredentials:
        """The credential block in use, preferring ``installed``."""
        return self.installed or self.web  # type: ignore[return-value]


class TokenSet(BaseModel):
    """An access token plus optional refresh token and expiry.

    Attributes:
        access_token: Bearer token for API calls.
        refresh_token: Long-lived token used to obtain new access tokens.
        expiry_date: Expiry as epoch milliseconds.
        scope: Space-separated granted scopes.
        token_type: Token type, normally "Bearer".
    """

    model_config = ConfigDict(extra="ignore")

    access_token: str = Field(..., min_length=1, description="OAuth access token")
    refresh_token: str | None = Field(default=None, description="OAuth refresh token")
    expiry_date: int | None = Field(default=None, description="Expiry in epoch milliseconds")
    scope: str | None = Field(default=None, description="Space-separated granted scopes")
    token_type: str | None = Field(default=None, description="Token type")

    @field_validator("expiry_date", mode="before")
    @classmethod
    def _coerce_expiry(cls, value: object) -> object:
        # Some writers store the expiry as a float
        if isinstance(value, float):
            return int(value)
        return value

    def is_expired(self, now_ms: int | None = None) -> bool:
        """Check whether the access token is past its expiry.

        Tokens without an expiry are treated as unexpired.

        Args:
            now_ms: Current time in epoch milliseconds. Defaults to now.

        Returns:
            True if ``expiry_date`` is set and lies before ``now_ms``.
        """
        if self.expiry_date is None:
            return False
        if now_ms is None:
            now_ms = int(time.time() * 1000)
        return self.expiry_date < now_ms

    @property
    def can_refresh(self) -> bool:
        """Whether a refresh token is available."""
        return bool(self.refresh_token)

    @property
    def scopes(self) -> list[str]:
        """Granted scopes as a list."""
        return self.scope.split() if self.scope else []

    @property
    def expires_at(self) -> datetime | None:
        """Expiry as a timezone-aware datetime."""
        if self.expiry_date is None:
            return None
        return datetime.fromtimestamp(self.expiry_date / 1000, tz=timezone.utc)
