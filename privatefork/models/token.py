"""
OAuth Token Model - Credentials obtained through the device flow.

The token is persisted by the credential store and presented to the
GitHub REST API as ``Authorization: token <access_token>``.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import BaseModel, Field

# Device-flow tokens are treated as valid for eight hours.
TOKEN_LIFETIME = timedelta(hours=8)


class OAuthToken(BaseModel):
    """Access token plus its expiry. Secrets never appear in repr/str."""

    access_token: str = Field(min_length=1)
    refresh_token: str = ""
    expires_at: datetime

    @classmethod
    def issue(cls, access_token: str, now: Optional[datetime] = None) -> "OAuthToken":
        """Create a token that expires TOKEN_LIFETIME from now."""
        now = now or datetime.now(timezone.utc)
        return cls(access_token=access_token, refresh_token="", expires_at=now + TOKEN_LIFETIME)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return now >= expires_at

    @property
    def authorization_header(self) -> str:
        return f"token {self.access_token}"

    def __repr__(self) -> str:
        return (
            "OAuthToken(access_token=[REDACTED], refresh_token=[REDACTED], "
            f"expires_at={self.expires_at.isoformat()})"
        )

    __str__ = __repr__
