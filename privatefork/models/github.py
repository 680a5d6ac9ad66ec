"""
GitHub Models - Pydantic schemas for GitHub REST and OAuth payloads.

Response models ignore fields they don't declare, so new fields added by
GitHub never break decoding.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from pydantic import BaseModel, Field


# --- REST ---


class GitHubOwner(BaseModel):
    login: str
    id: int
    type: str = "User"


class GitHubUser(BaseModel):
    """The authenticated user (GET /user)."""

    login: str
    id: int
    name: Optional[str] = None
    email: Optional[str] = None
    public_repos: int = 0
    owned_private_repos: Optional[int] = None
    total_private_repos: Optional[int] = None


class GitHubRepository(BaseModel):
    """A repository as returned by POST /user/repos."""

    id: int
    name: str
    full_name: str
    description: Optional[str] = None
    private: bool
    html_url: str
    clone_url: str
    ssh_url: Optional[str] = None
    owner: GitHubOwner

    def to_ref(self) -> "RepositoryRef":
        return RepositoryRef(
            owner=self.owner.login,
            name=self.name,
            clone_url=self.clone_url,
            html_url=self.html_url,
        )


class RepositoryCreateRequest(BaseModel):
    """Body for POST /user/repos. Always private, never auto-initialized."""

    name: str
    description: Optional[str] = None
    private: bool = True
    has_issues: bool = True
    has_projects: bool = False
    has_wiki: bool = False
    auto_init: bool = False


class GitHubFieldError(BaseModel):
    resource: Optional[str] = None
    code: str
    field: Optional[str] = None
    message: Optional[str] = None


class GitHubAPIErrorBody(BaseModel):
    """Structured error body, e.g. on 422 Unprocessable Entity."""

    message: str
    documentation_url: Optional[str] = None
    errors: List[GitHubFieldError] = Field(default_factory=list)

    def mentions(self, text: str) -> bool:
        """True if the message or any field error contains ``text``."""
        needle = text.lower()
        if needle in self.message.lower():
            return True
        return any(needle in (e.message or "").lower() for e in self.errors)


@dataclass(frozen=True)
class RepositoryRef:
    """A created repository. Read-only after creation."""

    owner: str
    name: str
    clone_url: str
    html_url: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


# --- OAuth device flow ---


class DeviceCodeRequest(BaseModel):
    client_id: str
    scope: str


class DeviceCodeResponse(BaseModel):
    device_code: str
    user_code: str
    verification_uri: str
    expires_in: int
    interval: int


class TokenPollingRequest(BaseModel):
    client_id: str
    device_code: str
    grant_type: str = "urn:ietf:params:oauth:grant-type:device_code"


class AccessTokenResponse(BaseModel):
    access_token: str = Field(min_length=1)
    token_type: str = "bearer"
    scope: str = ""


class TokenPollingErrorResponse(BaseModel):
    error: str
    error_description: Optional[str] = None
    error_uri: Optional[str] = None


class DeviceFlowSession(BaseModel):
    """An issued device code. expires_at is fixed when the session starts."""

    model_config = {"frozen": True}

    device_code: str
    user_code: str
    verification_uri: str
    interval: int
    expires_in: int
    expires_at: datetime

    @classmethod
    def from_response(
        cls,
        response: DeviceCodeResponse,
        now: Optional[datetime] = None,
    ) -> "DeviceFlowSession":
        now = now or datetime.now(timezone.utc)
        return cls(
            device_code=response.device_code,
            user_code=response.user_code,
            verification_uri=response.verification_uri,
            interval=response.interval,
            expires_in=response.expires_in,
            expires_at=now + timedelta(seconds=response.expires_in),
        )
