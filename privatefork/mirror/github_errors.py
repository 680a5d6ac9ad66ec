"""
GitHub Errors - Error taxonomy for the REST API and the OAuth device flow.

map_http_error() is the single place an HTTP status becomes an exception.
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from typing import Optional

import httpx
from pydantic import ValidationError

from ..models.github import GitHubAPIErrorBody


class GitHubError(Exception):
    """Base exception for all GitHub operations."""


# --- Credentials ---


class CredentialsNotFound(GitHubError):
    def __init__(self) -> None:
        super().__init__("GitHub credentials not found. Run 'privatefork login' first")


class InvalidCredentials(GitHubError):
    def __init__(self, detail: str = ""):
        self.detail = detail
        message = "Invalid GitHub credentials provided"
        super().__init__(f"{message} ({detail})" if detail else message)


# --- REST ---


class AuthenticationFailed(GitHubError):
    def __init__(self) -> None:
        super().__init__("GitHub authentication failed. Please sign in again")


class InsufficientPermissions(GitHubError):
    def __init__(self) -> None:
        super().__init__("Insufficient permissions. Please ensure the token has 'repo' scope")


class RepositoryNameConflict(GitHubError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Repository '{name}' already exists")


class RateLimited(GitHubError):
    def __init__(self, retry_after: Optional[datetime] = None):
        self.retry_after = retry_after
        when = retry_after.isoformat() if retry_after else "later"
        super().__init__(f"GitHub API rate limit exceeded. Please retry after {when}")


class NetworkError(GitHubError):
    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Network error: {detail}")


class InvalidResponse(GitHubError):
    def __init__(self) -> None:
        super().__init__("Invalid response from GitHub API")


class RepositoryNotFound(GitHubError):
    def __init__(self) -> None:
        super().__init__("Repository not found")


class InvalidRepositoryName(GitHubError):
    def __init__(self, name: str = ""):
        self.name = name
        super().__init__(f"Invalid repository name provided: {name!r}" if name else "Invalid repository name provided")


class GitHubAPIError(GitHubError):
    def __init__(self, body: GitHubAPIErrorBody, status_code: Optional[int] = None):
        self.body = body
        self.status_code = status_code
        super().__init__(f"GitHub API error: {body.message}")


class UnexpectedError(GitHubError):
    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Unexpected error: {detail}")


# --- Device flow ---


class DeviceFlowError(GitHubError):
    """Base for device-flow terminal states."""


class DeviceFlowInitiationFailed(DeviceFlowError):
    def __init__(self, detail: str = ""):
        self.detail = detail
        message = "Failed to initiate GitHub device flow authentication"
        super().__init__(f"{message}: {detail}" if detail else message)


class DeviceFlowExpired(DeviceFlowError):
    def __init__(self) -> None:
        super().__init__("GitHub device flow session has expired")


class DeviceFlowAccessDenied(DeviceFlowError):
    def __init__(self) -> None:
        super().__init__("User denied access during GitHub device flow")


class DeviceFlowTimeout(DeviceFlowError):
    def __init__(self) -> None:
        super().__init__("GitHub device flow polling timed out")


class DeviceFlowUnexpectedResponse(DeviceFlowError):
    def __init__(self, detail: str = ""):
        self.detail = detail
        message = "Unexpected response from GitHub device flow API"
        super().__init__(f"{message}: {detail}" if detail else message)


class DeviceFlowCancelled(DeviceFlowError):
    def __init__(self) -> None:
        super().__init__("GitHub device flow was cancelled")


# ---------------------------------------------------------------------------
# HTTP status mapping
# ---------------------------------------------------------------------------


def parse_api_error(response: httpx.Response) -> Optional[GitHubAPIErrorBody]:
    """Decode GitHub's structured error body, or None."""
    try:
        return GitHubAPIErrorBody.model_validate_json(response.content)
    except (ValidationError, json.JSONDecodeError, ValueError):
        return None


def _parse_reset_header(value: Optional[str]) -> Optional[datetime]:
    """X-RateLimit-Reset is an epoch timestamp."""
    if not value:
        return None
    try:
        return datetime.fromtimestamp(float(value), timezone.utc)
    except (ValueError, OverflowError, OSError):
        return None


def _parse_retry_after(value: Optional[str], now: Optional[datetime] = None) -> Optional[datetime]:
    """Retry-After is a delay in seconds."""
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        return None
    now = now or datetime.now(timezone.utc)
    return now + timedelta(seconds=seconds)


def _is_rate_limited(response: httpx.Response) -> bool:
    """A 403 carrying rate-limit headers, unless quota is explicitly left."""
    headers = response.headers
    if "Retry-After" in headers:
        return True
    remaining = headers.get("X-RateLimit-Remaining")
    if remaining is not None:
        return remaining == "0"
    return "X-RateLimit-Reset" in headers


def map_http_error(response: httpx.Response) -> GitHubError:
    """Map a non-2xx response to the matching GitHubError."""
    status = response.status_code

    if status == 401:
        return AuthenticationFailed()

    if status == 403:
        if _is_rate_limited(response):
            retry_after = _parse_retry_after(response.headers.get("Retry-After")) or _parse_reset_header(
                response.headers.get("X-RateLimit-Reset")
            )
            return RateLimited(retry_after)
        return InsufficientPermissions()

    if status == 404:
        return RepositoryNotFound()

    if status == 422:
        body = parse_api_error(response)
        if body is not None:
            return GitHubAPIError(body, status)
        return InvalidRepositoryName()

    if status == 429:
        return RateLimited(_parse_retry_after(response.headers.get("Retry-After")))

    body = parse_api_error(response)
    if body is not None:
        return GitHubAPIError(body, status)
    return UnexpectedError(f"HTTP {status}")
