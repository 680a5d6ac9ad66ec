"""
Validation - Input validation for repository names, URLs, and paths.

## Usage

    from privatefork.validation import is_valid_repository_name, parse_repository_url

    if not is_valid_repository_name(name):
        ...
    owner, repo = parse_repository_url("https://github.com/acme/widgets")
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional, Tuple
from urllib.parse import urlparse

MAX_REPOSITORY_NAME_LENGTH = 100
MAX_URL_LENGTH = 2048
MAX_PATH_LENGTH = 1024

_NAME_PUNCTUATION = frozenset("-_.")


class ValidationError(Exception):
    """Raised when validation fails."""

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[Dict] = None):
        self.message = message
        self.field = field
        self.details = details or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if self.field:
            return f"{self.field}: {self.message}"
        return self.message


def is_valid_repository_name(name: str) -> bool:
    """
    GitHub repository name rules.

    After trimming whitespace: 1-100 characters; no leading or trailing
    period; no ``..``; only alphanumerics, hyphens, underscores and periods.
    """
    trimmed = name.strip()

    if not trimmed or len(trimmed) > MAX_REPOSITORY_NAME_LENGTH:
        return False

    if trimmed.startswith(".") or trimmed.endswith("."):
        return False

    if ".." in trimmed:
        return False

    return all(ch.isalnum() or ch in _NAME_PUNCTUATION for ch in trimmed)


def parse_repository_url(url: str) -> Optional[Tuple[str, str]]:
    """
    Extract (owner, repo) from a repository URL.

    Needs at least two non-empty path segments; a trailing ``.git`` is
    stripped from the second. Returns None if the URL doesn't qualify.
    """
    try:
        path = urlparse(url.strip()).path
    except ValueError:
        return None

    segments = [s for s in path.split("/") if s]
    if len(segments) < 2:
        return None

    owner, repo = segments[0], segments[1]
    if repo.endswith(".git"):
        repo = repo[: -len(".git")]

    if not owner or not repo:
        return None
    return owner, repo


def parent_directory_exists(local_path: str) -> bool:
    """True if the directory that would contain ``local_path`` exists."""
    path = Path(local_path).expanduser()
    return path.parent.is_dir()


def validate_fork_arguments(repository_url: str, local_path: str) -> None:
    """
    Validate command-line arguments for a fork.

    Raises:
        ValidationError: field is "repository_url" or "local_path"
    """
    if len(repository_url) > MAX_URL_LENGTH:
        raise ValidationError(
            f"URL too long (max {MAX_URL_LENGTH} characters)",
            field="repository_url",
            details={"length": len(repository_url)},
        )

    if len(local_path) > MAX_PATH_LENGTH:
        raise ValidationError(
            f"Path too long (max {MAX_PATH_LENGTH} characters)",
            field="local_path",
            details={"length": len(local_path)},
        )

    parsed = urlparse(repository_url)
    if parsed.scheme != "https" or (parsed.hostname or "").lower() != "github.com":
        raise ValidationError(
            f"Expected an https://github.com/<owner>/<repo> URL, got {repository_url}",
            field="repository_url",
            details={"scheme": parsed.scheme, "host": parsed.hostname},
        )

    path = Path(local_path).expanduser()
    if path.exists() and not path.is_dir():
        raise ValidationError(
            f"Path exists but is not a directory: {local_path}",
            field="local_path",
            details={"path": str(path)},
        )

    if not path.exists() and not path.parent.is_dir():
        raise ValidationError(
            f"Parent directory does not exist: {path.parent}",
            field="local_path",
            details={"parent": str(path.parent)},
        )
