"""
Git Sync - Clone, configure remotes, and push with git.

Every operation runs ``git`` through the ProcessExecutor and turns a failed
CommandOutcome into a GitError subclass. stderr is classified with ordered,
case-insensitive substring matching (first match wins).
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import List, Union

from ..executor import CommandOutcome, OutcomeStatus, ProcessExecutor

logger = logging.getLogger(__name__)

DEFAULT_GIT_TIMEOUT_SECONDS = 60.0

# Pushes of large histories need longer than everything else.
MIN_PUSH_TIMEOUT_SECONDS = 300.0

CLEAN_WORKING_TREE = "Working tree clean"

PathLike = Union[str, Path]


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class GitError(Exception):
    """Base exception for all git operations."""


class InvalidURLError(GitError):
    def __init__(self, url: str):
        self.url = url
        super().__init__(f"Invalid repository URL: {url}")


class InvalidPathError(GitError):
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Invalid file path: {path}")


class InvalidRepositoryError(GitError):
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Invalid Git repository at: {path}")


class AuthenticationFailedError(GitError):
    def __init__(self, stderr: str = ""):
        self.stderr = stderr
        super().__init__("Git authentication failed")


class NetworkError(GitError):
    def __init__(self, stderr: str):
        self.stderr = stderr
        super().__init__(f"Network error: {stderr}")


class RepositoryNotFoundError(GitError):
    def __init__(self, stderr: str):
        self.stderr = stderr
        super().__init__(f"Repository not found: {stderr}")


class RemoteAlreadyExistsError(GitError):
    def __init__(self, stderr: str):
        self.stderr = stderr
        super().__init__(f"Remote already exists: {stderr}")


class GitTimeoutError(GitError):
    def __init__(self, operation: str, duration: float):
        self.operation = operation
        self.duration = duration
        super().__init__(f"Git {operation} timed out after {duration} seconds")


class CommandExecutionError(GitError):
    """git ran but failed in a way that matched no known pattern."""

    def __init__(self, message: str, stderr: str = ""):
        self.stderr = stderr
        super().__init__(f"Git command failed: {message}")


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

_URL_SCHEMES = ("https://", "git://", "ssh://")
_SCP_PATTERN = re.compile(r"^[^\s/@:]+@[^\s/@:]+:")


def is_valid_git_url(url: str) -> bool:
    """Accept https://, git://, ssh:// and SCP-style ``user@host:path``."""
    lowered = url.strip().lower()
    if lowered.startswith(_URL_SCHEMES):
        return True
    return bool(_SCP_PATTERN.match(lowered))


def classify_stderr(stderr: str, operation: str) -> GitError:
    """Map git's stderr to the error taxonomy. Order matters."""
    lowered = stderr.lower()
    if "authentication failed" in lowered or "permission denied" in lowered:
        return AuthenticationFailedError(stderr)
    if "network" in lowered or "connection" in lowered:
        return NetworkError(stderr)
    if "not found" in lowered or "does not exist" in lowered:
        return RepositoryNotFoundError(stderr)
    if "already exists" in lowered:
        return RemoteAlreadyExistsError(stderr)
    return CommandExecutionError(f"Git {operation} failed: {stderr}", stderr=stderr)


def map_outcome_to_error(outcome: CommandOutcome, operation: str) -> GitError:
    """Turn a failed CommandOutcome into the matching GitError."""
    if outcome.status == OutcomeStatus.EXECUTION_FAILED:
        return classify_stderr(outcome.stderr, operation)
    if outcome.status == OutcomeStatus.TIMEOUT:
        return GitTimeoutError(operation, outcome.duration or 0.0)
    if outcome.status == OutcomeStatus.INVALID_WORKING_DIRECTORY:
        return InvalidPathError(str(outcome.working_dir))
    if outcome.status == OutcomeStatus.COMMAND_NOT_FOUND:
        return CommandExecutionError("Git command not found")
    return CommandExecutionError(f"Unexpected outcome during {operation}: {outcome.status.value}")


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class GitOperationsClient:
    """
    git subcommands on top of a ProcessExecutor.

    Methods return git's trimmed stdout and raise GitError on failure.
    """

    def __init__(
        self,
        executor: ProcessExecutor | None = None,
        timeout: float = DEFAULT_GIT_TIMEOUT_SECONDS,
    ):
        self.executor = executor or ProcessExecutor(default_timeout=timeout)
        self.timeout = timeout

    @property
    def push_timeout(self) -> float:
        """Push timeout is floored at five minutes, never capped."""
        return max(self.timeout, MIN_PUSH_TIMEOUT_SECONDS)

    def _git(
        self,
        args: List[str],
        operation: str,
        cwd: PathLike | None = None,
        timeout: float | None = None,
    ) -> str:
        outcome = self.executor.execute(
            "git",
            args,
            working_dir=cwd,
            timeout=self.timeout if timeout is None else timeout,
        )
        if outcome.ok:
            return outcome.stdout

        error = map_outcome_to_error(outcome, operation)
        logger.error(f"[git] {operation} failed: {error}")
        raise error

    def _require_repository(self, repo_path: PathLike) -> None:
        if not self.is_valid_repository(repo_path):
            raise InvalidRepositoryError(str(repo_path))

    def clone(self, url: str, dest: PathLike) -> str:
        """
        Clone ``url`` into ``dest``, creating dest's parent if needed.

        Raises:
            InvalidURLError: If the URL scheme is not supported
            InvalidPathError: If the parent directory cannot be created
            GitError: If git clone fails
        """
        if not is_valid_git_url(url):
            raise InvalidURLError(url)

        dest_path = Path(dest)
        parent = dest_path.parent
        if not parent.exists():
            try:
                parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise InvalidPathError(f"Cannot create parent directory: {parent}") from e

        logger.info(f"[git] Cloning {url} → {dest_path}")
        return self._git(["clone", url, str(dest_path)], "clone")

    def add_remote(self, name: str, url: str, repo_path: PathLike) -> str:
        """Add remote ``name`` pointing at ``url``."""
        self._require_repository(repo_path)
        if not name or not is_valid_git_url(url):
            raise InvalidURLError(url)

        logger.info(f"[git] Adding remote: {name}")
        return self._git(["remote", "add", name, url], "add remote", cwd=repo_path)

    def set_remote_url(self, name: str, url: str, repo_path: PathLike) -> str:
        """Point an existing remote at a new URL."""
        self._require_repository(repo_path)
        if not name or not is_valid_git_url(url):
            raise InvalidURLError(url)

        logger.info(f"[git] Updating remote URL for {name}")
        return self._git(["remote", "set-url", name, url], "set remote URL", cwd=repo_path)

    def push(self, remote: str, ref: str, repo_path: PathLike, force: bool = False) -> str:
        """
        Push ``ref`` (a branch, ``--all`` or ``--tags``) to ``remote``.

        Uses push_timeout rather than the default timeout.
        """
        self._require_repository(repo_path)
        if not remote or not ref:
            raise CommandExecutionError("Remote name and branch cannot be empty")

        cmd = ["push"]
        if force:
            cmd.append("--force")
        cmd.extend([remote, ref])

        logger.info(f"[git] Pushing {ref} to {remote}")
        return self._git(cmd, "push", cwd=repo_path, timeout=self.push_timeout)

    def status(self, repo_path: PathLike) -> str:
        """Porcelain status, or CLEAN_WORKING_TREE when nothing changed."""
        self._require_repository(repo_path)
        output = self._git(["status", "--porcelain"], "status", cwd=repo_path)
        return output or CLEAN_WORKING_TREE

    def is_valid_repository(self, repo_path: PathLike) -> bool:
        """True if ``git rev-parse --git-dir`` succeeds there. Never raises."""
        outcome = self.executor.execute(
            "git",
            ["rev-parse", "--git-dir"],
            working_dir=repo_path,
            timeout=self.timeout,
        )
        return outcome.ok
