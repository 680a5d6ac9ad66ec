"""
Fork Manager - Orchestrates the private fork workflow.

Runs the steps strictly in order: parse URL, check local path, validate
credentials, create the private repository, clone, add the ``private``
remote, push branches and tags. The first failure stops the workflow
(tag push excepted). If the private repository was already created it is
deleted again, and the outcome of that delete is attached to the result.

## Usage

    from privatefork.mirror.manager import ForkOrchestrator

    orchestrator = ForkOrchestrator.from_settings(settings)
    result = orchestrator.create_private_fork(
        "https://github.com/acme/widgets", "/tmp/widgets",
        on_status=lambda event: print(event.message),
    )
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Callable, List, Optional

from ..models.github import RepositoryRef
from ..persistence.credentials import CredentialError
from ..validation import parent_directory_exists, parse_repository_url
from .git_sync import GitError
from .github_errors import GitHubError
from .ports import CredentialStore, GitHubService, GitService
from .state import (
    CleanupOutcome,
    EventLevel,
    ForkResult,
    ForkStep,
    ForkWorkflowState,
    StageEvent,
)

if TYPE_CHECKING:
    from .config import Settings

logger = logging.getLogger(__name__)

PRIVATE_REMOTE = "private"

StatusCallback = Callable[[StageEvent], None]


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ForkError(Exception):
    """A workflow failure: which step failed, and the underlying error."""

    def __init__(self, message: str, step: ForkStep, cause: Optional[BaseException] = None):
        self.step = step
        self.cause = cause
        super().__init__(message)


class InvalidRepositoryURL(ForkError):
    def __init__(self, url: str):
        self.url = url
        super().__init__(f"Invalid repository URL provided: {url}", ForkStep.PARSE_URL)


class InvalidLocalPath(ForkError):
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Invalid local path provided: {path}", ForkStep.VALIDATE_PATH)


class CredentialValidationFailed(ForkError):
    def __init__(self, cause: Exception):
        super().__init__(
            f"Credential validation failed: {cause}", ForkStep.VALIDATE_CREDENTIALS, cause
        )


class RepositoryCreationFailed(ForkError):
    def __init__(self, cause: GitHubError):
        super().__init__(f"Repository creation failed: {cause}", ForkStep.CREATE_REPOSITORY, cause)


class GitOperationFailed(ForkError):
    def __init__(self, step: ForkStep, cause: GitError):
        super().__init__(f"Git operation failed: {cause}", step, cause)


class WorkflowInterrupted(ForkError):
    def __init__(self, detail: str, step: ForkStep, cause: Optional[BaseException] = None):
        super().__init__(f"Workflow interrupted: {detail}", step, cause)


# ---------------------------------------------------------------------------
# Progress channel
# ---------------------------------------------------------------------------


class _StatusChannel:
    """Records events in order and forwards each one synchronously."""

    def __init__(self, callback: Optional[StatusCallback] = None):
        self.callback = callback
        self.events: List[StageEvent] = []

    def emit(self, step: ForkStep, message: str, level: EventLevel = EventLevel.INFO) -> None:
        event = StageEvent(step=step, message=message, level=level)
        self.events.append(event)
        logger.info(f"[fork] {message}", extra={"step": step.value})
        if self.callback is not None:
            self.callback(event)


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class ForkOrchestrator:
    """Creates a private copy of a public repository."""

    def __init__(
        self,
        credentials: CredentialStore,
        github: GitHubService,
        git: GitService,
    ):
        self.credentials = credentials
        self.github = github
        self.git = git

    @classmethod
    def from_settings(cls, settings: "Settings") -> "ForkOrchestrator":
        """Wire up the real clients from settings."""
        from ..persistence.credentials import FileCredentialStore
        from .git_sync import GitOperationsClient
        from .github_sync import GitHubClient

        store = FileCredentialStore(settings.credentials_path)
        github = GitHubClient(
            store,
            client_id=settings.client_id,
            api_url=settings.api_url,
            oauth_url=settings.oauth_url,
            timeout=settings.http_timeout,
        )
        git = GitOperationsClient(timeout=settings.git_timeout)
        return cls(store, github, git)

    def create_private_fork(
        self,
        repository_url: str,
        local_path: str,
        on_status: Optional[StatusCallback] = None,
    ) -> ForkResult:
        """
        Run the whole workflow. Never raises.

        Args:
            repository_url: Public repository, e.g. https://github.com/acme/widgets
            local_path: Where to clone; its parent directory must exist
            on_status: Called with each StageEvent as it happens

        Returns:
            ForkResult with ok=True and the new repository, or ok=False with
            the ForkError and (if a repository was rolled back) the cleanup outcome
        """
        channel = _StatusChannel(on_status)
        state = ForkWorkflowState()

        try:
            repository = self._run(repository_url, local_path, state, channel)
        except ForkError as error:
            return self._fail(error, state, channel)
        except Exception as e:
            logger.exception(f"[fork] Unexpected error after {state.last_completed}")
            error = WorkflowInterrupted(f"Unexpected error: {e}", self._next_step(state), e)
            return self._fail(error, state, channel)

        message = f"Private fork created successfully! Repository: {repository.html_url}"
        logger.info(f"[fork] {message}")
        return ForkResult(ok=True, message=message, repository=repository, events=channel.events)

    # ─── Steps ──────────────────────────────────────────────

    def _run(
        self,
        repository_url: str,
        local_path: str,
        state: ForkWorkflowState,
        channel: _StatusChannel,
    ) -> RepositoryRef:
        parsed = parse_repository_url(repository_url)
        if parsed is None:
            raise InvalidRepositoryURL(repository_url)
        owner, repo = parsed
        state.complete(ForkStep.PARSE_URL)

        if not parent_directory_exists(local_path):
            raise InvalidLocalPath(local_path)
        clone_path = Path(local_path).expanduser()
        state.complete(ForkStep.VALIDATE_PATH)

        self._validate_credentials(channel)
        state.complete(ForkStep.VALIDATE_CREDENTIALS)

        private_name = f"{owner}-{repo}-private"
        channel.emit(ForkStep.CREATE_REPOSITORY, f"Creating private repository '{private_name}'...")
        try:
            repository = self.github.create_private_repository(
                private_name, f"Private fork of {owner}/{repo}"
            )
        except GitHubError as e:
            raise RepositoryCreationFailed(e) from e
        state.record_repository(repository)
        logger.info(
            f"[fork] Created {repository.full_name}",
            extra={"step": ForkStep.CREATE_REPOSITORY.value, "repository": repository.full_name},
        )

        channel.emit(ForkStep.CLONE, "Cloning original repository...")
        channel.emit(ForkStep.CLONE, "Initializing clone operation...")
        try:
            self.git.clone(repository_url, clone_path)
        except GitError as e:
            raise GitOperationFailed(ForkStep.CLONE, e) from e
        channel.emit(ForkStep.CLONE, "Repository cloned successfully")
        state.complete(ForkStep.CLONE)

        channel.emit(ForkStep.CONFIGURE_REMOTE, "Configuring remotes...")
        channel.emit(ForkStep.CONFIGURE_REMOTE, "Adding private remote...")
        try:
            self.git.add_remote(PRIVATE_REMOTE, repository.clone_url, clone_path)
        except GitError as e:
            raise GitOperationFailed(ForkStep.CONFIGURE_REMOTE, e) from e
        channel.emit(ForkStep.CONFIGURE_REMOTE, "Private remote configured")
        state.complete(ForkStep.CONFIGURE_REMOTE)

        self._push(clone_path, state, channel)
        return repository

    def _validate_credentials(self, channel: _StatusChannel) -> None:
        channel.emit(ForkStep.VALIDATE_CREDENTIALS, "Validating GitHub credentials...")
        try:
            self.credentials.retrieve()
        except CredentialError as e:
            raise CredentialValidationFailed(e) from e

        try:
            user = self.github.get_current_user()
        except GitHubError as e:
            raise CredentialValidationFailed(e) from e
        logger.debug(f"[fork] Authenticated as {user.login}")

    def _push(self, clone_path: Path, state: ForkWorkflowState, channel: _StatusChannel) -> None:
        channel.emit(ForkStep.PUSH_BRANCHES, "Pushing to private repository...")
        channel.emit(ForkStep.PUSH_BRANCHES, "Pushing all branches to private repository...")
        try:
            self.git.push(PRIVATE_REMOTE, "--all", clone_path, force=False)
        except GitError as e:
            raise GitOperationFailed(ForkStep.PUSH_BRANCHES, e) from e
        channel.emit(ForkStep.PUSH_BRANCHES, "All branches pushed successfully")
        state.complete(ForkStep.PUSH_BRANCHES)

        # Tags are nice to have; a failure here doesn't fail the fork.
        channel.emit(ForkStep.PUSH_TAGS, "Pushing tags...")
        try:
            self.git.push(PRIVATE_REMOTE, "--tags", clone_path, force=False)
        except GitError as e:
            channel.emit(
                ForkStep.PUSH_TAGS, f"Warning: Failed to push tags - {e}", EventLevel.WARNING
            )
            return
        channel.emit(ForkStep.PUSH_TAGS, "Tags pushed successfully")
        state.complete(ForkStep.PUSH_TAGS)

    # ─── Failure & compensation ─────────────────────────────

    @staticmethod
    def _next_step(state: ForkWorkflowState) -> ForkStep:
        steps = list(ForkStep)
        if state.last_completed is None:
            return steps[0]
        return steps[min(steps.index(state.last_completed) + 1, len(steps) - 1)]

    def _fail(
        self,
        error: ForkError,
        state: ForkWorkflowState,
        channel: _StatusChannel,
    ) -> ForkResult:
        logger.error(f"[fork] {error}", extra={"step": error.step.value})

        cleanup = None
        if state.needs_compensation:
            cleanup = self._cleanup(state.created_repository, channel)

        return ForkResult(
            ok=False,
            message=str(error),
            error=error,
            cleanup=cleanup,
            events=channel.events,
        )

    def _cleanup(self, repository: RepositoryRef, channel: _StatusChannel) -> CleanupOutcome:
        """Delete the repository this run created. Reports, never raises."""
        channel.emit(ForkStep.CLEANUP, "Cleaning up failed operation...")
        try:
            self.github.delete_repository(repository.name)
        except Exception as e:
            logger.error(
                f"[fork] Cleanup of {repository.full_name} failed, manual cleanup may be required: {e}",
                extra={"step": ForkStep.CLEANUP.value, "repository": repository.full_name},
            )
            channel.emit(
                ForkStep.CLEANUP,
                f"Warning: Failed to delete private repository '{repository.name}' - {e}",
                EventLevel.WARNING,
            )
            return CleanupOutcome(repository=repository, deleted=False, error=str(e))

        channel.emit(ForkStep.CLEANUP, f"Deleted private repository '{repository.name}'")
        logger.info(
            f"[fork] Rolled back {repository.full_name}",
            extra={"step": ForkStep.CLEANUP.value, "repository": repository.full_name},
        )
        return CleanupOutcome(repository=repository, deleted=True)
