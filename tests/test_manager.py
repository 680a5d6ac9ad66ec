"""
Tests for privatefork/mirror/manager.py

The orchestrator runs against in-memory fakes: no git, no network.
"""

import logging
from pathlib import Path

import pytest

from fakes import FakeCredentialStore, FakeGit, FakeGitHub
from privatefork.mirror.git_sync import (
    AuthenticationFailedError,
    NetworkError as GitNetworkError,
    RepositoryNotFoundError,
)
from privatefork.mirror.github_errors import (
    AuthenticationFailed,
    InsufficientPermissions,
    RepositoryNameConflict,
)
from privatefork.mirror.manager import (
    CredentialValidationFailed,
    ForkOrchestrator,
    GitOperationFailed,
    InvalidLocalPath,
    InvalidRepositoryURL,
    RepositoryCreationFailed,
    WorkflowInterrupted,
)
from privatefork.mirror.state import EventLevel, ForkStep
from privatefork.persistence.credentials import CredentialNotFound

URL = "https://github.com/acme/widgets"

HAPPY_PATH_MESSAGES = [
    "Validating GitHub credentials...",
    "Creating private repository 'acme-widgets-private'...",
    "Cloning original repository...",
    "Initializing clone operation...",
    "Repository cloned successfully",
    "Configuring remotes...",
    "Adding private remote...",
    "Private remote configured",
    "Pushing to private repository...",
    "Pushing all branches to private repository...",
    "All branches pushed successfully",
    "Pushing tags...",
    "Tags pushed successfully",
]


@pytest.fixture
def local_path(tmp_path) -> str:
    return str(tmp_path / "widgets")


@pytest.fixture
def orchestrator(store, github, git):
    return ForkOrchestrator(store, github, git)


class TestHappyPath:
    """Every step succeeds."""

    def test_creates_private_fork(self, orchestrator, github, local_path):
        result = orchestrator.create_private_fork(URL, local_path)

        assert result.ok
        assert result.error is None
        assert result.cleanup is None
        assert result.repository.name == "acme-widgets-private"
        assert result.message == (
            "Private fork created successfully! "
            "Repository: https://github.com/octocat/acme-widgets-private"
        )
        assert ("create", "acme-widgets-private", "Private fork of acme/widgets") in github.calls

    def test_event_order(self, orchestrator, local_path):
        result = orchestrator.create_private_fork(URL, local_path)
        assert result.messages == HAPPY_PATH_MESSAGES

    def test_callback_sees_events_as_they_happen(self, orchestrator, local_path):
        seen = []
        result = orchestrator.create_private_fork(URL, local_path, on_status=seen.append)
        assert seen == result.events

    def test_git_calls(self, orchestrator, git, local_path):
        orchestrator.create_private_fork(URL, local_path)

        clone_path = Path(local_path)
        private_url = "https://github.com/octocat/acme-widgets-private.git"
        assert git.calls == [
            ("clone", URL, clone_path),
            ("add_remote", "private", private_url, clone_path),
            ("push", "private", "--all", clone_path, False),
            ("push", "private", "--tags", clone_path, False),
        ]

    def test_git_suffix_is_stripped(self, orchestrator, github, local_path):
        result = orchestrator.create_private_fork(URL + ".git", local_path)
        assert result.repository.name == "acme-widgets-private"

    def test_validates_credentials_before_creating(self, orchestrator, github, local_path):
        orchestrator.create_private_fork(URL, local_path)
        assert [c[0] for c in github.calls] == ["get_current_user", "create"]


class TestInputValidation:
    """Failures before anything remote happens."""

    @pytest.mark.parametrize("url", ["not a url", "https://github.com/acme", ""])
    def test_invalid_url(self, orchestrator, github, git, local_path, url):
        result = orchestrator.create_private_fork(url, local_path)

        assert not result.ok
        assert isinstance(result.error, InvalidRepositoryURL)
        assert result.error.step == ForkStep.PARSE_URL
        assert result.message == f"Invalid repository URL provided: {url}"
        assert result.events == []
        assert github.calls == []
        assert git.calls == []

    def test_missing_parent_directory(self, orchestrator, github, tmp_path):
        result = orchestrator.create_private_fork(URL, str(tmp_path / "missing" / "widgets"))

        assert isinstance(result.error, InvalidLocalPath)
        assert github.calls == []


class TestCredentialFailures:
    """Step 3 failures are reported with their cause."""

    def test_no_stored_token(self, github, git, local_path):
        orchestrator = ForkOrchestrator(FakeCredentialStore(), github, git)
        result = orchestrator.create_private_fork(URL, local_path)

        assert isinstance(result.error, CredentialValidationFailed)
        assert isinstance(result.error.cause, CredentialNotFound)
        assert result.messages == ["Validating GitHub credentials..."]
        assert github.calls == []

    def test_token_rejected(self, store, git, local_path):
        github = FakeGitHub(user_error=AuthenticationFailed())
        result = ForkOrchestrator(store, github, git).create_private_fork(URL, local_path)

        assert isinstance(result.error, CredentialValidationFailed)
        assert isinstance(result.error.cause, AuthenticationFailed)
        assert result.message.startswith("Credential validation failed: ")
        assert result.cleanup is None


class TestCompensation:
    """A failure after the repository exists deletes it exactly once."""

    def test_creation_failure_needs_no_cleanup(self, store, git, local_path):
        github = FakeGitHub(create_error=RepositoryNameConflict("acme-widgets-private"))
        result = ForkOrchestrator(store, github, git).create_private_fork(URL, local_path)

        assert isinstance(result.error, RepositoryCreationFailed)
        assert result.cleanup is None
        assert github.deleted == []
        assert git.calls == []

    def test_clone_failure(self, store, github, local_path):
        git = FakeGit(errors={"clone": RepositoryNotFoundError("fatal: repository not found")})
        result = ForkOrchestrator(store, github, git).create_private_fork(URL, local_path)

        assert isinstance(result.error, GitOperationFailed)
        assert result.error.step == ForkStep.CLONE
        assert github.deleted == ["acme-widgets-private"]
        assert result.cleanup.deleted
        assert result.messages[-2:] == [
            "Cleaning up failed operation...",
            "Deleted private repository 'acme-widgets-private'",
        ]

    def test_remote_failure(self, store, github, local_path):
        git = FakeGit(errors={"add_remote": AuthenticationFailedError()})
        result = ForkOrchestrator(store, github, git).create_private_fork(URL, local_path)

        assert result.error.step == ForkStep.CONFIGURE_REMOTE
        assert github.deleted == ["acme-widgets-private"]

    def test_push_failure_deletes_once(self, store, github, local_path):
        git = FakeGit(errors={"push --all": GitNetworkError("connection reset")})
        result = ForkOrchestrator(store, github, git).create_private_fork(URL, local_path)

        assert not result.ok
        assert result.error.step == ForkStep.PUSH_BRANCHES
        assert github.deleted == ["acme-widgets-private"]
        assert result.cleanup.repository.name == "acme-widgets-private"
        assert result.cleanup.error is None
        assert "Pushing tags..." not in result.messages

    def test_failed_cleanup_is_reported(self, store, local_path):
        github = FakeGitHub(delete_error=InsufficientPermissions())
        git = FakeGit(errors={"push --all": GitNetworkError("connection reset")})
        result = ForkOrchestrator(store, github, git).create_private_fork(URL, local_path)

        assert isinstance(result.error, GitOperationFailed)
        assert github.deleted == ["acme-widgets-private"]
        assert not result.cleanup.deleted
        assert "repo" in result.cleanup.error
        assert result.events[-1].level == EventLevel.WARNING
        assert result.events[-1].message.startswith(
            "Warning: Failed to delete private repository 'acme-widgets-private' - "
        )

    def test_unexpected_exception(self, store, github, local_path):
        git = FakeGit(errors={"add_remote": RuntimeError("disk full")})
        result = ForkOrchestrator(store, github, git).create_private_fork(URL, local_path)

        assert isinstance(result.error, WorkflowInterrupted)
        assert "disk full" in result.message
        assert result.error.step == ForkStep.CONFIGURE_REMOTE
        assert github.deleted == ["acme-widgets-private"]


class TestTagPush:
    """Tag push failure is a warning only."""

    def test_fork_still_succeeds(self, store, github, local_path):
        git = FakeGit(errors={"push --tags": GitNetworkError("connection reset")})
        result = ForkOrchestrator(store, github, git).create_private_fork(URL, local_path)

        assert result.ok
        assert github.deleted == []
        warning = result.events[-1]
        assert warning.level == EventLevel.WARNING
        assert warning.message.startswith("Warning: Failed to push tags - ")
        assert "Tags pushed successfully" not in result.messages


class TestFromSettings:
    """Wiring the real clients."""

    def test_builds_clients(self, tmp_path):
        from privatefork.mirror.config import Settings
        from privatefork.mirror.git_sync import GitOperationsClient
        from privatefork.mirror.github_sync import GitHubClient

        settings = Settings(git_timeout=120, credentials_path=tmp_path / "credentials.json")
        orchestrator = ForkOrchestrator.from_settings(settings)

        assert isinstance(orchestrator.github, GitHubClient)
        assert isinstance(orchestrator.git, GitOperationsClient)
        assert orchestrator.git.timeout == 120
        assert orchestrator.credentials.path == tmp_path / "credentials.json"
        orchestrator.github.close()


class TestLogRecords:
    """Log records carry the repository for the JSON formatter."""

    def test_created_and_rolled_back_repository_is_tagged(self, store, github, local_path, caplog):
        caplog.set_level(logging.INFO, logger="privatefork.mirror.manager")
        git = FakeGit(errors={"clone": GitNetworkError("connection reset")})

        ForkOrchestrator(store, github, git).create_private_fork(URL, local_path)

        tagged = [r for r in caplog.records if hasattr(r, "repository")]
        assert [r.step for r in tagged] == ["create_repository", "cleanup"]
        assert {r.repository for r in tagged} == {"octocat/acme-widgets-private"}

    def test_failed_cleanup_is_tagged(self, store, local_path, caplog):
        caplog.set_level(logging.INFO, logger="privatefork.mirror.manager")
        github = FakeGitHub(delete_error=InsufficientPermissions())
        git = FakeGit(errors={"clone": GitNetworkError("connection reset")})

        ForkOrchestrator(store, github, git).create_private_fork(URL, local_path)

        (error,) = [r for r in caplog.records if r.levelno == logging.ERROR and hasattr(r, "repository")]
        assert error.step == "cleanup"
        assert error.repository == "octocat/acme-widgets-private"
