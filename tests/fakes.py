"""
In-memory stand-ins for the fork workflow's collaborators.

Each fake records its calls in order and can be told to fail at a
specific operation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from privatefork.executor import CommandOutcome
from privatefork.models.github import GitHubUser, RepositoryRef
from privatefork.models.token import OAuthToken
from privatefork.persistence.credentials import CredentialNotFound


class FakeCredentialStore:
    """Holds at most one token in memory."""

    def __init__(
        self,
        token: Optional[OAuthToken] = None,
        retrieve_error: Optional[Exception] = None,
        save_error: Optional[Exception] = None,
    ):
        self.token = token
        self.retrieve_error = retrieve_error
        self.save_error = save_error
        self.saved: List[OAuthToken] = []
        self.deletes = 0

    def retrieve(self) -> OAuthToken:
        if self.retrieve_error is not None:
            raise self.retrieve_error
        if self.token is None:
            raise CredentialNotFound()
        return self.token

    def save(self, token: OAuthToken) -> None:
        if self.save_error is not None:
            raise self.save_error
        self.token = token
        self.saved.append(token)

    def delete(self) -> None:
        self.deletes += 1
        self.token = None


class FakeGitHub:
    """GitHubService that creates repositories under the ``octocat`` account."""

    def __init__(
        self,
        login: str = "octocat",
        user_error: Optional[Exception] = None,
        create_error: Optional[Exception] = None,
        delete_error: Optional[Exception] = None,
    ):
        self.login = login
        self.user_error = user_error
        self.create_error = create_error
        self.delete_error = delete_error
        self.calls: List[Tuple] = []

    @property
    def deleted(self) -> List[str]:
        return [call[1] for call in self.calls if call[0] == "delete"]

    def get_current_user(self) -> GitHubUser:
        self.calls.append(("get_current_user",))
        if self.user_error is not None:
            raise self.user_error
        return GitHubUser(login=self.login, id=1)

    def create_private_repository(self, name: str, description: Optional[str] = None) -> RepositoryRef:
        self.calls.append(("create", name, description))
        if self.create_error is not None:
            raise self.create_error
        return RepositoryRef(
            owner=self.login,
            name=name,
            clone_url=f"https://github.com/{self.login}/{name}.git",
            html_url=f"https://github.com/{self.login}/{name}",
        )

    def delete_repository(self, name: str) -> None:
        self.calls.append(("delete", name))
        if self.delete_error is not None:
            raise self.delete_error


class FakeGit:
    """
    GitService recording every call.

    ``errors`` maps an operation ("clone", "add_remote", "push --all",
    "push --tags") to the exception it should raise.
    """

    def __init__(self, errors: Optional[Dict[str, Exception]] = None):
        self.errors = errors or {}
        self.calls: List[Tuple] = []

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.errors:
            raise self.errors[operation]

    def clone(self, url: str, dest) -> str:
        self.calls.append(("clone", url, Path(dest)))
        self._maybe_fail("clone")
        return ""

    def add_remote(self, name: str, url: str, repo_path) -> str:
        self.calls.append(("add_remote", name, url, Path(repo_path)))
        self._maybe_fail("add_remote")
        return ""

    def push(self, remote: str, ref: str, repo_path, force: bool = False) -> str:
        self.calls.append(("push", remote, ref, Path(repo_path), force))
        self._maybe_fail(f"push {ref}")
        return ""


@dataclass
class RecordedInvocation:
    program: str
    args: List[str]
    working_dir: Optional[Path]
    timeout: Optional[float]


@dataclass
class FakeExecutor:
    """
    ProcessExecutor stand-in.

    ``responses`` maps a git subcommand (the first argument) to the outcome
    to return; anything unlisted succeeds with empty output.
    """

    responses: Dict[str, CommandOutcome] = field(default_factory=dict)
    invocations: List[RecordedInvocation] = field(default_factory=list)

    def execute(
        self,
        program: str,
        args: Sequence[str] = (),
        working_dir=None,
        timeout: Optional[float] = None,
    ) -> CommandOutcome:
        args = list(args)
        self.invocations.append(
            RecordedInvocation(
                program=program,
                args=args,
                working_dir=Path(working_dir) if working_dir is not None else None,
                timeout=timeout,
            )
        )
        subcommand = args[0] if args else ""
        return self.responses.get(subcommand, CommandOutcome.success(program, ""))

    def subcommands(self) -> List[str]:
        return [inv.args[0] for inv in self.invocations]
