"""
Ports - The capabilities the fork workflow depends on.

Structural protocols only; the concrete clients satisfy them without
inheriting from anything, and tests substitute in-memory fakes.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Protocol, Union

from ..models.github import GitHubUser, RepositoryRef
from ..models.token import OAuthToken

PathLike = Union[str, Path]


class CredentialStore(Protocol):
    def retrieve(self) -> OAuthToken: ...

    def save(self, token: OAuthToken) -> None: ...

    def delete(self) -> None: ...


class GitHubService(Protocol):
    def get_current_user(self) -> GitHubUser: ...

    def create_private_repository(
        self, name: str, description: Optional[str] = None
    ) -> RepositoryRef: ...

    def delete_repository(self, name: str) -> None: ...


class GitService(Protocol):
    def clone(self, url: str, dest: PathLike) -> str: ...

    def add_remote(self, name: str, url: str, repo_path: PathLike) -> str: ...

    def push(self, remote: str, ref: str, repo_path: PathLike, force: bool = False) -> str: ...
