"""
Shared fixtures.

Nothing here touches the network, the real credential file, or a real
GitHub account.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from privatefork.models.token import OAuthToken

from fakes import FakeCredentialStore, FakeGit, FakeGitHub


@pytest.fixture
def token() -> OAuthToken:
    """A token that is still valid."""
    return OAuthToken(
        access_token="gho_testtoken",
        expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
    )


@pytest.fixture
def expired_token() -> OAuthToken:
    return OAuthToken(
        access_token="gho_oldtoken",
        expires_at=datetime.now(timezone.utc) - timedelta(minutes=1),
    )


@pytest.fixture
def store(token) -> FakeCredentialStore:
    return FakeCredentialStore(token=token)


@pytest.fixture
def github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture
def git() -> FakeGit:
    return FakeGit()
