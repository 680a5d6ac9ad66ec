"""
Credential Store - Persist the OAuth token between runs.

The token file is JSON, written atomically (temp file + rename) and
readable only by the owner.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from pydantic import ValidationError

from ..models.token import OAuthToken

logger = logging.getLogger(__name__)

DEFAULT_CREDENTIALS_PATH = Path.home() / ".config" / "privatefork" / "credentials.json"


class CredentialError(Exception):
    """Base exception for credential storage."""


class CredentialNotFound(CredentialError):
    def __init__(self) -> None:
        super().__init__("No credentials found")


class InvalidCredentialData(CredentialError):
    def __init__(self, detail: str = ""):
        self.detail = detail
        message = "Unexpected data format in credential store"
        super().__init__(f"{message}: {detail}" if detail else message)


class CredentialStoreError(CredentialError):
    """The backing storage itself failed (I/O, permissions)."""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Credential store error: {detail}")


class FileCredentialStore:
    """
    JSON-file credential store.

    retrieve() raises CredentialNotFound / InvalidCredentialData,
    save() and delete() raise CredentialStoreError.
    """

    def __init__(self, path: Path | None = None):
        self.path = Path(path) if path is not None else DEFAULT_CREDENTIALS_PATH

    def retrieve(self) -> OAuthToken:
        if not self.path.exists():
            raise CredentialNotFound()

        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise InvalidCredentialData(str(e)) from e
        except OSError as e:
            raise CredentialStoreError(str(e)) from e

        try:
            return OAuthToken.model_validate(data)
        except ValidationError as e:
            raise InvalidCredentialData(f"{e.error_count()} validation error(s)") from e

    def save(self, token: OAuthToken) -> None:
        temp_path = self.path.with_suffix(".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)

            fd = os.open(str(temp_path), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(token.model_dump_json(indent=2))
                f.write("\n")

            # Atomic rename
            os.replace(temp_path, self.path)
        except OSError as e:
            raise CredentialStoreError(str(e)) from e

        logger.info(f"[credentials] Token saved → {self.path}")

    def delete(self) -> None:
        """Remove stored credentials. Deleting nothing is not an error."""
        try:
            self.path.unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            raise CredentialStoreError(str(e)) from e

        logger.info(f"[credentials] Token deleted from {self.path}")
