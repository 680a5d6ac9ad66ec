"""
Configuration - Parse PRIVATEFORK_* environment variables.

Only the OAuth client id has no usable default, and it is needed only
for ``privatefork login``:

    PRIVATEFORK_CLIENT_ID=Iv1.xxxxxxxx

Everything else is optional:

    PRIVATEFORK_API_URL=https://api.github.com
    PRIVATEFORK_OAUTH_URL=https://github.com
    PRIVATEFORK_GIT_TIMEOUT=60
    PRIVATEFORK_HTTP_TIMEOUT=15
    PRIVATEFORK_CREDENTIALS_FILE=~/.config/privatefork/credentials.json
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from ..persistence.credentials import DEFAULT_CREDENTIALS_PATH
from .git_sync import DEFAULT_GIT_TIMEOUT_SECONDS
from .github_sync import DEFAULT_API_URL, DEFAULT_HTTP_TIMEOUT, DEFAULT_OAUTH_URL

logger = logging.getLogger(__name__)


def _float_env(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning(f"{name}={raw!r} is not a number, using {default}")
        return default
    if value <= 0:
        logger.warning(f"{name} must be positive, using {default}")
        return default
    return value


@dataclass
class Settings:
    """Runtime settings for the CLI and the clients it builds."""

    client_id: Optional[str] = None
    api_url: str = DEFAULT_API_URL
    oauth_url: str = DEFAULT_OAUTH_URL
    git_timeout: float = DEFAULT_GIT_TIMEOUT_SECONDS
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    credentials_path: Path = field(default_factory=lambda: DEFAULT_CREDENTIALS_PATH)

    @property
    def has_client_id(self) -> bool:
        return bool(self.client_id)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from environment variables (os.environ by default)."""
        env = os.environ if env is None else env

        credentials_file = env.get("PRIVATEFORK_CREDENTIALS_FILE")
        credentials_path = (
            Path(credentials_file).expanduser() if credentials_file else DEFAULT_CREDENTIALS_PATH
        )

        settings = cls(
            client_id=env.get("PRIVATEFORK_CLIENT_ID") or None,
            api_url=env.get("PRIVATEFORK_API_URL") or DEFAULT_API_URL,
            oauth_url=env.get("PRIVATEFORK_OAUTH_URL") or DEFAULT_OAUTH_URL,
            git_timeout=_float_env(env, "PRIVATEFORK_GIT_TIMEOUT", DEFAULT_GIT_TIMEOUT_SECONDS),
            http_timeout=_float_env(env, "PRIVATEFORK_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT),
            credentials_path=credentials_path,
        )

        if not settings.has_client_id:
            logger.debug("PRIVATEFORK_CLIENT_ID not set; 'login' will be unavailable")

        return settings
