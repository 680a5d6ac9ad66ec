"""
GitHub Sync - REST client and OAuth device flow for GitHub.

REST calls authenticate with the token held by the credential store; a
missing or unusable token fails before anything goes over the network.

The device flow runs in two calls:

    session = client.initiate_device_flow()
    print(f"Open {session.verification_uri} and enter {session.user_code}")
    token = client.poll_for_access_token(
        session.device_code, session.interval, session.expires_in
    )

On success the token is written to the credential store.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Dict, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from ..models.github import (
    AccessTokenResponse,
    DeviceCodeRequest,
    DeviceCodeResponse,
    DeviceFlowSession,
    GitHubRepository,
    GitHubUser,
    RepositoryCreateRequest,
    RepositoryRef,
    TokenPollingErrorResponse,
    TokenPollingRequest,
)
from ..models.token import OAuthToken
from ..persistence.credentials import (
    CredentialError,
    CredentialNotFound,
    InvalidCredentialData,
)
from ..validation import is_valid_repository_name
from .github_errors import (
    CredentialsNotFound,
    DeviceFlowAccessDenied,
    DeviceFlowCancelled,
    DeviceFlowExpired,
    DeviceFlowInitiationFailed,
    DeviceFlowTimeout,
    DeviceFlowUnexpectedResponse,
    GitHubAPIError,
    InvalidCredentials,
    InvalidRepositoryName,
    InvalidResponse,
    NetworkError,
    RepositoryNameConflict,
    RepositoryNotFound,
    UnexpectedError,
    map_http_error,
)
from .ports import CredentialStore

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_OAUTH_URL = "https://github.com"
DEFAULT_HTTP_TIMEOUT = 15.0

DEVICE_FLOW_SCOPE = "repo user"
SLOW_DOWN_INCREMENT_SECONDS = 5

USER_AGENT = "PrivateFork/1.0"

ModelT = TypeVar("ModelT", bound=BaseModel)


class GitHubClient:
    """
    GitHub REST + OAuth device flow.

    ``sleep`` and ``clock`` drive the polling loop and can be replaced in
    tests; ``clock`` must be monotonic.
    """

    def __init__(
        self,
        credentials: CredentialStore,
        client_id: Optional[str] = None,
        api_url: str = DEFAULT_API_URL,
        oauth_url: str = DEFAULT_OAUTH_URL,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        http: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.credentials = credentials
        self.client_id = client_id
        self.api_url = api_url.rstrip("/")
        self.oauth_url = oauth_url.rstrip("/")
        self._owns_http = http is None
        self.http = http or httpx.Client(timeout=timeout)
        self._sleep = sleep
        self._clock = clock

    def close(self) -> None:
        if self._owns_http:
            self.http.close()

    def __enter__(self) -> "GitHubClient":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    # ─── Plumbing ───────────────────────────────────────────

    def _get_headers(self) -> Dict[str, str]:
        """API headers with the stored token. Raises before any I/O."""
        try:
            token = self.credentials.retrieve()
        except CredentialNotFound:
            raise CredentialsNotFound() from None
        except InvalidCredentialData as e:
            raise InvalidCredentials(str(e)) from e
        except CredentialError as e:
            raise UnexpectedError(str(e)) from e

        if token.is_expired():
            raise InvalidCredentials("token expired")

        return {
            "Accept": "application/vnd.github.v3+json",
            "Authorization": token.authorization_header,
            "User-Agent": USER_AGENT,
        }

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return self.http.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"[github] {method} {url} failed: {e}")
            raise NetworkError(str(e)) from e

    def _api(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        headers = self._get_headers()
        return self._request(method, f"{self.api_url}{path}", headers=headers, **kwargs)

    @staticmethod
    def _decode(response: httpx.Response, model: Type[ModelT]) -> ModelT:
        try:
            return model.model_validate_json(response.content)
        except ValidationError as e:
            logger.error(f"[github] Could not decode {model.__name__}: {e.error_count()} error(s)")
            raise InvalidResponse() from e

    # ─── REST ───────────────────────────────────────────────

    def get_current_user(self) -> GitHubUser:
        """GET /user for the stored token."""
        response = self._api("GET", "/user")
        if not response.is_success:
            raise map_http_error(response)
        return self._decode(response, GitHubUser)

    def validate_credentials(self) -> GitHubUser:
        """Check the stored token against GitHub."""
        return self.get_current_user()

    def repository_exists(self, name: str) -> bool:
        """True if the authenticated user owns a repository called ``name``."""
        owner = self.get_current_user().login
        response = self._api("GET", f"/repos/{owner}/{name}")

        if response.status_code == 404:
            return False
        if response.is_success:
            return True
        raise map_http_error(response)

    def delete_repository(self, name: str) -> None:
        """DELETE /repos/{owner}/{name}."""
        if not is_valid_repository_name(name):
            raise InvalidRepositoryName(name)

        owner = self.get_current_user().login
        response = self._api("DELETE", f"/repos/{owner}/{name}")
        if not response.is_success:
            raise map_http_error(response)

        logger.info(f"[github] Deleted repository {owner}/{name}")

    def create_private_repository(self, name: str, description: Optional[str] = None) -> RepositoryRef:
        """
        Create a private repository owned by the authenticated user.

        Checks for an existing repository first. Another client can still
        create the same name between the check and the POST, so a 422
        "already exists" from the POST is reported as a conflict too.

        Raises:
            InvalidRepositoryName: If ``name`` breaks GitHub's naming rules
            RepositoryNameConflict: If the name is already taken
            GitHubError: For any other API failure
        """
        if not is_valid_repository_name(name):
            raise InvalidRepositoryName(name)

        try:
            exists = self.repository_exists(name)
        except RepositoryNotFound:
            exists = False

        if exists:
            raise RepositoryNameConflict(name)

        body = RepositoryCreateRequest(name=name, description=description)
        response = self._api("POST", "/user/repos", json=body.model_dump())

        if not response.is_success:
            error = map_http_error(response)
            if isinstance(error, GitHubAPIError) and error.body.mentions("already exists"):
                raise RepositoryNameConflict(name) from error
            raise error

        repository = self._decode(response, GitHubRepository)
        logger.info(f"[github] Created private repository {repository.full_name}")
        return repository.to_ref()

    # ─── OAuth device flow ──────────────────────────────────

    def _oauth_post(self, path: str, payload: BaseModel) -> httpx.Response:
        return self._request(
            "POST",
            f"{self.oauth_url}{path}",
            headers={"Accept": "application/json", "User-Agent": USER_AGENT},
            json=payload.model_dump(),
        )

    def initiate_device_flow(self) -> DeviceFlowSession:
        """Request a device code and user code."""
        if not self.client_id:
            raise DeviceFlowInitiationFailed("no OAuth client id configured")

        try:
            response = self._oauth_post(
                "/login/device/code",
                DeviceCodeRequest(client_id=self.client_id, scope=DEVICE_FLOW_SCOPE),
            )
        except NetworkError as e:
            raise DeviceFlowInitiationFailed(e.detail) from e

        if response.status_code != 200:
            raise DeviceFlowInitiationFailed(f"HTTP {response.status_code}")

        try:
            payload = DeviceCodeResponse.model_validate_json(response.content)
        except ValidationError as e:
            raise DeviceFlowInitiationFailed("malformed response") from e

        session = DeviceFlowSession.from_response(payload)
        logger.info(
            f"[github] Device flow started (expires in {session.expires_in}s, interval {session.interval}s)"
        )
        return session

    def _wait(self, seconds: float, cancel: Optional[threading.Event]) -> bool:
        """Sleep between polls. True if cancelled while waiting."""
        if cancel is None:
            self._sleep(seconds)
            return False
        return cancel.wait(seconds)

    def poll_for_access_token(
        self,
        device_code: str,
        interval: int,
        expires_in: int,
        cancel: Optional[threading.Event] = None,
    ) -> OAuthToken:
        """
        Poll the token endpoint until the user authorizes the device.

        ``slow_down`` adds five seconds to the interval each time it is
        received. Polling stops once ``expires_in`` seconds have elapsed.

        Returns:
            The issued token, already saved to the credential store

        Raises:
            DeviceFlowExpired, DeviceFlowAccessDenied, DeviceFlowTimeout,
            DeviceFlowUnexpectedResponse, DeviceFlowCancelled,
            NetworkError, UnexpectedError (token could not be saved)
        """
        if not self.client_id:
            raise DeviceFlowUnexpectedResponse("no OAuth client id configured")

        request = TokenPollingRequest(client_id=self.client_id, device_code=device_code)
        deadline = self._clock() + expires_in

        while self._clock() < deadline:
            if self._wait(interval, cancel):
                logger.info("[github] Device flow cancelled")
                raise DeviceFlowCancelled()

            response = self._oauth_post("/login/oauth/access_token", request)

            try:
                granted = AccessTokenResponse.model_validate_json(response.content)
            except ValidationError:
                granted = None

            if granted is not None:
                return self._store_token(granted)

            try:
                failure = TokenPollingErrorResponse.model_validate_json(response.content)
            except ValidationError:
                raise DeviceFlowUnexpectedResponse(f"HTTP {response.status_code}") from None

            code = failure.error
            if code == "authorization_pending":
                logger.debug("[github] Authorization pending")
                continue
            if code == "slow_down":
                interval += SLOW_DOWN_INCREMENT_SECONDS
                logger.info(f"[github] Asked to slow down, polling every {interval}s")
                continue
            if code == "expired_token":
                raise DeviceFlowExpired()
            if code == "access_denied":
                raise DeviceFlowAccessDenied()
            raise DeviceFlowUnexpectedResponse(code)

        raise DeviceFlowTimeout()

    def _store_token(self, granted: AccessTokenResponse) -> OAuthToken:
        token = OAuthToken.issue(granted.access_token)
        try:
            self.credentials.save(token)
        except CredentialError as e:
            logger.error(f"[github] Could not save access token: {e}")
            raise UnexpectedError(f"Failed to save credentials: {e}") from e

        logger.info("[github] Device flow authorized, token saved")
        return token
