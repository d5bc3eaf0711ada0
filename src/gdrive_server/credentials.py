"""Process-wide credential holder for Google API access.

The server acts with a single identity: the most recently supplied
bearer token. Tokens arrive from the ``x-access-token`` header, the
``/set-token`` endpoint, or the ``GOOGLE_DRIVE_ACCESS_TOKEN`` variable
read at startup. The last write wins; concurrent requests share
whichever token was set most recently.
"""

import threading
from dataclasses import dataclass
from functools import cached_property
from typing import Any, Callable, Optional

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build

from shared.logging import get_logger

logger = get_logger(__name__)


class CredentialsUnavailable(Exception):
    """No access token could be resolved from any source."""

    def __init__(self, message: str = "Access token not set. Use /set-token or x-access-token header.") -> None:
        super().__init__(message)


class GoogleClients:
    """
    Drive and Sheets API services bound to one bearer token.

    Services are built on first use; a new instance is created whenever
    the token changes.
    """

    def __init__(self, token: str) -> None:
        self.token = token
        self.credentials = Credentials(token=token)

    @cached_property
    def drive(self) -> Any:
        return build("drive", "v3", credentials=self.credentials, cache_discovery=False)

    @cached_property
    def sheets(self) -> Any:
        return build("sheets", "v4", credentials=self.credentials, cache_discovery=False)


ClientFactory = Callable[[str], Any]


@dataclass(frozen=True)
class _Binding:
    token: str
    client: Any


class CredentialStore:
    """
    Holder of the current token and its authenticated client.

    Token and client are swapped together under a lock, so readers see
    either the old pair or the new one.
    """

    def __init__(
        self,
        env_token: Optional[str] = None,
        client_factory: ClientFactory = GoogleClients
    ) -> None:
        self._client_factory = client_factory
        self._lock = threading.Lock()
        self._dynamic: Optional[_Binding] = None
        self._env: Optional[_Binding] = None
        if env_token:
            self._env = _Binding(token=env_token, client=client_factory(env_token))

    def set_token(self, token: str) -> Any:
        """
        Replace the current token and rebuild the authenticated client.

        Setting the token that is already current keeps its client.

        Returns:
            The new client, which becomes the default for later calls
        """
        if not token:
            raise ValueError("token must be a non-empty string")

        with self._lock:
            current = self._dynamic
        if current is not None and current.token == token:
            return current.client

        binding = _Binding(token=token, client=self._client_factory(token))
        with self._lock:
            replaced = self._dynamic is not None and self._dynamic.token != token
            self._dynamic = binding

        if replaced:
            logger.info("Access token replaced")
        else:
            logger.debug("Access token set")
        return binding.client

    @property
    def current_token(self) -> Optional[str]:
        binding = self._current()
        return binding.token if binding else None

    def has_token(self) -> bool:
        return self._current() is not None

    def resolve(self, explicit: Optional[str] = None) -> Any:
        """
        Resolve an authenticated client.

        Precedence: explicit token, then the dynamically set token,
        then the startup environment token.

        Raises:
            CredentialsUnavailable: If no token is available
        """
        if explicit:
            return self._client_factory(explicit)

        binding = self._current()
        if binding is None:
            raise CredentialsUnavailable()
        return binding.client

    def validate(self, token: Optional[str] = None) -> bool:
        """
        Probe the Drive API with a minimal read to check a token works.

        Every failure collapses to False: a wrong scope, an expired token
        and an unreachable network all look the same here.
        """
        try:
            client = self.resolve(token)
            client.drive.files().list(pageSize=1, fields="files(id, name)").execute()
        except Exception as e:
            logger.warning("Access token validation failed", error=str(e))
            return False

        logger.info("Access token validation successful")
        return True

    def _current(self) -> Optional[_Binding]:
        with self._lock:
            return self._dynamic or self._env
