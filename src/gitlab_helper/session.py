"""Authentication state: the single GitLab session and its persisted credentials.

The session has two states. ``authenticate()`` moves it from logged out to
logged in, and ``logout()`` moves it back. Nothing else changes the state: a
failed re-validation of a stored token is reported to the caller but keeps
the credentials, so a network outage never looks like a logout.

Listeners registered with :meth:`SessionManager.subscribe` run after every
state change, strictly after the in-memory and persisted copies agree.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable

import httpx
from pydantic import ValidationError

from .client import GitLabClient
from .config import SECRET_STORAGE_KEY, HelperConfig, api_root, normalize_url
from .exceptions import (
    ConnectivityError,
    GitLabApiError,
    NotAuthenticatedError,
    StorageError,
)
from .models import Credentials, User
from .prompts import Prompter
from .storage import SecretStore

logger = logging.getLogger(__name__)

ChangeListener = Callable[[], Awaitable[None] | None]


class SessionManager:
    """Owns the credentials of one GitLab session."""

    def __init__(
        self,
        store: SecretStore,
        config: HelperConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.store = store
        self.config = config or HelperConfig.from_env()
        self._transport = transport
        self._credentials: Credentials | None = None
        self._listeners: list[ChangeListener] = []

    @classmethod
    async def open(
        cls,
        store: SecretStore,
        config: HelperConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> SessionManager:
        """Create a session and load any credentials already in *store*."""
        session = cls(store, config, transport=transport)
        await session.load()
        return session

    async def load(self) -> None:
        try:
            raw = await self.store.get(SECRET_STORAGE_KEY)
        except StorageError as e:
            logger.error("Failed to load GitLab credentials: %s", e)
            return
        if not raw:
            return
        try:
            self._credentials = Credentials.model_validate_json(raw)
        except ValidationError as e:
            # The payload holds the token, so only the error count is logged.
            logger.error(
                "Stored GitLab credentials are invalid (%d errors); starting logged out",
                e.error_count(),
            )

    # ── State ─────────────────────────────────────────────────────

    @property
    def is_authenticated(self) -> bool:
        return bool(self._credentials and self._credentials.token)

    @property
    def credentials(self) -> Credentials | None:
        return self._credentials

    @property
    def instance_url(self) -> str:
        if self._credentials and self._credentials.url:
            return self._credentials.url
        return self.config.default_url

    def get_api_url(self) -> str:
        if not self._credentials or not self._credentials.url:
            return self.config.default_api_url
        return api_root(self._credentials.url)

    def get_token(self) -> str | None:
        return self._credentials.token if self._credentials else None

    # ── Change notification ───────────────────────────────────────

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Register *listener* for authentication changes; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                result = listener()
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Authentication change listener %r failed", listener)

    # ── Operations ────────────────────────────────────────────────

    def client(self, credentials: Credentials | None = None) -> GitLabClient:
        """A fresh API client for *credentials*, or for the current session."""
        creds = credentials or self._credentials
        if creds is None or not creds.token:
            raise NotAuthenticatedError
        return GitLabClient(creds, self.config, transport=self._transport)

    async def validate_token(self, credentials: Credentials) -> User | None:
        """Fetch the user behind *credentials*.

        Returns None when the instance answers but rejects the token. Raises
        ConnectivityError when the instance cannot be reached at all.
        """
        async with self.client(credentials) as client:
            try:
                return await client.get_current_user()
            except GitLabApiError as e:
                logger.info(
                    "Token rejected by %s: %s %s", client.api_url, e.status_code, e.status_text
                )
                return None
            except ValidationError:
                logger.info("Unexpected user payload from %s", client.api_url)
                return None

    async def authenticate(self, prompter: Prompter) -> bool:
        token = await prompter.ask_token()
        if not token:
            return False

        entered_url = await prompter.ask_instance_url(self.config.default_url)
        instance_url = normalize_url(entered_url or self.config.default_url)
        credentials = Credentials(token=token, url=instance_url)

        try:
            user = await self.validate_token(credentials)
        except ConnectivityError as e:
            logger.warning("GitLab authentication failed: %s", e)
            prompter.show_error(f"GitLab authentication failed: {e}")
            return False

        if user is None:
            prompter.show_error(f"Invalid GitLab personal access token for {instance_url}")
            return False

        try:
            await self.save_credentials(credentials)
        except StorageError as e:
            prompter.show_error(f"Could not save GitLab credentials: {e}")
            return False

        prompter.show_info(f"Logged in to GitLab as {user.display_name}")
        return True

    async def save_credentials(self, credentials: Credentials) -> None:
        normalized = Credentials(
            token=credentials.token,
            url=normalize_url(credentials.url or self.config.default_url),
        )
        try:
            await self.store.store(SECRET_STORAGE_KEY, normalized.model_dump_json())
        except OSError as e:
            logger.error("Failed to save GitLab credentials: %s", e)
            msg = f"Failed to save GitLab credentials: {e}"
            raise StorageError(msg) from e
        except StorageError as e:
            logger.error("Failed to save GitLab credentials: %s", e)
            raise

        self._credentials = normalized
        logger.info("Saved GitLab credentials for %s", normalized.url)
        await self._notify()

    async def logout(self) -> None:
        """Erase the persisted and in-memory credentials.

        Raises StorageError, leaving the session logged in, if the persisted
        copy cannot be deleted.
        """
        try:
            await self.store.delete(SECRET_STORAGE_KEY)
        except OSError as e:
            logger.error("Failed to delete GitLab credentials: %s", e)
            msg = f"Failed to log out: {e}"
            raise StorageError(msg) from e
        except StorageError as e:
            logger.error("Failed to delete GitLab credentials: %s", e)
            raise

        self._credentials = None
        logger.info("Logged out of GitLab")
        await self._notify()

    async def get_current_user(self) -> User | None:
        if not self.is_authenticated or self._credentials is None:
            return None
        return await self.validate_token(self._credentials)
