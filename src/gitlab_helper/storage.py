"""Secret storage backends for persisted credentials."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Protocol

import keyring
from keyring import errors as keyring_errors

from .config import KEYRING_SERVICE, HelperConfig
from .exceptions import StorageError

logger = logging.getLogger(__name__)

class SecretStore(Protocol):
    """Durable string key/value storage."""

    async def get(self, key: str) -> str | None: ...

    async def store(self, key: str, value: str) -> None: ...

    async def delete(self, key: str) -> None: ...


class MemorySecretStore:
    """Process-local store. Nothing survives the interpreter."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self.data.get(key)

    async def store(self, key: str, value: str) -> None:
        self.data[key] = value

    async def delete(self, key: str) -> None:
        self.data.pop(key, None)


class FileSecretStore:
    """JSON object on disk, readable only by the owner.

    Writes go to a temporary sibling file that replaces the original, so a
    crash mid-write leaves the previous contents intact. A document that
    cannot be parsed is reported by ``get`` and replaced by ``store``.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def _read(self, *, discard_corrupt: bool = False) -> dict[str, str]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            msg = f"Cannot read secret store {self.path}: {e}"
            raise StorageError(msg) from e
        try:
            data = json.loads(raw) if raw.strip() else {}
        except json.JSONDecodeError as e:
            if discard_corrupt:
                logger.warning("Discarding corrupt secret store %s: %s", self.path, e)
                return {}
            msg = f"Secret store {self.path} is corrupt: {e}"
            raise StorageError(msg) from e
        if not isinstance(data, dict):
            if discard_corrupt:
                logger.warning("Discarding secret store %s: not a JSON object", self.path)
                return {}
            msg = f"Secret store {self.path} does not hold a JSON object"
            raise StorageError(msg)
        return data

    def _write(self, data: dict[str, str]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".secrets-", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f)
                os.chmod(tmp, 0o600)
                os.replace(tmp, self.path)
            except BaseException:
                Path(tmp).unlink(missing_ok=True)
                raise
        except OSError as e:
            msg = f"Cannot write secret store {self.path}: {e}"
            raise StorageError(msg) from e

    async def get(self, key: str) -> str | None:
        return self._read().get(key)

    async def store(self, key: str, value: str) -> None:
        data = self._read(discard_corrupt=True)
        data[key] = value
        self._write(data)
        logger.debug("Stored secret %r in %s", key, self.path)

    async def delete(self, key: str) -> None:
        data = self._read(discard_corrupt=True)
        if key not in data:
            return
        del data[key]
        self._write(data)
        logger.debug("Deleted secret %r from %s", key, self.path)


class KeyringSecretStore:
    """Secrets kept in the OS keyring under one service name.

    With a *fallback* store, a machine with no keyring backend at all keeps
    working through the fallback; any other keyring failure is a StorageError.
    A value written to the keyring is removed from the fallback.
    """

    def __init__(
        self,
        service_name: str = KEYRING_SERVICE,
        *,
        fallback: SecretStore | None = None,
    ) -> None:
        self.service_name = service_name
        self.fallback = fallback

    async def get(self, key: str) -> str | None:
        try:
            value = await asyncio.to_thread(keyring.get_password, self.service_name, key)
        except keyring_errors.NoKeyringError as e:
            if self.fallback is None:
                raise StorageError(f"No keyring backend available: {e}") from e
            return await self.fallback.get(key)
        except keyring_errors.KeyringError as e:
            raise StorageError(f"Cannot read {key!r} from the keyring: {e}") from e
        if value is None and self.fallback is not None:
            return await self.fallback.get(key)
        return value

    async def store(self, key: str, value: str) -> None:
        try:
            await asyncio.to_thread(keyring.set_password, self.service_name, key, value)
        except keyring_errors.NoKeyringError as e:
            if self.fallback is None:
                raise StorageError(f"No keyring backend available: {e}") from e
            logger.warning("No keyring backend available, storing %r in a file instead", key)
            await self.fallback.store(key, value)
            return
        except keyring_errors.KeyringError as e:
            raise StorageError(f"Cannot write {key!r} to the keyring: {e}") from e
        logger.debug("Stored secret %r in keyring service %s", key, self.service_name)
        if self.fallback is not None:
            try:
                await self.fallback.delete(key)
            except StorageError as e:
                logger.warning("Could not remove %r from the fallback store: %s", key, e)

    async def delete(self, key: str) -> None:
        try:
            await asyncio.to_thread(keyring.delete_password, self.service_name, key)
        except keyring_errors.PasswordDeleteError:
            logger.debug("No secret %r in keyring service %s", key, self.service_name)
        except keyring_errors.NoKeyringError as e:
            if self.fallback is None:
                raise StorageError(f"No keyring backend available: {e}") from e
        except keyring_errors.KeyringError as e:
            raise StorageError(f"Cannot delete {key!r} from the keyring: {e}") from e
        if self.fallback is not None:
            await self.fallback.delete(key)


def make_secret_store(config: HelperConfig) -> SecretStore:
    """The OS keyring, falling back to ``config.secrets_file``; the file alone if disabled."""
    file_store = FileSecretStore(config.secrets_file)
    if not config.use_keyring:
        return file_store
    return KeyringSecretStore(config.keyring_service, fallback=file_store)
