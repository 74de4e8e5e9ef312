"""Tests for secret storage backends."""

from __future__ import annotations

import os
import stat
import sys

import keyring
import pytest
from keyring.backend import KeyringBackend
from keyring.errors import KeyringError

from gitlab_helper.config import HelperConfig
from gitlab_helper.exceptions import StorageError
from gitlab_helper.storage import (
    FileSecretStore,
    KeyringSecretStore,
    MemorySecretStore,
    make_secret_store,
)


class TestMemorySecretStore:
    async def test_store_get_delete(self):
        store = MemorySecretStore()
        assert await store.get("k") is None
        await store.store("k", "v")
        assert await store.get("k") == "v"
        await store.delete("k")
        assert await store.get("k") is None

    async def test_delete_missing_is_noop(self):
        store = MemorySecretStore({"other": "x"})
        await store.delete("k")
        assert store.data == {"other": "x"}


class TestFileSecretStore:
    async def test_missing_file_reads_empty(self, tmp_path):
        store = FileSecretStore(tmp_path / "nested" / "secrets.json")
        assert await store.get("k") is None

    async def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "nested" / "secrets.json"
        await FileSecretStore(path).store("k", "v")
        assert await FileSecretStore(path).get("k") == "v"

    async def test_keeps_other_keys(self, tmp_path):
        store = FileSecretStore(tmp_path / "secrets.json")
        await store.store("a", "1")
        await store.store("b", "2")
        await store.delete("a")
        assert await store.get("a") is None
        assert await store.get("b") == "2"

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    async def test_file_is_owner_only(self, tmp_path):
        path = tmp_path / "secrets.json"
        await FileSecretStore(path).store("k", "v")
        assert stat.S_IMODE(os.stat(path).st_mode) == 0o600

    async def test_no_temp_files_left(self, tmp_path):
        store = FileSecretStore(tmp_path / "secrets.json")
        await store.store("k", "v")
        await store.delete("k")
        assert [p.name for p in tmp_path.iterdir()] == ["secrets.json"]

    async def test_corrupt_file_raises(self, tmp_path):
        path = tmp_path / "secrets.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(StorageError, match="corrupt"):
            await FileSecretStore(path).get("k")

    async def test_non_object_raises(self, tmp_path):
        path = tmp_path / "secrets.json"
        path.write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(StorageError):
            await FileSecretStore(path).get("k")

    async def test_unwritable_location_raises(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        store = FileSecretStore(blocker / "secrets.json")
        with pytest.raises(StorageError, match="Cannot"):
            await store.store("k", "v")

    async def test_store_replaces_corrupt_file(self, tmp_path):
        path = tmp_path / "secrets.json"
        path.write_text("{not json", encoding="utf-8")
        store = FileSecretStore(path)
        await store.store("k", "v")
        assert await store.get("k") == "v"

    async def test_delete_on_corrupt_file_is_noop(self, tmp_path):
        path = tmp_path / "secrets.json"
        path.write_text("[1, 2]", encoding="utf-8")
        await FileSecretStore(path).delete("k")
        assert path.read_text(encoding="utf-8") == "[1, 2]"


class BrokenKeyring(KeyringBackend):
    """A keyring that is installed but refuses every operation."""

    priority = 1

    def get_password(self, service, username):
        raise KeyringError("locked")

    def set_password(self, service, username, password):
        raise KeyringError("locked")

    def delete_password(self, service, username):
        raise KeyringError("locked")


class TestKeyringSecretStore:
    async def test_store_get_delete(self, fake_keyring):
        store = KeyringSecretStore("gitlab-helper-test")
        await store.store("k", "v")
        assert fake_keyring.passwords == {("gitlab-helper-test", "k"): "v"}
        assert await store.get("k") == "v"
        await store.delete("k")
        assert await store.get("k") is None

    async def test_delete_missing_is_noop(self, fake_keyring):
        await KeyringSecretStore().delete("k")
        assert fake_keyring.passwords == {}

    async def test_keyring_failure_is_storage_error(self):
        previous = keyring.get_keyring()
        keyring.set_keyring(BrokenKeyring())
        try:
            store = KeyringSecretStore(fallback=MemorySecretStore())
            with pytest.raises(StorageError, match="locked"):
                await store.get("k")
            with pytest.raises(StorageError, match="locked"):
                await store.store("k", "v")
            with pytest.raises(StorageError, match="locked"):
                await store.delete("k")
        finally:
            keyring.set_keyring(previous)

    async def test_no_backend_without_fallback(self, no_keyring):
        with pytest.raises(StorageError, match="No keyring backend"):
            await KeyringSecretStore().store("k", "v")

    async def test_no_backend_uses_fallback(self, no_keyring):
        fallback = MemorySecretStore()
        store = KeyringSecretStore(fallback=fallback)
        await store.store("k", "v")
        assert fallback.data == {"k": "v"}
        assert await store.get("k") == "v"
        await store.delete("k")
        assert fallback.data == {}

    async def test_keyring_write_clears_fallback_copy(self, fake_keyring):
        fallback = MemorySecretStore({"k": "old"})
        store = KeyringSecretStore(fallback=fallback)
        await store.store("k", "new")
        assert fallback.data == {}
        assert await store.get("k") == "new"

    async def test_reads_fallback_when_keyring_has_nothing(self, fake_keyring):
        store = KeyringSecretStore(fallback=MemorySecretStore({"k": "from-file"}))
        assert await store.get("k") == "from-file"


class TestMakeSecretStore:
    def test_keyring_by_default(self, tmp_path):
        store = make_secret_store(HelperConfig(secrets_file=tmp_path / "s.json"))
        assert isinstance(store, KeyringSecretStore)
        assert store.service_name == "gitlab-helper"
        assert isinstance(store.fallback, FileSecretStore)
        assert store.fallback.path == tmp_path / "s.json"

    def test_file_only_when_keyring_disabled(self, tmp_path):
        config = HelperConfig(secrets_file=tmp_path / "s.json", use_keyring=False)
        assert isinstance(make_secret_store(config), FileSecretStore)
