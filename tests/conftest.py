"""Shared test fixtures for gitlab-helper."""

from __future__ import annotations

import keyring
import pytest
import respx
from keyring.backend import KeyringBackend
from keyring.backends import fail
from keyring.errors import PasswordDeleteError

from gitlab_helper.config import HelperConfig
from gitlab_helper.models import Credentials
from gitlab_helper.session import SessionManager
from gitlab_helper.storage import MemorySecretStore

TEST_URL = "https://gitlab.example.com"
TEST_TOKEN = "test-token"


class FakePrompter:
    """Scripted answers for ``SessionManager.authenticate``."""

    def __init__(self, token: str | None = TEST_TOKEN, url: str | None = TEST_URL) -> None:
        self.token = token
        self.url = url
        self.infos: list[str] = []
        self.errors: list[str] = []

    async def ask_token(self) -> str | None:
        return self.token

    async def ask_instance_url(self, default: str) -> str | None:
        return self.url

    def show_info(self, message: str) -> None:
        self.infos.append(message)

    def show_error(self, message: str) -> None:
        self.errors.append(message)


@pytest.fixture
def make_prompter() -> type[FakePrompter]:
    return FakePrompter


@pytest.fixture
def config(tmp_path) -> HelperConfig:
    return HelperConfig(secrets_file=tmp_path / "secrets.json")


@pytest.fixture
def store() -> MemorySecretStore:
    return MemorySecretStore()


@pytest.fixture
def session(store: MemorySecretStore, config: HelperConfig) -> SessionManager:
    return SessionManager(store, config)


@pytest.fixture
async def logged_in_session(session: SessionManager) -> SessionManager:
    await session.save_credentials(Credentials(token=TEST_TOKEN, url=TEST_URL))
    return session


@pytest.fixture
def mock_api() -> respx.MockRouter:
    with respx.mock(base_url=f"{TEST_URL}/api/v4", assert_all_called=False) as router:
        yield router


class InMemoryKeyring(KeyringBackend):
    """Keyring backend holding passwords in a dict."""

    priority = 1

    def __init__(self) -> None:
        super().__init__()
        self.passwords: dict[tuple[str, str], str] = {}

    def get_password(self, service: str, username: str) -> str | None:
        return self.passwords.get((service, username))

    def set_password(self, service: str, username: str, password: str) -> None:
        self.passwords[(service, username)] = password

    def delete_password(self, service: str, username: str) -> None:
        try:
            del self.passwords[(service, username)]
        except KeyError:
            raise PasswordDeleteError(username) from None


@pytest.fixture
def fake_keyring() -> InMemoryKeyring:
    previous = keyring.get_keyring()
    backend = InMemoryKeyring()
    keyring.set_keyring(backend)
    yield backend
    keyring.set_keyring(previous)


@pytest.fixture
def no_keyring() -> None:
    previous = keyring.get_keyring()
    keyring.set_keyring(fail.Keyring())
    yield
    keyring.set_keyring(previous)
