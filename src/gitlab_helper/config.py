"""gitlab-helper configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_INSTANCE_URL = "https://gitlab.com"
SECRET_STORAGE_KEY = "gitlab-credentials"
KEYRING_SERVICE = "gitlab-helper"


def normalize_url(url: str) -> str:
    """Strip every trailing slash. Idempotent."""
    return url.rstrip("/")


def api_root(instance_url: str) -> str:
    return f"{normalize_url(instance_url)}/api/v4"


def _default_secrets_file() -> Path:
    return Path.home() / ".config" / "gitlab-helper" / "secrets.json"


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        msg = f"{name} must be an integer, got {raw!r}"
        raise ValueError(msg) from None


@dataclass
class HelperConfig:
    """Configuration for gitlab-helper, loaded from environment variables."""

    default_url: str = DEFAULT_INSTANCE_URL
    secrets_file: Path = field(default_factory=_default_secrets_file)
    timeout: int = 30
    ssl_verify: bool = True
    per_page: int = 100
    git_executable: str = "git"
    use_keyring: bool = True
    keyring_service: str = KEYRING_SERVICE

    def __post_init__(self) -> None:
        self.default_url = normalize_url(self.default_url)
        self.secrets_file = Path(self.secrets_file).expanduser()

    @classmethod
    def from_env(cls) -> HelperConfig:
        default_url = os.getenv("GITLAB_URL") or DEFAULT_INSTANCE_URL
        secrets_file = os.getenv("GITLAB_HELPER_SECRETS_FILE")
        timeout = _int_env("GITLAB_TIMEOUT", 30)
        ssl_verify = os.getenv("GITLAB_SSL_VERIFY", "true").lower() not in (
            "false",
            "0",
            "no",
        )
        per_page = _int_env("GITLAB_PER_PAGE", 100)
        git_executable = os.getenv("GITLAB_HELPER_GIT") or "git"
        use_keyring = os.getenv("GITLAB_HELPER_USE_KEYRING", "true").lower() not in (
            "false",
            "0",
            "no",
        )
        keyring_service = os.getenv("GITLAB_HELPER_KEYRING_SERVICE") or KEYRING_SERVICE

        return cls(
            default_url=default_url,
            secrets_file=Path(secrets_file) if secrets_file else _default_secrets_file(),
            timeout=timeout,
            ssl_verify=ssl_verify,
            per_page=per_page,
            git_executable=git_executable,
            use_keyring=use_keyring,
            keyring_service=keyring_service,
        )

    @property
    def default_api_url(self) -> str:
        return api_root(self.default_url)

    def validate(self) -> None:
        if not self.default_url:
            msg = "GITLAB_URL must not be empty"
            raise ValueError(msg)
        if self.timeout <= 0:
            msg = f"GITLAB_TIMEOUT must be positive, got {self.timeout}"
            raise ValueError(msg)
        if self.per_page <= 0:
            msg = f"GITLAB_PER_PAGE must be positive, got {self.per_page}"
            raise ValueError(msg)
        if self.use_keyring and not self.keyring_service:
            msg = "GITLAB_HELPER_KEYRING_SERVICE must not be empty"
            raise ValueError(msg)
