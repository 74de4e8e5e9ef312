"""Credential record held by the session and persisted in the secret store."""

from __future__ import annotations

from pydantic import field_validator

from ..config import normalize_url
from .base import GitLabModel


class Credentials(GitLabModel):
    token: str
    url: str | None = None

    @field_validator("url")
    @classmethod
    def _strip_trailing_slashes(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return normalize_url(value)
