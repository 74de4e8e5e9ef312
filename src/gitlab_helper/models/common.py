"""Common GitLab models shared across domains."""

from __future__ import annotations

from .base import GitLabModel


class User(GitLabModel):
    id: int
    username: str = ""
    name: str = ""
    state: str = ""
    avatar_url: str | None = None
    web_url: str = ""
    email: str | None = None

    @property
    def display_name(self) -> str:
        return f"{self.name} ({self.username})"
