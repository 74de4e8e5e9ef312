"""Project models."""

from __future__ import annotations

from .base import GitLabModel


class Project(GitLabModel):
    id: int
    name: str = ""
    name_with_namespace: str = ""
    path: str = ""
    path_with_namespace: str = ""
    description: str | None = None
    web_url: str = ""
    avatar_url: str | None = None
