"""Shared pydantic base for GitLab payloads and local records."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class GitLabModel(BaseModel):
    """Ignores unknown API fields and re-validates on attribute assignment."""

    model_config = {"extra": "ignore", "populate_by_name": True, "validate_assignment": True}

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)
