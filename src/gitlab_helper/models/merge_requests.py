"""Merge request models."""

from __future__ import annotations

from typing import Any, Literal

from .base import GitLabModel
from .common import User

MergeRequestState = Literal["opened", "closed", "locked", "merged"]
MergeRequestScope = Literal["created_by_me", "assigned_to_me", "all"]
MergeRequestOrderBy = Literal["created_at", "updated_at"]
MergeRequestSort = Literal["asc", "desc"]


class MergeRequestFilter(GitLabModel):
    """Query parameters for the merge request list endpoints."""

    state: MergeRequestState | None = None
    scope: MergeRequestScope | None = None
    search: str | None = None
    order_by: MergeRequestOrderBy | None = None
    sort: MergeRequestSort | None = None
    project_id: int | str | None = None

    def to_params(self, per_page: int = 100) -> dict[str, Any]:
        params: dict[str, Any] = {}
        if self.state:
            params["state"] = self.state
        if self.scope:
            params["scope"] = self.scope
        if self.search:
            params["search"] = self.search
        if self.order_by:
            params["order_by"] = self.order_by
        if self.sort:
            params["sort"] = self.sort
        params["per_page"] = per_page
        return params


class MergeRequest(GitLabModel):
    id: int
    iid: int
    project_id: int = 0
    title: str = ""
    description: str | None = None
    state: str = ""
    created_at: str = ""
    updated_at: str = ""
    merged_at: str | None = None
    closed_at: str | None = None
    source_branch: str = ""
    target_branch: str = ""
    author: User | None = None
    assignee: User | None = None
    assignees: list[User] = []
    draft: bool = False
    work_in_progress: bool = False
    web_url: str = ""
    has_conflicts: bool = False
    merge_status: str = ""
    user_notes_count: int = 0
    should_remove_source_branch: bool | None = None
    merge_when_pipeline_succeeds: bool = False
