"""Merge request panel: the data a front end renders, and the actions it offers."""

from __future__ import annotations

import logging
import webbrowser
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .exceptions import (
    ConnectivityError,
    GitLabApiError,
    GitLabAuthError,
    GitLabError,
    GitLabNotFoundError,
    InvalidCredentialsError,
    NotAuthenticatedError,
    StorageError,
    UnrecognizedRepositoryError,
)
from .git import RepositoryResolver
from .models import MergeRequest, MergeRequestFilter, RepositoryIdentity, User
from .service import GitLabService
from .session import SessionManager

logger = logging.getLogger(__name__)


def describe_error(error: Exception) -> str:
    """Human-readable message for *error*, with a hint on what to do next."""
    message = str(error)
    hint = ""
    if isinstance(error, NotAuthenticatedError):
        hint = "Run 'gitlab-helper login' first."
    elif isinstance(error, InvalidCredentialsError):
        hint = "The token may be expired or revoked. Run 'gitlab-helper login' again."
    elif isinstance(error, ConnectivityError):
        hint = "Check the instance URL and your network connection."
    elif isinstance(error, StorageError):
        hint = "Check permissions on the secrets file (GITLAB_HELPER_SECRETS_FILE)."
    elif isinstance(error, UnrecognizedRepositoryError):
        hint = "Set 'origin' to the project's GitLab SSH or HTTP(S) URL."
    elif isinstance(error, GitLabNotFoundError):
        hint = "Verify the project path and that your token can see it."
    elif isinstance(error, GitLabAuthError):
        hint = "Check the token's permissions. It needs 'read_api' or 'api' scope."
    elif isinstance(error, GitLabApiError):
        if error.status_code == 429:
            hint = "Rate limited. Wait before retrying."
        elif error.status_code >= 500:
            hint = "GitLab reported a server error. Try again later."
    elif not isinstance(error, GitLabError):
        message = f"Unexpected error: {error}"
    return f"{message}\n{hint}" if hint else message


@dataclass
class PanelState:
    """One refresh cycle's worth of panel data."""

    authenticated: bool
    filter: MergeRequestFilter = field(default_factory=MergeRequestFilter)
    user: User | None = None
    repository: RepositoryIdentity | None = None
    merge_requests: list[MergeRequest] = field(default_factory=list)
    error: str | None = None
    warning: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "authenticated": self.authenticated,
            "filter": self.filter.to_dict(),
            "user": self.user.to_dict() if self.user else None,
            "repository": self.repository.to_dict() if self.repository else None,
            "merge_requests": [mr.to_dict() for mr in self.merge_requests],
            "error": self.error,
            "warning": self.warning,
        }


class MergeRequestPanel:
    def __init__(
        self,
        session: SessionManager,
        workspace_folders: Sequence[str | Path],
        *,
        service: GitLabService | None = None,
        resolver: RepositoryResolver | None = None,
        opener: Callable[[str], Any] | None = None,
    ) -> None:
        self.session = session
        self.workspace_folders = list(workspace_folders)
        self.service = service or GitLabService(session)
        self.resolver = resolver or RepositoryResolver(
            git_executable=session.config.git_executable
        )
        self.opener = opener or webbrowser.open
        self.filter = MergeRequestFilter(state="opened")
        self.state: PanelState | None = None
        self.stale = True
        self._unsubscribe = session.subscribe(self._on_authentication_changed)

    def _on_authentication_changed(self) -> None:
        self.stale = True

    def close(self) -> None:
        self._unsubscribe()

    def set_filter(self, **changes: Any) -> MergeRequestFilter:
        """Replace the filter with *changes* applied; raises ValidationError on bad values."""
        self.filter = MergeRequestFilter.model_validate({**self.filter.to_dict(), **changes})
        self.stale = True
        return self.filter

    def set_state(self, state: str | None) -> MergeRequestFilter:
        return self.set_filter(state=state)

    async def refresh(self) -> PanelState:
        state = PanelState(authenticated=self.session.is_authenticated, filter=self.filter)
        self.state = state
        self.stale = False
        if not state.authenticated:
            return state

        try:
            state.user = await self.session.get_current_user()
        except GitLabError as e:
            state.error = describe_error(e)
            return state
        if state.user is None:
            state.error = describe_error(InvalidCredentialsError(self.session.instance_url))
            return state

        state.repository = await self.resolver.check_git_repository(self.workspace_folders)
        try:
            if state.repository is not None and state.repository.is_gitlab_project:
                state.warning = self.service.check_instance(state.repository)
                state.merge_requests = await self.service.get_repository_merge_requests(
                    state.repository, self.filter
                )
            else:
                state.merge_requests = await self.service.get_merge_requests(self.filter)
        except Exception as e:
            logger.warning("Failed to load merge requests: %s", e)
            state.error = describe_error(e)
        return state

    async def fetch_merge_request(self, iid: int) -> MergeRequest | None:
        """Look up !*iid* on the server rather than in the last refresh.

        Inside a GitLab repository this asks the project for it directly, so
        merge requests of any state or age are found. Elsewhere the first
        listed merge request with that IID across all projects is returned.
        """
        if not self.session.is_authenticated:
            raise NotAuthenticatedError
        repository = await self.resolver.check_git_repository(self.workspace_folders)
        if repository is not None and repository.is_gitlab_project:
            mismatch = self.service.check_instance(repository)
            if mismatch:
                logger.warning("%s", mismatch)
            try:
                return await self.service.get_repository_merge_request(repository, iid)
            except GitLabNotFoundError:
                return None
        listed = await self.service.get_merge_requests(
            self.filter.model_copy(update={"state": None, "project_id": None})
        )
        return next((mr for mr in listed if mr.iid == iid), None)

    def find_merge_request(self, iid: int) -> MergeRequest | None:
        if self.state is None:
            return None
        for mr in self.state.merge_requests:
            if mr.iid == iid:
                return mr
        return None

    def open_merge_request(self, merge_request: MergeRequest | int) -> bool:
        """Open a merge request, or the IID of one from the last refresh, in a browser."""
        if isinstance(merge_request, int):
            found = self.find_merge_request(merge_request)
            if found is None:
                return False
            merge_request = found
        if not merge_request.web_url:
            return False
        self.opener(merge_request.web_url)
        return True
