"""Session-aware GitLab operations."""

from __future__ import annotations

import logging

from .exceptions import NotAuthenticatedError, UnrecognizedRepositoryError
from .models import MergeRequest, MergeRequestFilter, Project, RepositoryIdentity
from .session import SessionManager

logger = logging.getLogger(__name__)


class GitLabService:
    """Runs API calls with whatever credentials the session holds at call time.

    Each call opens and closes its own client; nothing is pooled or retried.
    """

    def __init__(self, session: SessionManager) -> None:
        self.session = session

    def _require_session(self) -> None:
        if not self.session.is_authenticated:
            raise NotAuthenticatedError

    async def get_merge_requests(
        self, mr_filter: MergeRequestFilter | None = None
    ) -> list[MergeRequest]:
        """Merge requests of ``mr_filter.project_id``, or across all projects if unset."""
        self._require_session()
        mr_filter = mr_filter or MergeRequestFilter()
        async with self.session.client() as client:
            if mr_filter.project_id is not None:
                return await client.list_project_merge_requests(mr_filter.project_id, mr_filter)
            return await client.list_merge_requests(mr_filter)

    def check_instance(self, identity: RepositoryIdentity) -> str | None:
        """Describe a mismatch between the repository's host and the logged-in instance."""
        if identity.host is None or identity.matches_instance(self.session.instance_url):
            return None
        return (
            f"Repository is hosted on {identity.host} but you are logged in to "
            f"{self.session.instance_url}"
        )

    async def get_repository_merge_requests(
        self,
        identity: RepositoryIdentity,
        mr_filter: MergeRequestFilter | None = None,
    ) -> list[MergeRequest]:
        self._require_session()
        if identity.project_path is None:
            raise UnrecognizedRepositoryError(identity.remote_url)

        mismatch = self.check_instance(identity)
        if mismatch:
            logger.warning("%s", mismatch)

        base = mr_filter or MergeRequestFilter()
        scoped = base.model_copy(update={"project_id": identity.project_path})
        return await self.get_merge_requests(scoped)

    async def get_repository_merge_request(
        self, identity: RepositoryIdentity, mr_iid: int
    ) -> MergeRequest:
        """Merge request !*mr_iid* of the repository's project, whatever its state or age."""
        self._require_session()
        if identity.project_path is None:
            raise UnrecognizedRepositoryError(identity.remote_url)
        async with self.session.client() as client:
            return await client.get_project_merge_request(identity.project_path, mr_iid)

    async def get_projects(self) -> list[Project]:
        self._require_session()
        async with self.session.client() as client:
            return await client.list_projects()

    async def get_project(self, project_id: str | int) -> Project:
        self._require_session()
        async with self.session.client() as client:
            return await client.get_project(project_id)
