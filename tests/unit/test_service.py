"""Tests for session-aware GitLab operations."""

from __future__ import annotations

import httpx
import pytest

from gitlab_helper.exceptions import (
    GitLabAuthError,
    GitLabNotFoundError,
    NotAuthenticatedError,
    UnrecognizedRepositoryError,
)
from gitlab_helper.git import identity_from_remote
from gitlab_helper.models import Credentials, MergeRequestFilter
from gitlab_helper.service import GitLabService

MR = {"id": 100, "iid": 4, "project_id": 9, "title": "Tidy", "state": "opened"}


class TestNotAuthenticated:
    async def test_get_merge_requests(self, session):
        with pytest.raises(NotAuthenticatedError):
            await GitLabService(session).get_merge_requests()

    async def test_get_projects(self, session):
        with pytest.raises(NotAuthenticatedError):
            await GitLabService(session).get_projects()


class TestMergeRequests:
    async def test_global_endpoint_without_project(self, logged_in_session, mock_api):
        route = mock_api.get("/merge_requests").mock(return_value=httpx.Response(200, json=[MR]))
        result = await GitLabService(logged_in_session).get_merge_requests(
            MergeRequestFilter(scope="created_by_me")
        )
        assert [mr.iid for mr in result] == [4]
        assert route.calls.last.request.url.params["scope"] == "created_by_me"

    async def test_project_endpoint_with_project_id(self, logged_in_session, mock_api):
        route = mock_api.get("/projects/9/merge_requests").mock(
            return_value=httpx.Response(200, json=[MR])
        )
        await GitLabService(logged_in_session).get_merge_requests(
            MergeRequestFilter(project_id=9, state="merged")
        )
        assert route.calls.last.request.url.params["state"] == "merged"

    async def test_repository_merge_requests(self, logged_in_session, mock_api):
        route = mock_api.get("/projects/team%2Fapp/merge_requests").mock(
            return_value=httpx.Response(200, json=[MR])
        )
        identity = identity_from_remote("/w", "git@gitlab.example.com:team/app.git")
        result = await GitLabService(logged_in_session).get_repository_merge_requests(
            identity, MergeRequestFilter(state="opened")
        )
        assert route.called
        assert result[0].title == "Tidy"

    async def test_repository_without_project(self, logged_in_session):
        identity = identity_from_remote("/w", "file:///srv/repo.git")
        with pytest.raises(UnrecognizedRepositoryError):
            await GitLabService(logged_in_session).get_repository_merge_requests(identity)

    async def test_api_errors_propagate(self, logged_in_session, mock_api):
        mock_api.get("/merge_requests").mock(return_value=httpx.Response(403))
        with pytest.raises(GitLabAuthError):
            await GitLabService(logged_in_session).get_merge_requests()

    async def test_uses_credentials_current_at_call_time(self, logged_in_session, mock_api):
        route = mock_api.get("/merge_requests").mock(return_value=httpx.Response(200, json=[]))
        service = GitLabService(logged_in_session)
        await logged_in_session.save_credentials(
            Credentials(token="rotated", url="https://gitlab.example.com")
        )
        await service.get_merge_requests()
        assert route.calls.last.request.headers["PRIVATE-TOKEN"] == "rotated"


    async def test_single_merge_request_of_repository(self, logged_in_session, mock_api):
        route = mock_api.get("/projects/team%2Fapp/merge_requests/4").mock(
            return_value=httpx.Response(200, json=MR)
        )
        identity = identity_from_remote("/w", "git@gitlab.example.com:team/app.git")
        mr = await GitLabService(logged_in_session).get_repository_merge_request(identity, 4)
        assert route.called
        assert mr.iid == 4

    async def test_single_merge_request_without_project(self, logged_in_session):
        identity = identity_from_remote("/w", "file:///srv/repo.git")
        with pytest.raises(UnrecognizedRepositoryError):
            await GitLabService(logged_in_session).get_repository_merge_request(identity, 4)


class TestInstanceMismatch:
    async def test_mismatch_reported_and_not_substituted(
        self, logged_in_session, mock_api, caplog
    ):
        # The request still goes to the logged-in instance, never to github.com.
        route = mock_api.get("/projects/foo%2Fbar/merge_requests").mock(
            return_value=httpx.Response(404, json={"message": "404 Project Not Found"})
        )
        identity = identity_from_remote("/w", "https://github.com/foo/bar.git")
        service = GitLabService(logged_in_session)

        message = service.check_instance(identity)
        assert message is not None
        assert "https://github.com" in message
        assert "https://gitlab.example.com" in message

        with pytest.raises(GitLabNotFoundError):
            await service.get_repository_merge_requests(identity)
        assert route.called
        assert "https://github.com" in caplog.text

    async def test_matching_instance(self, logged_in_session):
        identity = identity_from_remote("/w", "git@gitlab.example.com:team/app.git")
        assert GitLabService(logged_in_session).check_instance(identity) is None


class TestProjects:
    async def test_get_projects(self, logged_in_session, mock_api):
        mock_api.get("/projects").mock(
            return_value=httpx.Response(200, json=[{"id": 1, "name": "app"}])
        )
        result = await GitLabService(logged_in_session).get_projects()
        assert result[0].name == "app"

    async def test_get_project(self, logged_in_session, mock_api):
        mock_api.get("/projects/42").mock(return_value=httpx.Response(200, json={"id": 42}))
        project = await GitLabService(logged_in_session).get_project(42)
        assert project.id == 42
