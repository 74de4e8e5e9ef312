"""GitLab API client using httpx."""

from __future__ import annotations

import json
import logging
from typing import Any
from urllib.parse import quote

import httpx

from .config import HelperConfig, api_root
from .exceptions import (
    ConnectivityError,
    GitLabApiError,
    GitLabAuthError,
    GitLabNotFoundError,
)
from .models import Credentials, MergeRequest, MergeRequestFilter, Project, User

logger = logging.getLogger(__name__)


class GitLabClient:
    """Async HTTP client for the GitLab REST API v4, bound to one set of credentials."""

    def __init__(
        self,
        credentials: Credentials,
        config: HelperConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or HelperConfig.from_env()
        self.api_url = api_root(credentials.url or self.config.default_url)
        self._client = httpx.AsyncClient(
            base_url=self.api_url,
            headers={
                "PRIVATE-TOKEN": credentials.token,
                "Content-Type": "application/json",
            },
            timeout=self.config.timeout,
            verify=self.config.ssl_verify,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> GitLabClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ── HTTP helpers ──────────────────────────────────────────────

    @staticmethod
    def _encode_id(project_id: str | int) -> str:
        """Encode a project ID. Numeric IDs pass through; paths are URL-encoded."""
        if isinstance(project_id, int):
            return str(project_id)
        try:
            return str(int(project_id))
        except ValueError:
            return quote(project_id, safe="")

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Make an API request and return parsed JSON."""
        try:
            resp = await self._client.request(method, path, params=params)
        except httpx.TransportError as e:
            logger.warning("%s %s%s failed: %s", method, self.api_url, path, e)
            raise ConnectivityError(self.api_url, str(e) or type(e).__name__) from e

        logger.debug("%s %s%s -> %s", method, self.api_url, path, resp.status_code)

        if resp.status_code in (401, 403):
            raise GitLabAuthError(resp.status_code, resp.text)
        if resp.status_code == 404:
            raise GitLabNotFoundError(resp.text)
        if not resp.is_success:
            raise GitLabApiError(resp.status_code, resp.reason_phrase or "", resp.text)

        if resp.status_code == 204 or not resp.content:
            return None

        content_type = resp.headers.get("content-type", "")
        if "text/html" in content_type:
            msg = "Unexpected HTML response, check URL and authentication"
            raise GitLabApiError(resp.status_code, msg, resp.text[:500])

        try:
            return resp.json()
        except json.JSONDecodeError as e:
            raise GitLabApiError(
                resp.status_code,
                f"JSON parse error: {e}",
                resp.text[:500],
            ) from e

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self._request("GET", path, params=params)

    # ── Users ─────────────────────────────────────────────────────

    async def get_current_user(self) -> User:
        data = await self.get("/user")
        if not isinstance(data, dict):
            raise GitLabApiError(200, "Unexpected /user payload", str(data)[:500])
        return User.model_validate(data)

    # ── Projects ──────────────────────────────────────────────────

    async def list_projects(self, params: dict[str, Any] | None = None) -> list[Project]:
        p = {"membership": "true", "per_page": self.config.per_page, **(params or {})}
        data = await self.get("/projects", params=p)
        return [Project.model_validate(item) for item in data or []]

    async def get_project(self, project_id: str | int) -> Project:
        enc = self._encode_id(project_id)
        return Project.model_validate(await self.get(f"/projects/{enc}"))

    # ── Merge Requests ────────────────────────────────────────────

    async def list_merge_requests(
        self, mr_filter: MergeRequestFilter | None = None
    ) -> list[MergeRequest]:
        """Merge requests across every project visible to the token."""
        p = (mr_filter or MergeRequestFilter()).to_params(self.config.per_page)
        data = await self.get("/merge_requests", params=p)
        return [MergeRequest.model_validate(item) for item in data or []]

    async def list_project_merge_requests(
        self, project_id: str | int, mr_filter: MergeRequestFilter | None = None
    ) -> list[MergeRequest]:
        enc = self._encode_id(project_id)
        p = (mr_filter or MergeRequestFilter()).to_params(self.config.per_page)
        data = await self.get(f"/projects/{enc}/merge_requests", params=p)
        return [MergeRequest.model_validate(item) for item in data or []]

    async def get_project_merge_request(self, project_id: str | int, mr_iid: int) -> MergeRequest:
        enc = self._encode_id(project_id)
        data = await self.get(f"/projects/{enc}/merge_requests/{mr_iid}")
        return MergeRequest.model_validate(data)
