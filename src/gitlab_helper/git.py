"""Resolve the GitLab project behind a local working copy."""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable, Sequence
from pathlib import Path
from urllib.parse import urlsplit

from .exceptions import GitCommandError
from .models import (
    HttpRemote,
    RemoteUrl,
    RepositoryIdentity,
    SshRemote,
    UnrecognizedRemote,
    redact_remote_url,
)

logger = logging.getLogger(__name__)

# Matches:  git@<host>:<namespace/project>[.git]
_SSH_REMOTE_RE = re.compile(r"^git@(?P<host>[^:]+):(?P<path>.+?)(?:\.git)?$")

_DEFAULT_PORTS = {"http": 80, "https": 443}

GitRunner = Callable[[list[str], str], Awaitable[str]]


def parse_remote_url(url: str) -> RemoteUrl:
    """Classify an ``origin`` URL as an HTTP(S) remote, an SSH remote, or neither."""
    if url.startswith("http"):
        return _parse_http_remote(url)
    if url.startswith("git@"):
        m = _SSH_REMOTE_RE.match(url)
        if m:
            return SshRemote(host=f"https://{m.group('host')}", path=m.group("path"))
    return UnrecognizedRemote(url)


def _parse_http_remote(url: str) -> RemoteUrl:
    parts = urlsplit(url)
    try:
        port = parts.port
    except ValueError:
        return UnrecognizedRemote(url)
    if not parts.scheme or not parts.hostname:
        return UnrecognizedRemote(url)

    # Origin only: credentials embedded in the URL are dropped.
    host = f"{parts.scheme}://{parts.hostname}"
    if port is not None and port != _DEFAULT_PORTS.get(parts.scheme):
        host = f"{host}:{port}"

    path = parts.path.removesuffix(".git").removeprefix("/")
    if not path:
        return UnrecognizedRemote(url)
    return HttpRemote(host=host, path=path)


def identity_from_remote(root_path: str, remote_url: str | None) -> RepositoryIdentity:
    if remote_url is None:
        return RepositoryIdentity(root_path=root_path)
    remote = parse_remote_url(remote_url)
    # Credentials embedded in the remote never leave this function.
    shown = redact_remote_url(remote_url)
    if isinstance(remote, (HttpRemote, SshRemote)):
        return RepositoryIdentity(
            root_path=root_path,
            remote_url=shown,
            project_path=remote.path,
            host=remote.host,
        )
    logger.debug("Remote %s is not a recognized GitLab URL", shown)
    return RepositoryIdentity(root_path=root_path, remote_url=shown)


def make_git_runner(executable: str = "git") -> GitRunner:
    """Build a runner that executes *executable* and returns its stripped stdout."""

    async def run(args: list[str], cwd: str) -> str:
        try:
            proc = await asyncio.create_subprocess_exec(
                executable,
                *args,
                cwd=cwd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise GitCommandError(args, None, str(e)) from e
        stdout, stderr = await proc.communicate()
        if proc.returncode != 0:
            raise GitCommandError(
                args, proc.returncode, stderr.decode("utf-8", errors="replace").strip()
            )
        return stdout.decode("utf-8", errors="replace").strip()

    return run


class RepositoryResolver:
    """Inspects workspace folders with git. Performs no network I/O."""

    def __init__(self, runner: GitRunner | None = None, *, git_executable: str = "git") -> None:
        self._run = runner or make_git_runner(git_executable)

    async def check_git_repository(
        self, workspace_folders: Sequence[str | Path]
    ) -> RepositoryIdentity | None:
        """Identity of the first workspace folder's repository, or None."""
        if not workspace_folders:
            return None
        return await self.resolve(workspace_folders[0])

    async def resolve(self, folder: str | Path) -> RepositoryIdentity | None:
        cwd = str(folder)
        try:
            inside = await self._run(["rev-parse", "--is-inside-work-tree"], cwd)
        except GitCommandError as e:
            logger.debug("%s is not a git work tree: %s", cwd, e)
            return None
        if inside != "true":
            return None

        try:
            root_path = await self._run(["rev-parse", "--show-toplevel"], cwd)
        except GitCommandError as e:
            logger.warning("Failed to read repository root of %s: %s", cwd, e)
            return None

        remote_url: str | None
        try:
            remote_url = await self._run(["remote", "get-url", "origin"], root_path) or None
        except GitCommandError:
            logger.debug("Repository %s has no 'origin' remote", root_path)
            remote_url = None

        return identity_from_remote(root_path, remote_url)
