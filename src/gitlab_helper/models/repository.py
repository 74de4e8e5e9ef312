"""Local repository identity types."""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import quote, urlsplit, urlunsplit


@dataclass(frozen=True)
class HttpRemote:
    """``scheme://host/path.git`` remote."""

    host: str
    path: str


@dataclass(frozen=True)
class SshRemote:
    """``git@host:path.git`` remote."""

    host: str
    path: str


@dataclass(frozen=True)
class UnrecognizedRemote:
    """Any remote that is neither of the recognized GitLab shapes."""

    url: str


RemoteUrl = HttpRemote | SshRemote | UnrecognizedRemote


def encode_project_path(path: str) -> str:
    """Percent-encode a namespace path as a single URL path segment."""
    return quote(path, safe="")


def redact_remote_url(url: str) -> str:
    """Drop user name and password from a scheme URL. scp-style remotes pass through."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return url
    if not parts.scheme or "@" not in parts.netloc:
        return url
    return urlunsplit(parts._replace(netloc=parts.netloc.rpartition("@")[2]))


@dataclass(frozen=True)
class RepositoryIdentity:
    """The working copy behind a workspace folder and the GitLab project it maps to."""

    root_path: str
    remote_url: str | None = None
    project_path: str | None = None
    host: str | None = None

    @property
    def project_id(self) -> str | None:
        if self.project_path is None:
            return None
        return encode_project_path(self.project_path)

    @property
    def is_gitlab_project(self) -> bool:
        return self.project_path is not None

    def matches_instance(self, instance_url: str) -> bool:
        """Whether the remote's host is the same server as *instance_url*.

        Identities with no recognized remote match nothing.
        """
        if self.host is None:
            return False
        ours = urlsplit(self.host).hostname
        theirs = urlsplit(instance_url).hostname
        return ours is not None and ours == theirs

    def to_dict(self) -> dict[str, str | None]:
        return {
            "root_path": self.root_path,
            "remote_url": self.remote_url,
            "project_path": self.project_path,
            "project_id": self.project_id,
            "host": self.host,
        }
