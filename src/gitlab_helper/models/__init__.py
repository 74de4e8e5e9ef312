"""Typed records for GitLab payloads and local repository state."""

from .auth import Credentials
from .common import User
from .merge_requests import MergeRequest, MergeRequestFilter
from .projects import Project
from .repository import (
    HttpRemote,
    RemoteUrl,
    RepositoryIdentity,
    SshRemote,
    UnrecognizedRemote,
    redact_remote_url,
)

__all__ = [
    "Credentials",
    "HttpRemote",
    "MergeRequest",
    "MergeRequestFilter",
    "Project",
    "RemoteUrl",
    "RepositoryIdentity",
    "SshRemote",
    "UnrecognizedRemote",
    "User",
    "redact_remote_url",
]
