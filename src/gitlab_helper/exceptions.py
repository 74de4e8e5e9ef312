"""gitlab-helper exceptions."""

from __future__ import annotations


class GitLabError(Exception):
    """Base exception for gitlab-helper operations."""


class GitLabApiError(GitLabError):
    """Raised when the GitLab API returns a non-success response."""

    def __init__(self, status_code: int, status_text: str, body: str = "") -> None:
        self.status_code = status_code
        self.status_text = status_text
        self.body = body
        super().__init__(f"GitLab API Error {status_code} {status_text}: {body}")


class GitLabAuthError(GitLabApiError):
    """Raised on 401/403 authentication failures."""

    def __init__(self, status_code: int, body: str = "") -> None:
        status_text = "Unauthorized" if status_code == 401 else "Forbidden"
        super().__init__(status_code, status_text, body)


class GitLabNotFoundError(GitLabApiError):
    """Raised on 404 responses."""

    def __init__(self, body: str = "") -> None:
        super().__init__(404, "Not Found", body)


class NotAuthenticatedError(GitLabError):
    """Raised when an operation needs a session and none is held."""

    def __init__(self) -> None:
        super().__init__("Not logged in to GitLab")


class InvalidCredentialsError(GitLabError):
    """Raised when the instance rejects the stored token."""

    def __init__(self, url: str) -> None:
        self.url = url
        super().__init__(f"GitLab at {url} rejected the personal access token")


class ConnectivityError(GitLabError):
    """Raised when a request to GitLab could not be completed at all."""

    def __init__(self, url: str, reason: str = "") -> None:
        self.url = url
        self.reason = reason
        detail = f": {reason}" if reason else ""
        super().__init__(f"Cannot connect to GitLab at {url}{detail}")


class StorageError(GitLabError):
    """Raised when the secret store cannot be read, written or cleared."""


class GitCommandError(GitLabError):
    """Raised when a git invocation fails or git is not installed."""

    def __init__(self, args: list[str], returncode: int | None, stderr: str = "") -> None:
        self.args_list = args
        self.returncode = returncode
        self.stderr = stderr
        command = " ".join(["git", *args])
        if returncode is None:
            super().__init__(f"Could not run '{command}': {stderr}")
        else:
            super().__init__(f"'{command}' exited with {returncode}: {stderr}")


class UnrecognizedRepositoryError(GitLabError):
    """Raised when merge requests are requested for a repository with no GitLab project."""

    def __init__(self, remote_url: str | None) -> None:
        self.remote_url = remote_url
        if remote_url:
            msg = f"Remote '{remote_url}' is not a recognized GitLab project URL"
        else:
            msg = "Repository has no 'origin' remote"
        super().__init__(msg)
