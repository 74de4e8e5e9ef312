"""Browse GitLab merge requests for the repository you are working in."""

from .cli import main

__all__ = ["main"]
