"""User-input surfaces used during login."""

from __future__ import annotations

from typing import Protocol

import click


class Prompter(Protocol):
    async def ask_token(self) -> str | None: ...

    async def ask_instance_url(self, default: str) -> str | None: ...

    def show_info(self, message: str) -> None: ...

    def show_error(self, message: str) -> None: ...


class ClickPrompter:
    """Interactive prompts on the terminal."""

    async def ask_token(self) -> str | None:
        token = click.prompt(
            "GitLab personal access token (glpat-...)",
            hide_input=True,
            default="",
            show_default=False,
        )
        return token.strip() or None

    async def ask_instance_url(self, default: str) -> str | None:
        url = click.prompt("GitLab instance URL", default=default)
        return url.strip() or None

    def show_info(self, message: str) -> None:
        click.echo(message)

    def show_error(self, message: str) -> None:
        click.secho(message, fg="red", err=True)


class StaticPrompter(ClickPrompter):
    """Answers from values supplied up front, e.g. ``--token`` or ``GITLAB_TOKEN``."""

    def __init__(self, token: str | None, url: str | None = None) -> None:
        self.token = token
        self.url = url

    async def ask_token(self) -> str | None:
        return self.token

    async def ask_instance_url(self, default: str) -> str | None:
        return self.url or default
