"""Command-line front end: login, identity and merge request listing."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from collections.abc import Coroutine
from pathlib import Path
from typing import Any, TypeVar

import click
from dotenv import load_dotenv

from .config import HelperConfig
from .exceptions import GitLabError, InvalidCredentialsError, NotAuthenticatedError
from .git import RepositoryResolver
from .models import MergeRequest
from .panel import MergeRequestPanel, describe_error
from .prompts import ClickPrompter, StaticPrompter
from .service import GitLabService
from .session import SessionManager
from .storage import make_secret_store

T = TypeVar("T")

_workspace_option = click.option(
    "-w",
    "--workspace",
    "workspaces",
    multiple=True,
    type=click.Path(file_okay=False, path_type=Path),
    help="Workspace folder (repeatable; the first one is used). Defaults to the current directory.",
)
_json_option = click.option("--json", "as_json", is_flag=True, help="Print JSON instead of text")


def _ok(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)


def _run(coro: Coroutine[Any, Any, T]) -> T:
    """Run *coro*, turning GitLab errors into a message and exit status 1."""
    try:
        return asyncio.run(coro)
    except GitLabError as e:
        click.secho(describe_error(e), fg="red", err=True)
        raise SystemExit(1) from None


async def _open_session(config: HelperConfig) -> SessionManager:
    return await SessionManager.open(make_secret_store(config), config)


def _folders(workspaces: tuple[Path, ...]) -> list[Path]:
    return list(workspaces) or [Path.cwd()]


def _format_mr(mr: MergeRequest) -> str:
    draft = "Draft: " if mr.draft or mr.work_in_progress else ""
    author = f" by @{mr.author.username}" if mr.author else ""
    return (
        f"!{mr.iid:<5} [{mr.state}] {draft}{mr.title}"
        f" ({mr.source_branch} -> {mr.target_branch}){author}"
    )


@click.group()
@click.option("--gitlab-url", envvar="GITLAB_URL", help="Default GitLab instance URL")
@click.option(
    "--secrets-file",
    envvar="GITLAB_HELPER_SECRETS_FILE",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Where credentials are stored",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(
    ctx: click.Context,
    gitlab_url: str | None,
    secrets_file: Path | None,
    verbose: bool,
) -> None:
    """Browse GitLab merge requests for the repository you are working in."""
    load_dotenv()

    if gitlab_url:
        os.environ["GITLAB_URL"] = gitlab_url
    if secrets_file:
        os.environ["GITLAB_HELPER_SECRETS_FILE"] = str(secrets_file)

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        config = HelperConfig.from_env()
        config.validate()
    except ValueError as e:
        raise click.UsageError(str(e)) from e
    ctx.obj = config


@main.command()
@click.option("--token", envvar="GITLAB_TOKEN", help="Personal access token (prompted if omitted)")
@click.option("--url", help="GitLab instance URL (prompted if omitted)")
@click.option("-y", "--yes", is_flag=True, help="Switch accounts without asking")
@click.pass_obj
def login(config: HelperConfig, token: str | None, url: str | None, yes: bool) -> None:
    """Log in with a personal access token."""

    async def run() -> bool:
        session = await _open_session(config)
        if session.is_authenticated and not yes:
            if not click.confirm(
                f"Already logged in to {session.instance_url}. Switch accounts?", default=False
            ):
                return True
        prompter = StaticPrompter(token, url) if token else ClickPrompter()
        return await session.authenticate(prompter)

    if not _run(run()):
        raise SystemExit(1)


@main.command()
@click.option("-y", "--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_obj
def logout(config: HelperConfig, yes: bool) -> None:
    """Forget the stored credentials."""

    async def run() -> None:
        session = await _open_session(config)
        if not session.is_authenticated:
            click.echo("You are not logged in to GitLab")
            return
        if not yes and not click.confirm("Log out of GitLab?", default=False):
            return
        await session.logout()
        click.echo("Logged out of GitLab")

    _run(run())


@main.command()
@_json_option
@click.pass_obj
def whoami(config: HelperConfig, as_json: bool) -> None:
    """Show the user behind the stored token."""

    async def run() -> None:
        session = await _open_session(config)
        if not session.is_authenticated:
            raise NotAuthenticatedError
        user = await session.get_current_user()
        if user is None:
            raise InvalidCredentialsError(session.instance_url)
        if as_json:
            click.echo(_ok(user.to_dict()))
        else:
            click.echo(f"{user.display_name} on {session.instance_url}")

    _run(run())


@main.command()
@_workspace_option
@_json_option
@click.pass_obj
def repo(config: HelperConfig, workspaces: tuple[Path, ...], as_json: bool) -> None:
    """Show the GitLab project the workspace belongs to."""
    resolver = RepositoryResolver(git_executable=config.git_executable)
    identity = _run(resolver.check_git_repository(_folders(workspaces)))
    if identity is None:
        click.secho("Not a git repository", fg="yellow", err=True)
        raise SystemExit(1)
    if as_json:
        click.echo(_ok(identity.to_dict()))
        return
    click.echo(f"Root:    {identity.root_path}")
    click.echo(f"Remote:  {identity.remote_url or '(no origin)'}")
    if identity.is_gitlab_project:
        click.echo(f"Host:    {identity.host}")
        click.echo(f"Project: {identity.project_path} ({identity.project_id})")
    else:
        click.echo("Project: (not a recognized GitLab remote)")


@main.command()
@_workspace_option
@click.option(
    "--state",
    type=click.Choice(["opened", "closed", "locked", "merged", "all"]),
    default="opened",
    show_default=True,
)
@click.option("--scope", type=click.Choice(["created_by_me", "assigned_to_me", "all"]))
@click.option("--search", help="Match against title and description")
@click.option("--order-by", type=click.Choice(["created_at", "updated_at"]))
@click.option("--sort", type=click.Choice(["asc", "desc"]))
@_json_option
@click.pass_obj
def mrs(
    config: HelperConfig,
    workspaces: tuple[Path, ...],
    state: str,
    scope: str | None,
    search: str | None,
    order_by: str | None,
    sort: str | None,
    as_json: bool,
) -> None:
    """List merge requests for the workspace's project."""

    async def run() -> bool:
        session = await _open_session(config)
        panel = MergeRequestPanel(session, _folders(workspaces))
        panel.set_filter(
            state=None if state == "all" else state,
            scope=scope,
            search=search,
            order_by=order_by,
            sort=sort,
        )
        result = await panel.refresh()
        if as_json:
            click.echo(_ok(result.to_dict()))
        elif not result.authenticated:
            raise NotAuthenticatedError
        else:
            if result.warning:
                click.secho(result.warning, fg="yellow", err=True)
            if result.repository and result.repository.is_gitlab_project:
                click.echo(f"{result.repository.project_path} on {result.repository.host}")
            for mr in result.merge_requests:
                click.echo(_format_mr(mr))
            if not result.merge_requests and not result.error:
                click.echo("No merge requests")
        if result.error:
            click.secho(result.error, fg="red", err=True)
            return False
        return True

    if not _run(run()):
        raise SystemExit(1)


@main.command(name="open")
@click.argument("iid", type=int)
@_workspace_option
@click.pass_obj
def open_mr(config: HelperConfig, iid: int, workspaces: tuple[Path, ...]) -> None:
    """Open merge request !IID of the workspace's project in a browser."""

    async def run() -> bool:
        session = await _open_session(config)
        if not session.is_authenticated:
            raise NotAuthenticatedError
        panel = MergeRequestPanel(session, _folders(workspaces))
        mr = await panel.fetch_merge_request(iid)
        if mr is None or not panel.open_merge_request(mr):
            click.secho(f"Merge request !{iid} not found", fg="red", err=True)
            return False
        click.echo(mr.web_url)
        return True

    if not _run(run()):
        raise SystemExit(1)


@main.command()
@_json_option
@click.pass_obj
def projects(config: HelperConfig, as_json: bool) -> None:
    """List projects you are a member of."""

    async def run() -> None:
        session = await _open_session(config)
        items = await GitLabService(session).get_projects()
        if as_json:
            click.echo(_ok([p.to_dict() for p in items]))
            return
        for project in items:
            click.echo(f"{project.id:<8} {project.path_with_namespace}  {project.web_url}")

    _run(run())
