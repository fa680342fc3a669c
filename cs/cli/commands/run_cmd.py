from __future__ import annotations

import asyncio
from pathlib import Path
from typing import NoReturn

import typer

from cs.cli.context import CLIContext, build_console, build_context
from cs.core.config import ReleaseSettings, create_releases_or_disabled
from cs.core.errors import ErrorCode
from cs.core.result import Err, Ok, Result
from cs.git.repository import Repository
from cs.output.console import ConsoleProtocol
from cs.output.errors import print_release_error, release_error_exit_code
from cs.services.release.bootstrap import git_host_for, write_netrc
from cs.services.release.controller import RunMode, run_action
from cs.services.release.errors import GitFailed, ReleaseError
from cs.services.release.host import HostApiClient
from cs.services.release.outputs import output_sink
from cs.workspace.changesets import read_changeset_state


def _fail(error: ReleaseError, console: ConsoleProtocol) -> NoReturn:
    print_release_error(error, console)
    raise typer.Exit(code=release_error_exit_code(error))


def _resolve_settings(
    base: ReleaseSettings,
    *,
    console: ConsoleProtocol,
    create_releases: str | None,
    **overrides: object,
) -> ReleaseSettings:
    settings = base.with_overrides(**overrides)
    if create_releases is None:
        return settings

    mode = create_releases_or_disabled(create_releases, warn=console.warning)
    return settings.with_overrides(create_releases=mode)


async def _dispatch(ctx: CLIContext, repo: Repository) -> Result[RunMode, ReleaseError]:
    state = read_changeset_state(ctx.root)
    if isinstance(state, Err):
        return state

    async with HostApiClient(ctx.backend, ctx.env.repository, console=ctx.console) as client:
        return await run_action(
            root=ctx.root,
            settings=ctx.settings,
            env=ctx.env,
            state=state.value,
            repo=repo,
            client=client,
            console=ctx.console,
            outputs=output_sink(ctx.env.output_file, ctx.console),
        )


def run(
    version_command: str | None = typer.Option(
        None, "--version-command", envvar="INPUT_VERSION", help="Command that bumps versions."
    ),
    publish: str | None = typer.Option(
        None, "--publish", envvar="INPUT_PUBLISH", help="Command that publishes packages."
    ),
    create_releases: str | None = typer.Option(
        None,
        "--create-releases",
        envvar="INPUT_CREATEGITHUBRELEASES",
        help="true, false or aggregate.",
    ),
    release_tag_name: str | None = typer.Option(
        None,
        "--release-tag-name",
        envvar="INPUT_GITHUBTAGNAME",
        help="Tag of an aggregate release.",
    ),
    release_name: str | None = typer.Option(
        None,
        "--release-name",
        envvar="INPUT_GITHUBRELEASENAME",
        help="Name of an aggregate release.",
    ),
    title: str | None = typer.Option(
        None, "--title", envvar="INPUT_TITLE", help="Version PR title."
    ),
    commit: str | None = typer.Option(
        None, "--commit", envvar="INPUT_COMMIT", help="Version commit message."
    ),
    branch: str | None = typer.Option(
        None, "--branch", envvar="INPUT_BRANCH", help="Base branch (default: triggering ref)."
    ),
    max_body_characters: int | None = typer.Option(
        None, "--max-body-characters", envvar="INPUT_PRBODYMAXCHARACTERS", min=1
    ),
    cwd: Path | None = typer.Option(None, "--cwd", envvar="INPUT_CWD", help="Project directory."),
    setup_git_user: bool | None = typer.Option(
        None, "--setup-git-user/--no-setup-git-user", envvar="INPUT_SETUPGITUSER"
    ),
    config: Path | None = typer.Option(None, "--config", help="TOML file with a [release] table."),
) -> None:
    """Open or update the version PR, or publish when no changesets are pending."""
    console = build_console()

    built = build_context(console=console, config_path=config, cwd=cwd)
    if isinstance(built, Err):
        _fail(built.error, console)
    ctx = built.value

    settings = _resolve_settings(
        ctx.settings,
        console=console,
        create_releases=create_releases,
        version_command=version_command,
        publish_command=publish,
        release_tag_name=release_tag_name,
        release_name=release_name,
        pr_title=title,
        commit_message=commit,
        branch=branch,
        max_body_characters=max_body_characters,
        setup_git_user=setup_git_user,
    )
    valid = settings.validate()
    if isinstance(valid, Err):
        _fail(valid.error, console)
    ctx = CLIContext(
        root=ctx.root, env=ctx.env, backend=ctx.backend, settings=settings, console=console
    )

    repo = Repository(ctx.root)
    if settings.setup_git_user:
        console.print("setting git user")
        configured = repo.setup_user()
        if isinstance(configured, Err):
            e = configured.error
            _fail(GitFailed(command=e.command, message=e.message), console)

    console.print("setting git credentials")
    netrc = write_netrc(home=ctx.env.home, host=git_host_for(ctx.backend), token=ctx.env.token)
    if isinstance(netrc, Err):
        _fail(netrc.error, console)

    try:
        result = asyncio.run(_dispatch(ctx, repo))
    except OSError as e:
        console.error(f"failed to write step outputs: {e}")
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    match result:
        case Err(error):
            _fail(error, console)
        case Ok(mode):
            console.print(f"mode: {mode.value}")
