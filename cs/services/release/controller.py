"""Entry controller: choose and run one orchestrator per invocation."""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path

from cs.core.config import HostEnvironment, ReleaseSettings
from cs.core.result import Err, Ok, Result
from cs.git.repository import Repository
from cs.output.console import ConsoleProtocol
from cs.services.release.bootstrap import ensure_npm_auth
from cs.services.release.errors import ReleaseError
from cs.services.release.host import HostApiClient
from cs.services.release.model import ChangesetState
from cs.services.release.outputs import OutputSink
from cs.services.release.publish import PublishOptions, run_publish
from cs.services.release.version import VersionOptions, run_version


class RunMode(Enum):
    NOTHING = "nothing"
    PUBLISH = "publish"
    EMPTY = "empty"
    VERSION = "version"


def decide(
    *,
    has_changesets: bool,
    has_non_empty_changesets: bool,
    has_publish_command: bool,
) -> RunMode:
    if not has_changesets:
        return RunMode.PUBLISH if has_publish_command else RunMode.NOTHING
    if not has_non_empty_changesets:
        return RunMode.EMPTY
    return RunMode.VERSION


async def run_action(
    *,
    root: Path,
    settings: ReleaseSettings,
    env: HostEnvironment,
    state: ChangesetState,
    repo: Repository,
    client: HostApiClient,
    console: ConsoleProtocol,
    outputs: OutputSink,
) -> Result[RunMode, ReleaseError]:
    outputs.set("published", "false")
    outputs.set("publishedPackages", "[]")
    outputs.set("hasChangesets", "true" if state.has_changesets else "false")

    mode = decide(
        has_changesets=state.has_changesets,
        has_non_empty_changesets=state.has_non_empty_changesets,
        has_publish_command=settings.has_publish_command,
    )

    match mode:
        case RunMode.NOTHING:
            console.info("No changesets found")
        case RunMode.EMPTY:
            console.info("All changesets are empty; not creating PR")
        case RunMode.PUBLISH:
            console.info("No changesets found, attempting to publish any unpublished packages")
            auth = ensure_npm_auth(home=env.home, npm_token=env.npm_token, console=console)
            if isinstance(auth, Err):
                return auth

            published = await run_publish(
                root=root,
                options=PublishOptions.from_settings(settings),
                repo=repo,
                client=client,
                console=console,
            )
            if isinstance(published, Err):
                return published
            if published.value.published:
                outputs.set("published", "true")
                outputs.set(
                    "publishedPackages",
                    json.dumps(
                        [{"name": p.name, "version": p.version} for p in published.value.packages]
                    ),
                )
        case RunMode.VERSION:
            options = VersionOptions.from_settings(settings, env)
            if isinstance(options, Err):
                return options
            versioned = await run_version(
                root=root,
                options=options.value,
                repo=repo,
                client=client,
                console=console,
            )
            if isinstance(versioned, Err):
                return versioned
            outputs.set("pullRequestNumber", str(versioned.value.pull_request_number))

    return Ok(mode)
