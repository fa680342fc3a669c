"""Publish run: publish tool, tag push, release records.

Stages, in order:

1. run the publish command, capturing stdout
2. push the tags it created
3. read the workspace packages
4. correlate the tool's tag announcements with packages
5. create releases (per package, aggregated, or none)
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from cs.core.config import CreateReleases, ReleaseSettings
from cs.core.result import Err, Ok, Result
from cs.git.repository import Repository
from cs.output.console import ConsoleProtocol, Style
from cs.platform.process import run_streaming, split_command
from cs.services.release.errors import GitFailed, Inconsistency, ReleaseError, ToolFailed
from cs.services.release.host import HostApiClient
from cs.services.release.model import Package, Packages, PublishResult, ReleasedPackage
from cs.services.release.releases import (
    ReleaseRequest,
    create_aggregate_release,
    create_releases,
    tag_name_for,
)
from cs.services.release.tags import PackageTagged, TagEvent, parse_publish_output
from cs.workspace.packages import get_packages


@dataclass(frozen=True, slots=True)
class PublishOptions:
    command: str
    create_releases: CreateReleases = "enabled"
    release_tag_name: str | None = None
    release_name: str | None = None

    @classmethod
    def from_settings(cls, settings: ReleaseSettings) -> PublishOptions:
        return cls(
            command=settings.publish_command or "",
            create_releases=settings.create_releases,
            release_tag_name=settings.release_tag_name,
            release_name=settings.release_name,
        )


def released_packages(
    packages: Packages, events: Sequence[TagEvent]
) -> Result[list[Package], Inconsistency]:
    """Map tag events onto workspace packages.

    Multi-package workspaces: every ``PackageTagged`` event names a package;
    order is kept and duplicates are not removed. Single package: the first
    event of any shape releases the root package.
    """
    if packages.is_single_package:
        if not packages.packages:
            return Err(Inconsistency("No package found in a single-package workspace"))
        if events:
            return Ok([packages.packages[0]])
        return Ok([])

    by_name = packages.by_name()
    released: list[Package] = []
    for event in events:
        if not isinstance(event, PackageTagged):
            continue
        pkg = by_name.get(event.name)
        if pkg is None:
            return Err(
                Inconsistency(
                    f'Package "{event.name}" not found in the workspace '
                    f"(publish output: {event.line.strip()!r})"
                )
            )
        released.append(pkg)
    return Ok(released)


async def _skip_existing(
    client: HostApiClient,
    requests: list[ReleaseRequest],
    *,
    console: ConsoleProtocol,
) -> Result[list[ReleaseRequest], ReleaseError]:
    if not client.supports_release_listing:
        return Ok(requests)

    listed = await client.list_releases()
    if isinstance(listed, Err):
        return listed

    existing = {r.tag_name for r in listed.value}
    kept: list[ReleaseRequest] = []
    for request in requests:
        if request.tag_name in existing:
            console.print(f"release {request.tag_name} already exists", Style.DIM)
            continue
        kept.append(request)
    return Ok(kept)


async def run_publish(
    *,
    root: Path,
    options: PublishOptions,
    repo: Repository,
    client: HostApiClient,
    console: ConsoleProtocol,
) -> Result[PublishResult, ReleaseError]:
    console.header("Publish")
    cmd = split_command(options.command)
    console.print(f"$ {options.command}", Style.DIM)
    output = await run_streaming(cmd, cwd=root, on_line=lambda line: console.print(line, Style.DIM))
    if isinstance(output, Err):
        e = output.error
        return Err(ToolFailed(command=e.command, returncode=e.returncode, stderr=e.stderr))

    pushed = repo.push_tags()
    if isinstance(pushed, Err):
        return Err(GitFailed(command=pushed.error.command, message=pushed.error.message))

    packages = get_packages(root)
    if isinstance(packages, Err):
        return packages

    released = released_packages(packages.value, parse_publish_output(output.value))
    if isinstance(released, Err):
        return released

    if released.value and options.create_releases != "disabled":
        console.header("Releases")
        created = await _create(
            client,
            released.value,
            single_package=packages.value.is_single_package,
            options=options,
            console=console,
        )
        if isinstance(created, Err):
            return created

    published = tuple(ReleasedPackage(name=p.name, version=p.version) for p in released.value)
    for p in published:
        console.success(f"published {p.name}@{p.version}")
    return Ok(PublishResult(published=bool(published), packages=published))


async def _create(
    client: HostApiClient,
    released: list[Package],
    *,
    single_package: bool,
    options: PublishOptions,
    console: ConsoleProtocol,
) -> Result[None, ReleaseError]:
    if options.create_releases == "aggregate":
        tag_name = options.release_tag_name or ""
        pending = await _skip_existing(
            client,
            [ReleaseRequest(package=p, tag_name=tag_name) for p in released],
            console=console,
        )
        if isinstance(pending, Err):
            return pending
        created = await create_aggregate_release(
            client,
            [r.package for r in pending.value],
            tag_name=tag_name,
            name=options.release_name,
            console=console,
        )
        return created.map(lambda _: None)

    requests = [
        ReleaseRequest(package=p, tag_name=tag_name_for(p, single_package=single_package))
        for p in released
    ]
    pending = await _skip_existing(client, requests, console=console)
    if isinstance(pending, Err):
        return pending
    created = await create_releases(client, pending.value, console=console)
    return created.map(lambda _: None)
