"""Hosted release creation for published packages.

A package without a CHANGELOG.md is skipped silently: projects may disable
changelogs. A changelog without a section for the published version means the
version and changelog tooling disagree, and fails the run.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from cs.core.result import Err, Ok, Result
from cs.output.console import ConsoleProtocol, Style
from cs.services.release.changelog import package_changelog_entry
from cs.services.release.errors import ChangelogNotFound, ReleaseError
from cs.services.release.host import HostApiClient
from cs.services.release.model import Package, Release
from cs.services.release.pipeline import JoinPolicy, fan_out


@dataclass(frozen=True, slots=True)
class ReleaseRequest:
    package: Package
    tag_name: str


def tag_name_for(package: Package, *, single_package: bool) -> str:
    return f"v{package.version}" if single_package else package.tag


async def create_package_release(
    client: HostApiClient,
    package: Package,
    tag_name: str,
    *,
    console: ConsoleProtocol,
) -> Result[Release | None, ReleaseError]:
    """Create the release of ``tag_name`` with the package's changelog section as notes.

    Returns:
        Ok(Release) when created, Ok(None) when the package has no changelog.
    """
    entry = package_changelog_entry(package)
    if isinstance(entry, Err):
        if isinstance(entry.error, ChangelogNotFound):
            console.print(
                f"{package.name}: no CHANGELOG.md, skipping release {tag_name}", Style.DIM
            )
            return Ok(None)
        return entry

    created = await client.create_release(
        name=tag_name,
        tag_name=tag_name,
        body=entry.value.content,
        prerelease=package.is_prerelease,
    )
    if isinstance(created, Err):
        return created

    console.success(f"release {tag_name}")
    return Ok(created.value)


async def create_releases(
    client: HostApiClient,
    requests: Sequence[ReleaseRequest],
    *,
    console: ConsoleProtocol,
    policy: JoinPolicy = JoinPolicy.ABORT_ON_FIRST_FAILURE,
) -> Result[list[Release], ReleaseError]:
    """Create one release per request concurrently.

    With the default policy the first failure cancels the releases still in
    flight; releases created before it are kept.
    """
    results = await fan_out(
        [create_package_release(client, r.package, r.tag_name, console=console) for r in requests],
        policy=policy,
    )
    if isinstance(results, Err):
        return results
    return Ok([r for r in results.value if r is not None])


async def create_aggregate_release(
    client: HostApiClient,
    packages: Sequence[Package],
    *,
    tag_name: str,
    name: str | None,
    console: ConsoleProtocol,
) -> Result[Release | None, ReleaseError]:
    """Create a single release covering every package of the run.

    Packages without a changelog contribute a header only. Returns Ok(None)
    when there is nothing to release.
    """
    if not packages:
        return Ok(None)

    sections: list[str] = []
    for package in packages:
        entry = package_changelog_entry(package)
        if isinstance(entry, Err):
            if not isinstance(entry.error, ChangelogNotFound):
                return entry
            sections.append(f"## {package.tag}")
            continue
        sections.append(f"## {package.tag}\n\n{entry.value.content}")

    created = await client.create_release(
        name=name or tag_name,
        tag_name=tag_name,
        body="\n\n".join(sections),
        prerelease=any(p.is_prerelease for p in packages),
    )
    if isinstance(created, Err):
        return created

    console.success(f"release {tag_name} ({len(packages)} packages)")
    return Ok(created.value)
