"""Version run: regenerate the version branch and reconcile its pull request.

The version branch is ``changeset-release/<base>``. Every run resets it to the
triggering commit, applies the version tool, force-pushes, then updates the
open pull request for (base, version branch) or opens one. Re-running on the
same base therefore never opens a second pull request.

Branch switch, reset, version tool, commit and push share the working tree
and run strictly in that order.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from cs.core.config import (
    DEFAULT_COMMIT_MESSAGE,
    DEFAULT_PR_TITLE,
    DEFAULT_VERSION_COMMAND,
    MAX_BODY_CHARACTERS,
    ConfigError,
    HostEnvironment,
    ReleaseSettings,
)
from cs.core.result import Err, Ok, Result
from cs.git.repository import GitError, Repository
from cs.output.console import ConsoleProtocol, Style
from cs.platform.process import run_streaming, split_command
from cs.services.release.body import compose_version_pr_body, version_pr_title
from cs.services.release.changelog import package_changelog_entry
from cs.services.release.errors import ChangelogError, GitFailed, ReleaseError, ToolFailed
from cs.services.release.host import HostApiClient
from cs.services.release.model import (
    Package,
    PackageVersionEntry,
    Packages,
    PreState,
    Proposal,
    VersionResult,
    version_branch_for,
)
from cs.workspace.changesets import read_pre_state
from cs.workspace.packages import get_packages


@dataclass(frozen=True, slots=True)
class VersionOptions:
    base_branch: str
    sha: str
    command: str = DEFAULT_VERSION_COMMAND
    pr_title: str = DEFAULT_PR_TITLE
    commit_message: str = DEFAULT_COMMIT_MESSAGE
    has_publish_command: bool = False
    max_body_characters: int = MAX_BODY_CHARACTERS

    @classmethod
    def from_settings(
        cls, settings: ReleaseSettings, env: HostEnvironment
    ) -> Result[VersionOptions, ConfigError]:
        base = settings.branch or env.ref_branch
        if not base:
            return Err(
                ConfigError(
                    "cannot determine the base branch",
                    hint="Run on a branch push (GITHUB_REF=refs/heads/<branch>) or pass --branch",
                )
            )
        options = cls(
            base_branch=base,
            # Outside CI there is no triggering commit; use the remote base head.
            sha=env.sha or f"origin/{base}",
            command=settings.version_command,
            pr_title=settings.pr_title,
            commit_message=settings.commit_message,
            has_publish_command=settings.has_publish_command,
            max_body_characters=settings.max_body_characters,
        )
        return Ok(options)


def _git(error: GitError) -> Err[GitFailed]:
    return Err(GitFailed(command=error.command, message=error.message))


def changed_packages(before: Mapping[Path, str], after: Packages) -> list[Package]:
    """Packages whose version differs from the snapshot (new packages included)."""
    return [p for p in after.packages if before.get(p.directory) != p.version]


def sort_entries(entries: Sequence[PackageVersionEntry]) -> list[PackageVersionEntry]:
    """Public packages before private ones, then highest bump level first.

    Ties keep discovery order.
    """
    return sorted(entries, key=lambda e: (e.private, -e.highest_level))


async def collect_version_entries(
    packages: Sequence[Package],
) -> Result[list[PackageVersionEntry], ChangelogError]:
    entries: list[PackageVersionEntry] = []
    for package in packages:
        entry = package_changelog_entry(package)
        if isinstance(entry, Err):
            return entry
        entries.append(
            PackageVersionEntry(
                highest_level=entry.value.highest_level,
                private=package.private,
                content=entry.value.content,
                header=f"## {package.name}@{package.version}",
            )
        )
    return Ok(sort_entries(entries))


def _prepare_branch(repo: Repository, *, branch: str, sha: str) -> Result[None, ReleaseError]:
    switched = repo.switch_to_maybe_existing_branch(branch)
    if isinstance(switched, Err):
        return _git(switched.error)
    reset = repo.reset_hard(sha)
    if isinstance(reset, Err):
        return _git(reset.error)
    return Ok(None)


def _commit_and_push(
    repo: Repository, *, branch: str, message: str, console: ConsoleProtocol
) -> Result[None, ReleaseError]:
    clean = repo.is_clean()
    if isinstance(clean, Err):
        return _git(clean.error)

    # The version command may already have committed (changesets `commit: true`).
    if not clean.value:
        committed = repo.commit_all(message)
        if isinstance(committed, Err):
            return _git(committed.error)

    console.print(f"git push --force {branch}", Style.DIM)
    pushed = repo.push(branch, force=True)
    if isinstance(pushed, Err):
        return _git(pushed.error)
    return Ok(None)


async def _reconcile_proposal(
    client: HostApiClient,
    *,
    existing: Sequence[Proposal],
    base: str,
    head: str,
    title: str,
    body: str,
    console: ConsoleProtocol,
) -> Result[VersionResult, ReleaseError]:
    if not existing:
        console.info("creating pull request")
        created = await client.create_proposal(base=base, head=head, title=title, body=body)
        if isinstance(created, Err):
            return created
        console.success(f"opened pull request #{created.value.number}")
        return Ok(VersionResult(pull_request_number=created.value.number, created=True))

    proposal = existing[0]
    console.info(f"updating found pull request #{proposal.number}")
    updated = await client.update_proposal(number=proposal.number, title=title, body=body)
    if isinstance(updated, Err):
        return updated
    return Ok(VersionResult(pull_request_number=proposal.number, created=False))


async def run_version(
    *,
    root: Path,
    options: VersionOptions,
    repo: Repository,
    client: HostApiClient,
    console: ConsoleProtocol,
) -> Result[VersionResult, ReleaseError]:
    base = options.base_branch
    version_branch = version_branch_for(base)

    pre = read_pre_state(root)
    if isinstance(pre, Err):
        return pre
    pre_state: PreState | None = pre.value

    console.header(f"Version branch {version_branch}")
    prepared = _prepare_branch(repo, branch=version_branch, sha=options.sha)
    if isinstance(prepared, Err):
        return prepared

    before = get_packages(root)
    if isinstance(before, Err):
        return before

    console.header("Version")
    console.print(f"$ {options.command}", Style.DIM)
    versioned = await run_streaming(
        split_command(options.command),
        cwd=root,
        on_line=lambda line: console.print(line, Style.DIM),
    )
    if isinstance(versioned, Err):
        e = versioned.error
        return Err(ToolFailed(command=e.command, returncode=e.returncode, stderr=e.stderr))

    after = get_packages(root)
    if isinstance(after, Err):
        return after
    changed = changed_packages(before.value.versions_by_directory(), after.value)
    for p in changed:
        console.print(f"{p.name} -> {p.version}", Style.DIM)

    # Disjoint resources: host search and local changelog reads.
    search, entries = await asyncio.gather(
        client.search_open_proposals(base=base, head=version_branch),
        collect_version_entries(changed),
    )
    if isinstance(search, Err):
        return search
    if isinstance(entries, Err):
        return entries

    committed = _commit_and_push(
        repo,
        branch=version_branch,
        message=version_pr_title(options.commit_message, pre_state),
        console=console,
    )
    if isinstance(committed, Err):
        return committed

    body = compose_version_pr_body(
        has_publish_command=options.has_publish_command,
        pre_state=pre_state,
        entries=entries.value,
        max_characters=options.max_body_characters,
        branch=base,
    )
    return await _reconcile_proposal(
        client,
        existing=search.value,
        base=base,
        head=version_branch,
        title=version_pr_title(options.pr_title, pre_state),
        body=body,
        console=console,
    )
