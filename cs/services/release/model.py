from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

WorkspaceTool = Literal["root", "npm", "yarn", "pnpm"]

VERSION_BRANCH_PREFIX = "changeset-release/"


@dataclass(frozen=True, slots=True)
class Package:
    name: str
    version: str
    directory: Path
    private: bool = False

    @property
    def changelog_path(self) -> Path:
        return self.directory / "CHANGELOG.md"

    @property
    def is_prerelease(self) -> bool:
        return "-" in self.version

    @property
    def tag(self) -> str:
        return f"{self.name}@{self.version}"


@dataclass(frozen=True, slots=True)
class Packages:
    """Snapshot of the workspace taken at the start of a run."""

    tool: WorkspaceTool
    packages: tuple[Package, ...]

    @property
    def is_single_package(self) -> bool:
        return self.tool == "root"

    def by_name(self) -> dict[str, Package]:
        return {p.name: p for p in self.packages}

    def versions_by_directory(self) -> dict[Path, str]:
        return {p.directory: p.version for p in self.packages}


@dataclass(frozen=True, slots=True)
class Changeset:
    id: str
    releases: tuple[tuple[str, str], ...]
    summary: str = ""


@dataclass(frozen=True, slots=True)
class PreState:
    mode: Literal["pre", "exit"]
    tag: str
    initial_versions: dict[str, str]
    changesets: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class ChangesetState:
    changesets: tuple[Changeset, ...]
    pre_state: PreState | None = None

    @property
    def has_changesets(self) -> bool:
        return len(self.changesets) > 0

    @property
    def has_non_empty_changesets(self) -> bool:
        return any(c.releases for c in self.changesets)


@dataclass(frozen=True, slots=True)
class ChangelogEntry:
    content: str
    highest_level: int


@dataclass(frozen=True, slots=True)
class PackageVersionEntry:
    """Changelog excerpt of one bumped package, as shown in the version PR."""

    highest_level: int
    private: bool
    content: str
    header: str


@dataclass(frozen=True, slots=True)
class Proposal:
    number: int
    title: str = ""
    url: str | None = None


@dataclass(frozen=True, slots=True)
class Release:
    tag_name: str
    name: str | None = None
    prerelease: bool = False
    url: str | None = None


@dataclass(frozen=True, slots=True)
class ReleasedPackage:
    name: str
    version: str


@dataclass(frozen=True, slots=True)
class PublishResult:
    published: bool
    packages: tuple[ReleasedPackage, ...] = ()


@dataclass(frozen=True, slots=True)
class VersionResult:
    pull_request_number: int
    created: bool


def version_branch_for(base: str) -> str:
    return f"{VERSION_BRANCH_PREFIX}{base}"
