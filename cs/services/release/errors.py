"""Error kinds of the release engine.

Each failure is a frozen dataclass constructed where it happens; callers and
the CLI dispatch on the type with ``match``.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from cs.core.config import ConfigError

__all__ = [
    "ApiError",
    "ChangelogEntryMissing",
    "ChangelogError",
    "ChangelogNotFound",
    "ChangelogUnreadable",
    "ConfigError",
    "GitFailed",
    "Inconsistency",
    "ReleaseError",
    "ToolFailed",
]


@dataclass(frozen=True, slots=True)
class ToolFailed:
    """The version or publish command exited non-zero."""

    command: tuple[str, ...]
    returncode: int
    stderr: str = ""


@dataclass(frozen=True, slots=True)
class GitFailed:
    command: str
    message: str


@dataclass(frozen=True, slots=True)
class ApiError:
    """Non-2xx (or unreachable) host API response."""

    status: int
    status_text: str
    url: str
    message: str = ""

    def __str__(self) -> str:
        return f"{self.status} {self.status_text} ({self.url})"


@dataclass(frozen=True, slots=True)
class ChangelogNotFound:
    path: Path


@dataclass(frozen=True, slots=True)
class ChangelogUnreadable:
    path: Path
    reason: str


@dataclass(frozen=True, slots=True)
class ChangelogEntryMissing:
    package: str
    version: str
    path: Path


@dataclass(frozen=True, slots=True)
class Inconsistency:
    """Tool output or workspace state contradicts what the engine expects."""

    message: str


ChangelogError = ChangelogNotFound | ChangelogUnreadable | ChangelogEntryMissing

ReleaseError = ConfigError | ToolFailed | GitFailed | ApiError | ChangelogError | Inconsistency
