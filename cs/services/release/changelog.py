"""Changelog section lookup.

A version's notes start at the markdown heading whose text is exactly the
version and run up to the next heading of the same or a shallower depth.
Headings such as "Minor Changes" inside the section give the bump level used
to order packages in the version PR.
"""

from __future__ import annotations

import re
from enum import IntEnum
from pathlib import Path

from cs.core.result import Err, Ok, Result
from cs.services.release.errors import (
    ChangelogEntryMissing,
    ChangelogError,
    ChangelogNotFound,
    ChangelogUnreadable,
)
from cs.services.release.model import ChangelogEntry, Package

_HEADING = re.compile(r"^ {0,3}(#{1,6})(?:[ \t]+(.*?))?(?:[ \t]+#+)?[ \t]*$")
_FENCE = re.compile(r"^ {0,3}(`{3,}|~{3,})")
_BUMP = re.compile(r"(major|minor|patch)")


class BumpLevel(IntEnum):
    DEP = 0
    PATCH = 1
    MINOR = 2
    MAJOR = 3


def _headings(lines: list[str]) -> list[tuple[int, int, str]]:
    """Return (line index, depth, text) for every ATX heading outside code fences."""
    out: list[tuple[int, int, str]] = []
    fence: str | None = None
    for i, line in enumerate(lines):
        fence_match = _FENCE.match(line)
        if fence_match:
            marker = fence_match.group(1)
            if fence is None:
                fence = marker[0] * 3
            elif marker.startswith(fence):
                fence = None
            continue
        if fence is not None:
            continue
        m = _HEADING.match(line)
        if m:
            out.append((i, len(m.group(1)), (m.group(2) or "").strip()))
    return out


def get_changelog_entry(changelog: str, version: str) -> ChangelogEntry | None:
    """Extract the section of ``version`` from a changelog.

    Returns:
        The section text (verbatim, surrounding blank lines trimmed) and its
        highest bump level, or None if no heading matches the version.
    """
    lines = changelog.splitlines()
    headings = _headings(lines)

    start: tuple[int, int] | None = None
    end = len(lines)
    highest = BumpLevel.DEP
    for index, depth, text in headings:
        if start is None:
            if text == version:
                start = (index, depth)
            continue
        if depth <= start[1]:
            end = index
            break
        bump = _BUMP.search(text.lower())
        if bump is not None:
            highest = max(highest, BumpLevel[bump.group(1).upper()])

    if start is None:
        return None

    content = "\n".join(lines[start[0] + 1 : end]).strip("\n")
    return ChangelogEntry(content=content, highest_level=int(highest))


def read_changelog(path: Path) -> Result[str, ChangelogNotFound | ChangelogUnreadable]:
    try:
        return Ok(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return Err(ChangelogNotFound(path=path))
    except (OSError, UnicodeDecodeError) as e:
        return Err(ChangelogUnreadable(path=path, reason=str(e)))


def package_changelog_entry(package: Package) -> Result[ChangelogEntry, ChangelogError]:
    """Read a package's CHANGELOG.md and return the section of its current version."""
    text = read_changelog(package.changelog_path)
    if isinstance(text, Err):
        return text

    entry = get_changelog_entry(text.value, package.version)
    if entry is None:
        return Err(
            ChangelogEntryMissing(
                package=package.name,
                version=package.version,
                path=package.changelog_path,
            )
        )
    return Ok(entry)
