"""Parser for the publish tool's tag announcements.

The publish tool prints one line per git tag it creates. Two shapes matter:

    New tag: <package>@<version>     package tag (multi-package workspaces)
    New tag: <anything>              bare announcement (single package, e.g. "New tag: v1.0.0")

Every line containing ``New tag:`` yields an event: ``PackageTagged`` when a
package name and version can be read from it, ``TagAnnounced`` otherwise.
Other lines are ignored.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass
from typing import TypeAlias

TAG_MARKER = "New tag:"

_PACKAGE_TAG = re.compile(r"New tag:\s+(@[^/]+/[^@]+|[^/]+)@(\S+)")


@dataclass(frozen=True, slots=True)
class PackageTagged:
    name: str
    version: str
    line: str


@dataclass(frozen=True, slots=True)
class TagAnnounced:
    line: str


TagEvent: TypeAlias = PackageTagged | TagAnnounced


def iter_tag_events(output: str) -> Iterator[TagEvent]:
    for line in output.split("\n"):
        if TAG_MARKER not in line:
            continue
        match = _PACKAGE_TAG.search(line)
        if match is None:
            yield TagAnnounced(line=line)
        else:
            yield PackageTagged(name=match.group(1), version=match.group(2), line=line)


def parse_publish_output(output: str) -> list[TagEvent]:
    """Parse publish tool stdout into tag events, in output order."""
    return list(iter_tag_events(output))
