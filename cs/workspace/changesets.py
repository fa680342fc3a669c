"""Read pending changesets and the pre-release state.

A changeset is a markdown file in ``.changeset/`` whose front matter lists
the packages it releases::

    ---
    "@scope/pkg-a": minor
    pkg-b: patch
    ---

    Summary of the change.

The engine only cares whether the list is empty. ``.changeset/pre.json``,
when present, puts the repository in pre-release mode; in ``pre`` mode the
changesets it lists were already consumed by an earlier pre-release.
"""

from __future__ import annotations

import json
import re
from pathlib import Path

import yaml

from cs.core.result import Err, Ok, Result
from cs.core.structured import as_str_dict, get_str, get_str_list, get_table
from cs.services.release.errors import Inconsistency
from cs.services.release.model import Changeset, ChangesetState, PreState

CHANGESET_DIR = ".changeset"

_IGNORED_FILES = frozenset({"README.md"})

_FRONT_MATTER = re.compile(r"\A\s*---(.*?)\n\s*---(\s*(?:\n|\Z).*)\Z", re.DOTALL)


def _split_front_matter(path: Path, text: str) -> Result[tuple[str, str], Inconsistency]:
    m = _FRONT_MATTER.match(text)
    if m is None:
        return Err(Inconsistency(f"changeset has no front matter: {path.name}"))
    return Ok((m.group(1), m.group(2).strip()))


def _parse_releases(path: Path, block: str) -> Result[tuple[tuple[str, str], ...], Inconsistency]:
    try:
        obj: object = yaml.safe_load(block)
    except yaml.YAMLError as e:
        return Err(Inconsistency(f"invalid front matter in {path.name}: {e}"))

    if obj is None:
        return Ok(())
    data = as_str_dict(obj)
    if data is None:
        return Err(Inconsistency(f"front matter must map package names to bumps: {path.name}"))

    releases: list[tuple[str, str]] = []
    for name, bump in data.items():
        if not isinstance(bump, str):
            return Err(Inconsistency(f"invalid bump for {name!r} in {path.name}: {bump!r}"))
        releases.append((name, bump))
    return Ok(tuple(releases))


def read_pre_state(root: Path) -> Result[PreState | None, Inconsistency]:
    path = root / CHANGESET_DIR / "pre.json"
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return Ok(None)
    except OSError as e:
        return Err(Inconsistency(f"failed to read {path}: {e}"))

    try:
        obj: object = json.loads(raw)
    except json.JSONDecodeError as e:
        return Err(Inconsistency(f"invalid JSON in {path}: {e}"))

    data = as_str_dict(obj)
    if data is None:
        return Err(Inconsistency(f"unexpected pre.json payload: {path}"))

    mode = get_str(data, "mode")
    tag = get_str(data, "tag")
    if mode not in ("pre", "exit") or tag is None:
        return Err(Inconsistency(f"pre.json needs mode (pre|exit) and tag: {path}"))

    initial = get_table(data, "initialVersions") or {}
    return Ok(
        PreState(
            mode=mode,
            tag=tag,
            initial_versions={k: v for k, v in initial.items() if isinstance(v, str)},
            changesets=tuple(get_str_list(data, "changesets") or []),
        )
    )


def read_changeset_state(root: Path) -> Result[ChangesetState, Inconsistency]:
    """Load pending changesets under ``root``.

    Returns:
        Ok(ChangesetState) on success, Err(Inconsistency) if the directory is
        missing or a changeset cannot be parsed.
    """
    directory = root / CHANGESET_DIR
    if not directory.is_dir():
        return Err(Inconsistency(f"no {CHANGESET_DIR} directory in {root} (run: changeset init)"))

    pre = read_pre_state(root)
    if isinstance(pre, Err):
        return pre
    pre_state = pre.value

    consumed: frozenset[str] = frozenset()
    if pre_state is not None and pre_state.mode == "pre":
        consumed = frozenset(pre_state.changesets)

    changesets: list[Changeset] = []
    for path in sorted(directory.glob("*.md")):
        if path.name in _IGNORED_FILES or path.stem in consumed:
            continue
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            return Err(Inconsistency(f"failed to read changeset {path.name}: {e}"))

        split = _split_front_matter(path, text)
        if isinstance(split, Err):
            return split
        block, summary = split.value

        releases = _parse_releases(path, block)
        if isinstance(releases, Err):
            return releases
        changesets.append(Changeset(id=path.stem, releases=releases.value, summary=summary))

    return Ok(ChangesetState(changesets=tuple(changesets), pre_state=pre_state))
