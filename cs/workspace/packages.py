"""Enumerate the packages of a JavaScript workspace.

A repository without workspace globs is a single-package ("root") project
whose only package is the root ``package.json``. Otherwise the member
directories come from ``pnpm-workspace.yaml`` or the ``workspaces`` field of
the root ``package.json`` and the root package itself is not listed.
"""

from __future__ import annotations

import json
from pathlib import Path

import yaml

from cs.core.result import Err, Ok, Result
from cs.core.structured import StrDict, as_str_dict, get_bool, get_str, get_str_list, get_table
from cs.services.release.errors import Inconsistency
from cs.services.release.model import Package, Packages, WorkspaceTool


def _read_manifest(path: Path) -> Result[StrDict, Inconsistency]:
    try:
        obj: object = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return Err(Inconsistency(f"package.json not found: {path}"))
    except (OSError, UnicodeDecodeError) as e:
        return Err(Inconsistency(f"failed to read {path}: {e}"))
    except json.JSONDecodeError as e:
        return Err(Inconsistency(f"invalid JSON in {path}: {e}"))

    data = as_str_dict(obj)
    if data is None:
        return Err(Inconsistency(f"package.json must be an object: {path}"))
    return Ok(data)


def _package_from(directory: Path, manifest: StrDict) -> Result[Package, Inconsistency]:
    name = get_str(manifest, "name")
    if name is None:
        return Err(Inconsistency(f"package without a name: {directory / 'package.json'}"))
    return Ok(
        Package(
            name=name,
            version=get_str(manifest, "version") or "0.0.0",
            directory=directory,
            private=get_bool(manifest, "private") or False,
        )
    )


def _pnpm_globs(path: Path) -> Result[list[str], Inconsistency]:
    try:
        obj: object = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as e:
        return Err(Inconsistency(f"failed to read {path}: {e}"))
    except yaml.YAMLError as e:
        return Err(Inconsistency(f"invalid YAML in {path}: {e}"))

    if obj is None:
        return Ok([])
    data = as_str_dict(obj)
    if data is None:
        return Err(Inconsistency(f"pnpm-workspace.yaml must be a mapping: {path}"))
    return Ok(get_str_list(data, "packages") or [])


def _workspace_globs(
    root: Path, manifest: StrDict
) -> Result[tuple[WorkspaceTool, list[str]], Inconsistency]:
    pnpm = root / "pnpm-workspace.yaml"
    if pnpm.is_file():
        pnpm_globs = _pnpm_globs(pnpm)
        if isinstance(pnpm_globs, Err):
            return pnpm_globs
        return Ok(("pnpm", pnpm_globs.value))

    globs = get_str_list(manifest, "workspaces")
    if globs is None:
        nested = get_table(manifest, "workspaces")
        globs = get_str_list(nested, "packages") if nested is not None else None
    if not globs:
        return Ok(("root", []))

    tool: WorkspaceTool = "yarn" if (root / "yarn.lock").is_file() else "npm"
    return Ok((tool, globs))


def _expand(root: Path, globs: list[str]) -> list[Path]:
    included: list[Path] = []
    excluded: set[Path] = set()
    for pattern in globs:
        negate = pattern.startswith("!")
        pattern = pattern.lstrip("!").rstrip("/")
        matches = [p for p in sorted(root.glob(pattern)) if (p / "package.json").is_file()]
        if negate:
            excluded.update(matches)
            continue
        for match in matches:
            if match not in included:
                included.append(match)
    return [p for p in included if p not in excluded]


def get_packages(root: Path) -> Result[Packages, Inconsistency]:
    """Collect the workspace packages under ``root``."""
    manifest = _read_manifest(root / "package.json")
    if isinstance(manifest, Err):
        return manifest

    layout = _workspace_globs(root, manifest.value)
    if isinstance(layout, Err):
        return layout
    tool, globs = layout.value
    if tool == "root":
        pkg = _package_from(root, manifest.value)
        if isinstance(pkg, Err):
            return pkg
        return Ok(Packages(tool="root", packages=(pkg.value,)))

    packages: list[Package] = []
    for directory in _expand(root, globs):
        member = _read_manifest(directory / "package.json")
        if isinstance(member, Err):
            return member
        pkg = _package_from(directory, member.value)
        if isinstance(pkg, Err):
            return pkg
        packages.append(pkg.value)

    return Ok(Packages(tool=tool, packages=tuple(packages)))
