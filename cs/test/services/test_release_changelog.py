from __future__ import annotations

from pathlib import Path

from cs.core.result import Err, Ok
from cs.services.release.changelog import BumpLevel, get_changelog_entry, package_changelog_entry
from cs.services.release.errors import ChangelogEntryMissing, ChangelogNotFound
from cs.services.release.model import Package

CHANGELOG = """# pkg-a

## 1.1.0

### Minor Changes

- abc1234: Add the `--dry-run` flag

### Patch Changes

- def5678: Fix path handling on Windows

## 1.0.0

### Major Changes

- 0a1b2c3: First stable release

## 0.9.0

### Patch Changes

- Early fix
"""


def test_section_runs_to_next_heading_of_same_depth() -> None:
    entry = get_changelog_entry(CHANGELOG, "1.1.0")
    assert entry is not None
    assert entry.content == (
        "### Minor Changes\n\n"
        "- abc1234: Add the `--dry-run` flag\n\n"
        "### Patch Changes\n\n"
        "- def5678: Fix path handling on Windows"
    )
    assert entry.highest_level == BumpLevel.MINOR


def test_major_section() -> None:
    entry = get_changelog_entry(CHANGELOG, "1.0.0")
    assert entry is not None
    assert entry.content == "### Major Changes\n\n- 0a1b2c3: First stable release"
    assert entry.highest_level == BumpLevel.MAJOR


def test_last_section_runs_to_end() -> None:
    entry = get_changelog_entry(CHANGELOG, "0.9.0")
    assert entry is not None
    assert entry.content == "### Patch Changes\n\n- Early fix"
    assert entry.highest_level == BumpLevel.PATCH


def test_unknown_version() -> None:
    assert get_changelog_entry(CHANGELOG, "2.0.0") is None


def test_version_must_match_whole_heading() -> None:
    assert get_changelog_entry("## 1.1.0-beta.1\n\n- x\n", "1.1.0") is None


def test_section_without_bump_headings_is_dependency_level() -> None:
    entry = get_changelog_entry("## 1.0.1\n\n- Updated dependencies\n", "1.0.1")
    assert entry is not None
    assert entry.highest_level == BumpLevel.DEP


def test_headings_inside_code_fences_are_ignored() -> None:
    changelog = (
        "## 2.0.0\n\n"
        "### Major Changes\n\n"
        "```md\n"
        "## 1.0.0\n"
        "```\n\n"
        "## 1.0.0\n\n"
        "- old\n"
    )
    entry = get_changelog_entry(changelog, "2.0.0")
    assert entry is not None
    assert "## 1.0.0" in entry.content
    assert entry.content.endswith("```")


def test_section_content_is_verbatim() -> None:
    content = "### Patch Changes\n\n- keep   spacing\n  - nested item\n\n> quote"
    changelog = f"# pkg\n\n## 3.1.4\n\n{content}\n\n## 3.1.3\n\n- older\n"
    entry = get_changelog_entry(changelog, "3.1.4")
    assert entry is not None
    assert entry.content == content


def test_package_changelog_entry(tmp_path: Path) -> None:
    (tmp_path / "CHANGELOG.md").write_text(CHANGELOG, encoding="utf-8")
    package = Package(name="pkg-a", version="1.0.0", directory=tmp_path)

    result = package_changelog_entry(package)
    assert isinstance(result, Ok)
    assert result.value.highest_level == BumpLevel.MAJOR


def test_package_changelog_missing_file(tmp_path: Path) -> None:
    result = package_changelog_entry(Package(name="pkg-a", version="1.0.0", directory=tmp_path))
    assert isinstance(result, Err)
    assert isinstance(result.error, ChangelogNotFound)


def test_package_changelog_missing_entry(tmp_path: Path) -> None:
    (tmp_path / "CHANGELOG.md").write_text(CHANGELOG, encoding="utf-8")
    result = package_changelog_entry(Package(name="pkg-a", version="9.9.9", directory=tmp_path))
    assert isinstance(result, Err)
    assert result.error == ChangelogEntryMissing(
        package="pkg-a", version="9.9.9", path=tmp_path / "CHANGELOG.md"
    )
