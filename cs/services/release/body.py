"""Version PR body composition.

Hosts cap issue/PR bodies (GitHub: 65536 characters). The body degrades in
two steps while it is over the limit: first per-package changelog content is
dropped (headers stay), then all per-package information is dropped.
"""

from __future__ import annotations

from collections.abc import Sequence

from cs.services.release.model import PackageVersionEntry, PreState

RELEASES_HEADING = "# Releases"

CONTENT_OMITTED_NOTICE = (
    "\n> The changelog information of each package has been omitted from this message, "
    "as the content exceeds the size limit.\n"
)
ALL_OMITTED_NOTICE = (
    "\n> All release information have been omitted from this message, "
    "as the content exceeds the size limit."
)


def _header(*, has_publish_command: bool, branch: str) -> str:
    merge_outcome = (
        "the packages will be published automatically"
        if has_publish_command
        else (
            "publish the packages yourself or configure a publish command "
            "to publish them automatically"
        )
    )
    return (
        "This PR was opened by the changesets release automation. "
        f"When you're ready to do a release, you can merge this and {merge_outcome}. "
        "If you're not ready to do a release yet, that's fine, whenever you add more "
        f"changesets to {branch}, this PR will be updated.\n"
    )


def _pre_mode_warning(*, pre_state: PreState | None, branch: str) -> str:
    if pre_state is None:
        return ""
    return (
        "> [!WARNING]\n"
        f"> `{branch}` is currently in **pre mode** so this branch has prereleases "
        "rather than normal releases. If you want to exit prereleases, run "
        f"`changeset pre exit` on `{branch}`.\n"
    )


def compose_version_pr_body(
    *,
    has_publish_command: bool,
    pre_state: PreState | None,
    entries: Sequence[PackageVersionEntry],
    max_characters: int,
    branch: str,
) -> str:
    """Build the version PR body, degrading it to fit ``max_characters``.

    Args:
        has_publish_command: Whether merging the PR triggers a publish.
        pre_state: Pre-release state, adds a warning block when present.
        entries: Changed packages, already ordered.
        max_characters: Size limit of the body.
        branch: Base branch the PR targets.

    Returns:
        The body. It may still exceed the limit when the fixed text alone does.
    """
    header = _header(has_publish_command=has_publish_command, branch=branch)
    warning = _pre_mode_warning(pre_state=pre_state, branch=branch)
    prefix = [header, warning, RELEASES_HEADING]

    body = "\n".join([*prefix, *(f"{e.header}\n\n{e.content}" for e in entries)])
    if len(body) <= max_characters:
        return body

    body = "\n".join([*prefix, CONTENT_OMITTED_NOTICE, *(f"{e.header}\n\n" for e in entries)])
    if len(body) <= max_characters:
        return body

    return "\n".join([*prefix, ALL_OMITTED_NOTICE])


def version_pr_title(title: str, pre_state: PreState | None) -> str:
    """Title (or commit message) with the pre-release tag appended in pre mode."""
    if pre_state is None:
        return title
    return f"{title} ({pre_state.tag})"
