"""Error presentation utilities.

Centralized error formatting and exit code mapping for release failures.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from cs.core.errors import ErrorCode
from cs.output.console import Style
from cs.services.release.errors import (
    ApiError,
    ChangelogEntryMissing,
    ChangelogNotFound,
    ChangelogUnreadable,
    ConfigError,
    GitFailed,
    Inconsistency,
    ReleaseError,
    ToolFailed,
)

if TYPE_CHECKING:
    from cs.output.console import ConsoleProtocol

__all__ = ["print_release_error", "release_error_exit_code"]


def print_release_error(error: ReleaseError, console: ConsoleProtocol) -> None:
    """Print a release failure with a hint where one helps."""
    match error:
        case ConfigError(message=message, path=path, hint=hint):
            console.error(message if path is None else f"{message} ({path})")
            if hint:
                console.print(f"hint: {hint}", Style.DIM)
        case ToolFailed(command=command, returncode=rc, stderr=stderr):
            console.error(f"{' '.join(command)} failed (exit {rc})")
            if stderr.strip():
                console.print(stderr.strip(), Style.DIM)
        case GitFailed(command=command, message=message):
            console.error(f"git {command} failed: {message}")
        case ApiError(message=message):
            console.error(f"host API request failed: {error}")
            if message:
                console.print(message, Style.DIM)
        case ChangelogNotFound(path=path):
            console.error(f"changelog not found: {path}")
        case ChangelogUnreadable(path=path, reason=reason):
            console.error(f"failed to read changelog {path}: {reason}")
        case ChangelogEntryMissing(package=package, version=version, path=path):
            console.error(f"Could not find changelog entry for {package}@{version}")
            console.print(f"hint: expected a '{version}' heading in {path}", Style.DIM)
        case Inconsistency(message=message):
            console.error(message)
            console.print(
                "hint: the publish tool output or workspace layout is not what the release "
                "engine expects",
                Style.DIM,
            )


def release_error_exit_code(error: ReleaseError) -> int:
    match error:
        case ConfigError():
            return int(ErrorCode.USER_ERROR)
        case ToolFailed():
            return int(ErrorCode.TOOL_ERROR)
        case GitFailed():
            return int(ErrorCode.VCS_ERROR)
        case ApiError():
            return int(ErrorCode.NETWORK_ERROR)
        case ChangelogNotFound() | ChangelogUnreadable() | ChangelogEntryMissing():
            return int(ErrorCode.DATA_ERROR)
        case Inconsistency():
            return int(ErrorCode.DATA_ERROR)
