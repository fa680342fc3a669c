"""Git repository abstraction.

The release engine only needs a handful of primitives on the single checkout
it runs in: switch to (or create) the version branch, hard reset it, commit
everything, push, push tags. All operations return Result types.

Usage:
    repo = Repository(Path.cwd())

    match repo.switch_to_maybe_existing_branch("changeset-release/main"):
        case Ok(created):
            print("created" if created else "switched")
        case Err(e):
            print(f"checkout failed: {e.message}")
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from cs.core.result import Err, Ok, Result
from cs.platform.process import ProcessError
from cs.platform.process import run as run_process

_GIT_TIMEOUT_SECONDS = 30.0
_GIT_NETWORK_TIMEOUT_SECONDS = 3 * 60.0

_UNKNOWN_BRANCH_MARKER = "did not match any file(s) known to git"

BOT_USER_NAME = "github-actions[bot]"
BOT_USER_EMAIL = "41898282+github-actions[bot]@users.noreply.github.com"

__all__ = [
    "GitError",
    "Repository",
]


@dataclass(frozen=True, slots=True)
class GitError:
    """Error from a git operation.

    Attributes:
        command: The git command that failed
        message: Error message
        returncode: Process return code
    """

    command: str
    message: str
    returncode: int = 1


def _to_git_error(command: str, e: ProcessError, fallback: str) -> GitError:
    return GitError(
        command=command,
        message=e.stderr.strip() or e.stdout.strip() or fallback,
        returncode=e.returncode,
    )


class Repository:
    """Git operations on the release checkout.

    Attributes:
        path: Path to the repository root
        remote: Remote pushed to
    """

    def __init__(self, path: Path, remote: str = "origin") -> None:
        self.path = path
        self.remote = remote

    def setup_user(self) -> Result[None, GitError]:
        """Configure the bot identity used for version commits."""
        for key, value in (("user.name", BOT_USER_NAME), ("user.email", BOT_USER_EMAIL)):
            result = self._run(["config", key, value])
            if isinstance(result, Err):
                return Err(_to_git_error(f"config {key}", result.error, "git config failed"))
        return Ok(None)

    def switch_to_maybe_existing_branch(self, branch: str) -> Result[bool, GitError]:
        """Check out ``branch``, creating it when git does not know it.

        Returns:
            Ok(True) when the branch was created, Ok(False) when it existed.
        """
        result = self._run(["checkout", branch])
        if isinstance(result, Ok):
            return Ok(False)

        if _UNKNOWN_BRANCH_MARKER not in result.error.stderr:
            return Err(_to_git_error(f"checkout {branch}", result.error, "checkout failed"))

        created = self._run(["checkout", "-b", branch])
        if isinstance(created, Err):
            return Err(_to_git_error(f"checkout -b {branch}", created.error, "checkout failed"))
        return Ok(True)

    def reset_hard(self, ref: str) -> Result[None, GitError]:
        result = self._run(["reset", "--hard", ref])
        if isinstance(result, Err):
            return Err(_to_git_error(f"reset --hard {ref}", result.error, "reset failed"))
        return Ok(None)

    def is_clean(self) -> Result[bool, GitError]:
        """Check whether the working tree has no changes (tracked or untracked)."""
        result = self._run(["status", "--porcelain"])
        match result:
            case Err(e):
                return Err(_to_git_error("status", e, "git status failed"))
            case Ok(stdout):
                return Ok(stdout.strip() == "")

    def commit_all(self, message: str) -> Result[None, GitError]:
        added = self._run(["add", "."])
        if isinstance(added, Err):
            return Err(_to_git_error("add .", added.error, "git add failed"))

        committed = self._run(["commit", "-m", message])
        if isinstance(committed, Err):
            return Err(_to_git_error("commit", committed.error, "git commit failed"))
        return Ok(None)

    def push(self, branch: str, *, force: bool = False) -> Result[None, GitError]:
        """Push HEAD to ``branch`` on the remote."""
        args = ["push", self.remote, f"HEAD:{branch}"]
        if force:
            args.append("--force")
        result = self._run(args)
        if isinstance(result, Err):
            return Err(_to_git_error(f"push {branch}", result.error, "push failed"))
        return Ok(None)

    def push_tags(self) -> Result[None, GitError]:
        result = self._run(["push", self.remote, "--tags"])
        if isinstance(result, Err):
            return Err(_to_git_error("push --tags", result.error, "push failed"))
        return Ok(None)

    def _run(self, args: list[str]) -> Result[str, ProcessError]:
        """Run a git command in this repository."""
        command = args[0] if args else ""
        timeout = (
            _GIT_NETWORK_TIMEOUT_SECONDS
            if command in {"fetch", "pull", "push", "clone"}
            else _GIT_TIMEOUT_SECONDS
        )
        return run_process(["git", "-C", str(self.path), *args], cwd=self.path, timeout=timeout)
