"""Git operations used by the release orchestrators.

Usage:
    from cs.git import Repository

    repo = Repository(Path.cwd())
    repo.push_tags()
"""

from cs.git.repository import GitError, Repository

__all__ = [
    "GitError",
    "Repository",
]
