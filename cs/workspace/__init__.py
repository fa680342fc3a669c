"""Readers for workspace state: changesets and packages."""

from .changesets import read_changeset_state, read_pre_state
from .packages import get_packages

__all__ = [
    "get_packages",
    "read_changeset_state",
    "read_pre_state",
]
