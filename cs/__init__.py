"""Release automation for changeset-driven projects."""

__version__ = "0.3.0"
