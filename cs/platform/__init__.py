"""Platform abstraction layer."""

from .process import ProcessError, run, run_streaming, split_command

__all__ = [
    "ProcessError",
    "run",
    "run_streaming",
    "split_command",
]
