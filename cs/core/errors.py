"""Exit codes for the release CLI.

The numeric values are reported to the CI runner and should remain stable:
- 0: Success
- 1: User error (bad input, missing credentials)
- 2: Tool error (version or publish command failed)
- 3: VCS error (git command failed)
- 4: Network error (host API failure)
- 5: Data error (changelog or tag output inconsistent with the workspace)
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Process exit codes."""

    OK = 0
    USER_ERROR = 1
    TOOL_ERROR = 2
    VCS_ERROR = 3
    NETWORK_ERROR = 4
    DATA_ERROR = 5

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")

    @property
    def is_success(self) -> bool:
        return self == ErrorCode.OK
