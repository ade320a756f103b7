"""Error codes for CLI exit status.

The values map to shell exit codes and should remain stable:
- 0: Success
- 1: User error (unparsable VERSION file, bad config, aborted prompt)
- 2: Environment error (missing credentials, git unusable)
- 3: Update error (one or more targets failed)
- 4: Network error (artifact download failed)
- 5: I/O error (website template missing, file not writable)
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for the postrel CLI."""

    OK = 0
    USER_ERROR = 1
    ENV_ERROR = 2
    UPDATE_ERROR = 3
    NETWORK_ERROR = 4
    IO_ERROR = 5

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")

    @property
    def is_success(self) -> bool:
        return self == ErrorCode.OK
