"""Release propagation: checksums, recipe patching, the per-repo workflow and its targets."""

from postrel.release.dispatcher import DispatchReport, Dispatcher, TargetOutcome, TargetResult
from postrel.release.errors import ReleaseError, UpdateError
from postrel.release.version import Version, parse_version, read_version_file
from postrel.release.workflow import ReleaseUpdate, UpdateState

__all__ = [
    "DispatchReport",
    "Dispatcher",
    "ReleaseError",
    "ReleaseUpdate",
    "TargetOutcome",
    "TargetResult",
    "UpdateError",
    "UpdateState",
    "Version",
    "parse_version",
    "read_version_file",
]
