"""Running external tools (git, gh, go, make).

``run`` always takes the directory to run in; nothing here depends on the
process cwd. Failures, including a missing binary or a timeout, come back
as ``Err(ProcessError)`` rather than exceptions.

Usage:
    match run(["go", "env", "GOVERSION"], cwd=checkout, timeout=30.0):
        case Ok(out):
            print(out.strip())
        case Err(e):
            print(e.detail)
"""

from __future__ import annotations

import os
import subprocess
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from postrel.core.result import Err, Ok, Result

__all__ = ["ProcessError", "run"]


@dataclass(frozen=True, slots=True)
class ProcessError:
    """A command that could not be run or exited non-zero.

    Attributes:
        command: argv as executed.
        returncode: Exit status; -1 when the process never ran to completion.
        stdout: Captured standard output.
        stderr: Captured standard error, or the reason it never ran.
    """

    command: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    def __str__(self) -> str:
        shown = " ".join(self.command[:3])
        if len(self.command) > 3:
            shown += " ..."
        return f"{shown} failed (exit {self.returncode})"

    @property
    def detail(self) -> str:
        """Most useful diagnostic text: stderr, then stdout, then the summary."""
        return self.stderr.strip() or self.stdout.strip() or str(self)


def run(
    cmd: list[str],
    cwd: Path,
    env: Mapping[str, str] | None = None,
    *,
    timeout: float | None = None,
) -> Result[str, ProcessError]:
    """Run ``cmd`` in ``cwd`` and capture its output.

    Args:
        cmd: argv.
        cwd: Directory to run in.
        env: Variables added on top of the inherited environment.
        timeout: Seconds before the process is killed; None waits forever.

    Returns:
        Ok(stdout), or Err(ProcessError) for a non-zero exit, a timeout or
        a binary that cannot be started.
    """
    argv = tuple(cmd)
    merged = {**os.environ, **env} if env else None

    try:
        done = subprocess.run(
            cmd,
            cwd=str(cwd),
            env=merged,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        partial = e.stdout if isinstance(e.stdout, str) else ""
        return Err(ProcessError(argv, -1, partial, f"Command timed out after {timeout}s"))
    except OSError as e:
        return Err(ProcessError(argv, -1, "", str(e)))

    if done.returncode != 0:
        return Err(ProcessError(argv, done.returncode, done.stdout, done.stderr))
    return Ok(done.stdout)
