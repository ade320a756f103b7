"""Ok/Err values for steps that can fail.

Steps of a post-release run return ``Ok`` or ``Err`` instead of raising, so
a failed target can be reported and the run can move on to the next one.

Usage:
    match read_version_file(root / "VERSION"):
        case Ok(version):
            console.success(f"Current version is: {version}")
        case Err(error):
            console.error(error.message)
"""

from __future__ import annotations

from dataclasses import dataclass

__all__ = ["Err", "Ok", "Result"]


@dataclass(frozen=True, slots=True)
class Ok[T]:
    value: T


@dataclass(frozen=True, slots=True)
class Err[E]:
    error: E


type Result[T, E] = Ok[T] | Err[E]
