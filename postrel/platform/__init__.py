"""Process execution and filesystem helpers."""

from postrel.platform.files import atomic_write_text, atomic_writer
from postrel.platform.process import ProcessError, run

__all__ = ["ProcessError", "atomic_write_text", "atomic_writer", "run"]
