"""Core building blocks shared by every post-release step."""

from postrel.core.errors import ErrorCode
from postrel.core.result import Err, Ok, Result

__all__ = [
    "Err",
    "ErrorCode",
    "Ok",
    "Result",
]
