"""
Outcome types for store and auth operations.

Expected failures (bad input, unknown ids, wrong password) are values, not
exceptions. Only storage I/O errors propagate.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel


class ErrorKind(str, Enum):
    UNAUTHORIZED = "unauthorized"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"


class Result(BaseModel):
    ok: bool
    value: Any = None
    error: Optional[ErrorKind] = None
    message: str = ""

    @classmethod
    def success(cls, value: Any = None) -> "Result":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: ErrorKind, message: str) -> "Result":
        return cls(ok=False, error=error, message=message)
