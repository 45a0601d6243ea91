"""
Error Types
-----------
Every failure of a single conversion is reported through one of these.
Configuration and input errors are raised before any pixel work starts.
"""

from typing import Any, Optional


class HdrfixError(Exception):
    """Base class for conversion errors."""


class InvalidConfigurationError(HdrfixError, ValueError):
    """An option value is malformed, out of range, or contradicts another option."""

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"{field}: {message}")


class InvalidInputError(HdrfixError, ValueError):
    """The pixel buffer is empty, has zero dimensions, or has the wrong shape."""


class UnsupportedFormatError(InvalidInputError):
    """The input file cannot be decoded into a linear pixel buffer."""


class NumericDegenerateError(HdrfixError, ArithmeticError):
    """A resolved parameter would make a stage divide by zero."""

    def __init__(self, field: str, value: Optional[Any] = None, message: str = None):
        self.field = field
        self.value = value
        detail = message or f"resolved to a degenerate value ({value!r})"
        super().__init__(f"{field}: {detail}")
