"""
Compile-time errors.

Raised before any process is spawned. A plan is never built from
parameters that would produce an undefined filter.
"""

from typing import Any


class PipelineError(Exception):
    """Base exception for all plan compilation failures."""
    pass


class InvalidParameterError(PipelineError):
    """
    A transform parameter is out of range.

    Raised for speed <= 0 or pitch <= 0 (setpts divides by speed,
    atempo/asetrate are undefined for non-positive values).
    """

    def __init__(self, name: str, value: Any, reason: str = "must be a positive number"):
        self.name = name
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid parameter {name}={value!r}: {reason}")


class MissingSourceHeightError(InvalidParameterError):
    """The aspect toggle is set but the source height was not resolved."""

    def __init__(self, value: Any = None):
        super().__init__(
            "source_height",
            value,
            "aspect rescaling requires the probed source height",
        )
