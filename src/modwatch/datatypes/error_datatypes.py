"""
Error values shared across the monitor boundaries.

Failures that are part of normal operation (a strategy returning garbage, a
platform rejecting a timeout, feedback for an unknown action) travel as
:class:`Failure` values on results and records. Only configuration problems
are raised, because they must stop the process before any cycle runs.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorKind(Enum):
    """Boundary failure categories."""

    CONFIGURATION = "configuration_error"
    TRANSPORT_UNAVAILABLE = "transport_unavailable"
    STRATEGY_PARSE = "strategy_parse_error"
    ACTION_EXECUTION = "action_execution_error"
    TARGET_RESOLUTION = "target_resolution_failure"
    FEEDBACK_NOT_FOUND = "feedback_not_found"
    INVALID_FEEDBACK = "invalid_feedback"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class Failure:
    """A failure carried as a value.

    Attributes:
        kind: Which boundary failed.
        message: Human-readable description of what happened.
    """

    kind: ErrorKind
    message: str

    def __str__(self) -> str:
        return f"{self.kind}: {self.message}"


class ConfigurationError(Exception):
    """Invalid or missing required settings. Fatal at startup."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.failure = Failure(ErrorKind.CONFIGURATION, message)
