"""
Action types and data structures for autonomous actions.

This module defines the ActionType and ToolName enums plus the Decision,
ActionResult and ActionRecord dataclasses used between the decision engine,
the executor and the feedback store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict

from modwatch.datatypes.feedback_datatypes import FeedbackEntry
from modwatch.datatypes.pattern_datatypes import PatternCategory
from modwatch.util.format_utils import parse_timestamp


class ActionType(Enum):
    """Enumeration of actions the monitor can decide on."""

    BAN = "ban"
    TIMEOUT = "timeout"
    WARN = "warn"
    MESSAGE = "message"
    POLL = "poll"

    def __str__(self) -> str:
        return self.value


class ToolName(Enum):
    """Names understood by the external action capability."""

    SEND_CHAT_MESSAGE = "send-chat-message"
    TIMEOUT_USER = "timeout-user"
    BAN_USER = "ban-user"
    CREATE_POLL = "create-poll"
    CREATE_PREDICTION = "create-prediction"
    CREATE_CLIP = "create-clip"
    UPDATE_TITLE = "update-title"
    UPDATE_CATEGORY = "update-category"

    def __str__(self) -> str:
        return self.value


class Outcome(Enum):
    SUCCESS = "success"
    FAILURE = "failure"

    def __str__(self) -> str:
        return self.value


# Higher wins when two candidates target the same user in one cycle.
ACTION_SEVERITY: Dict[ActionType, int] = {
    ActionType.BAN: 3,
    ActionType.TIMEOUT: 2,
    ActionType.WARN: 1,
    ActionType.MESSAGE: 0,
    ActionType.POLL: 0,
}

ACTION_TOOLS: Dict[ActionType, ToolName] = {
    ActionType.BAN: ToolName.BAN_USER,
    ActionType.TIMEOUT: ToolName.TIMEOUT_USER,
    ActionType.WARN: ToolName.SEND_CHAT_MESSAGE,
    ActionType.MESSAGE: ToolName.SEND_CHAT_MESSAGE,
    ActionType.POLL: ToolName.CREATE_POLL,
}


@dataclass(slots=True)
class Decision:
    """An action the decision engine wants executed this cycle.

    Attributes:
        category: Rule category whose pattern produced the decision.
        action: What to do.
        target: Username to act on, or None for channel-wide actions.
        reason: Free-text justification, also sent to the platform.
        confidence: Normalized confidence in [0, 1].
        duration: Timeout/poll duration in seconds, when applicable.
        parameters: Extra tool parameters (chat message text, poll title/choices).
    """

    category: PatternCategory
    action: ActionType
    target: str | None
    reason: str
    confidence: float
    duration: int | None = None
    parameters: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category.value,
            "action": self.action.value,
            "target": self.target,
            "reason": self.reason,
            "confidence": round(self.confidence, 4),
            "duration": self.duration,
            "parameters": dict(self.parameters),
        }


@dataclass(slots=True)
class ActionResult:
    """Structured response of the action capability.

    Attributes:
        success: Whether the platform accepted the action.
        result: Tool specific payload on success.
        error: Error text on failure.
    """

    success: bool
    result: Any = None
    error: str | None = None

    @classmethod
    def ok(cls, result: Any = None) -> "ActionResult":
        return cls(success=True, result=result)

    @classmethod
    def failed(cls, error: str) -> "ActionResult":
        return cls(success=False, result=None, error=error)


@dataclass(slots=True)
class ActionRecord:
    """Durable record of one attempted action.

    Attributes:
        timestamp: When the attempt was made (UTC); the feedback key.
        action: Action type value (e.g. ``"timeout"``).
        target: Username acted on, if any.
        reason: Justification sent with the action.
        confidence: Decision confidence.
        outcome: Success or failure of the attempt.
        error_detail: Failure description when ``outcome`` is failure.
        feedback: Operator feedback attached later, if any.
        category: Rule category that triggered the action.
        result: Capability payload on success.
    """

    timestamp: datetime
    action: str
    target: str | None
    reason: str
    confidence: float
    outcome: Outcome
    error_detail: str | None = None
    feedback: FeedbackEntry | None = None
    category: str | None = None
    result: Any = None

    @property
    def succeeded(self) -> bool:
        return self.outcome is Outcome.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "action": self.action,
            "target": self.target,
            "reason": self.reason,
            "confidence": self.confidence,
            "outcome": self.outcome.value,
            "error_detail": self.error_detail,
            "category": self.category,
            "result": self.result,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ActionRecord":
        """Rebuild a record from a persisted actions log line.

        Raises:
            ValueError: If the timestamp or outcome is missing or invalid.
        """
        timestamp = parse_timestamp(str(data.get("timestamp", "")))
        if timestamp is None:
            raise ValueError(f"Invalid action timestamp: {data.get('timestamp')!r}")
        return cls(
            timestamp=timestamp,
            action=str(data.get("action", "")),
            target=data.get("target"),
            reason=str(data.get("reason", "")),
            confidence=float(data.get("confidence", 0.0)),
            outcome=Outcome(data.get("outcome", Outcome.FAILURE.value)),
            error_detail=data.get("error_detail"),
            category=data.get("category"),
            result=data.get("result"),
        )
