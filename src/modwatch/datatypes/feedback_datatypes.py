"""Operator feedback types."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict

from modwatch.datatypes.error_datatypes import Failure
from modwatch.util.format_utils import parse_timestamp


class FeedbackSource(Enum):
    CHAT = "chat"
    MANUAL = "manual"
    STREAMER = "streamer"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class FeedbackEntry:
    """A rating attached to a previously recorded action.

    Attributes:
        action_timestamp: Timestamp of the ActionRecord being rated.
        rating: 1 (poor) to 5 (excellent).
        comment: Optional free text.
        source: Who provided the rating.
        recorded_at: When the rating was received.
    """

    action_timestamp: datetime
    rating: int
    comment: str | None = None
    source: FeedbackSource = FeedbackSource.MANUAL
    recorded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action_timestamp": self.action_timestamp.isoformat(),
            "rating": self.rating,
            "comment": self.comment,
            "source": self.source.value,
            "recorded_at": self.recorded_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FeedbackEntry":
        action_timestamp = parse_timestamp(str(data.get("action_timestamp", "")))
        if action_timestamp is None:
            raise ValueError(f"Invalid feedback timestamp: {data.get('action_timestamp')!r}")
        recorded_at = parse_timestamp(str(data.get("recorded_at", ""))) or action_timestamp
        return cls(
            action_timestamp=action_timestamp,
            rating=int(data.get("rating", 0)),
            comment=data.get("comment"),
            source=FeedbackSource(data.get("source", FeedbackSource.MANUAL.value)),
            recorded_at=recorded_at,
        )


@dataclass(frozen=True, slots=True)
class FeedbackResult:
    """Outcome of an ``add_feedback`` call; exactly one field is set."""

    entry: FeedbackEntry | None = None
    error: Failure | None = None

    @property
    def ok(self) -> bool:
        return self.entry is not None and self.error is None
