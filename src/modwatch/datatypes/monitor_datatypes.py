"""
State and result types exposed by the monitor scheduler.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List

from modwatch.datatypes.action_datatypes import ActionRecord, Decision
from modwatch.datatypes.pattern_datatypes import Pattern


@dataclass(frozen=True, slots=True)
class MonitorStatistics:
    """Aggregates derived from the retained ActionRecords.

    Attributes:
        actions_today: Records whose timestamp falls on the current UTC day.
        success_rate: Share of records that succeeded and were not rated below 3.
        average_confidence: Mean decision confidence.
        most_common_action: Mode of the action field (earliest seen wins ties), or None.
        feedback_count: Records carrying feedback.
        average_rating: Mean feedback rating, 0.0 without feedback.
        total_actions: Records considered.
    """

    actions_today: int = 0
    success_rate: float = 0.0
    average_confidence: float = 0.0
    most_common_action: str | None = None
    feedback_count: int = 0
    average_rating: float = 0.0
    total_actions: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "actions_today": self.actions_today,
            "success_rate": self.success_rate,
            "average_confidence": self.average_confidence,
            "most_common_action": self.most_common_action,
            "feedback_count": self.feedback_count,
            "average_rating": self.average_rating,
            "total_actions": self.total_actions,
        }


@dataclass(frozen=True, slots=True)
class MonitorState:
    """Snapshot of the monitor as reported to operators."""

    is_active: bool
    last_analysis: datetime | None
    recent_actions: List[ActionRecord]
    statistics: MonitorStatistics


@dataclass(slots=True)
class CycleResult:
    """Everything one detection → decision → execution cycle produced.

    ``skipped`` is True when the cycle did not run because another one was
    already in flight.
    """

    patterns: List[Pattern] = field(default_factory=list)
    decisions: List[Decision] = field(default_factory=list)
    executed: List[ActionRecord] = field(default_factory=list)
    skipped: bool = False
    started_at: datetime | None = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "patterns": [p.to_dict() for p in self.patterns],
            "decisions": [d.to_dict() for d in self.decisions],
            "executed": [r.to_dict() for r in self.executed],
            "skipped": self.skipped,
            "started_at": self.started_at.isoformat() if self.started_at else None,
        }
