"""Signals produced by pattern detection within one cycle."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict


class PatternCategory(Enum):
    """Rule categories the detector knows how to evaluate."""

    SPAM = "spam"
    TOXICITY = "toxicity"
    ENGAGEMENT = "engagement"
    POLL = "poll"

    def __str__(self) -> str:
        return self.value


@dataclass(slots=True)
class Pattern:
    """A typed signal found in the buffered chat.

    Attributes:
        category: Rule category that produced the signal.
        subject: Username the signal is about, or None for channel-wide signals.
        score: Category specific magnitude (severity, message count, quiet seconds, requests).
        evidence: Short excerpt explaining the signal.
        details: Extra payload such as a suggested chat message or poll choices.
    """

    category: PatternCategory
    subject: str | None
    score: float
    evidence: str = ""
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category.value,
            "subject": self.subject,
            "score": self.score,
            "evidence": self.evidence,
            "details": dict(self.details),
        }
