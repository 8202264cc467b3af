"""
Typed, validated settings for the autonomous monitor.

The raw ``autonomous`` mapping from the YAML configuration is validated
against :data:`MONITOR_CONFIG_SCHEMA` with jsonschema and turned into frozen
dataclasses. Any violation raises :class:`ConfigurationError`, which the
entry point treats as fatal before a single cycle runs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, List, Tuple

import jsonschema

from modwatch.datatypes.action_datatypes import ActionType
from modwatch.datatypes.error_datatypes import ConfigurationError
from modwatch.datatypes.pattern_datatypes import PatternCategory

DEFAULT_RESPONSES: Tuple[str, ...] = (
    "Hey chat! How is everyone doing?",
    "Any questions about the game?",
)
DEFAULT_POLL_CHOICES: Tuple[str, ...] = ("Yes", "No")


class PollTrigger(Enum):
    VIEWER_REQUEST = "viewer_request"
    SCHEDULED = "scheduled"
    GAME_EVENT = "game_event"

    def __str__(self) -> str:
        return self.value


_MODERATION_ACTIONS = ["timeout", "ban", "warn"]

_COMMON_RULE_PROPERTIES: Dict[str, Any] = {
    "enabled": {"type": "boolean"},
    "cooldown_seconds": {"type": ["number", "null"], "minimum": 0},
    "min_confidence": {"type": "number", "minimum": 0, "maximum": 1},
}

MONITOR_CONFIG_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "enabled": {"type": "boolean"},
        "monitoring_interval_seconds": {"type": "number", "exclusiveMinimum": 0},
        "buffer_capacity": {"type": "integer", "minimum": 1},
        "rules": {
            "type": "object",
            "properties": {
                "spam_detection": {
                    "type": "object",
                    "properties": {
                        **_COMMON_RULE_PROPERTIES,
                        "threshold": {"type": "number", "exclusiveMinimum": 0},
                        "action": {"enum": _MODERATION_ACTIONS},
                        "duration": {"type": ["integer", "null"], "minimum": 1},
                    },
                    "additionalProperties": False,
                },
                "toxicity_detection": {
                    "type": "object",
                    "properties": {
                        **_COMMON_RULE_PROPERTIES,
                        "severity_threshold": {"type": "number", "minimum": 0, "maximum": 10},
                        "action": {"enum": _MODERATION_ACTIONS},
                        "duration": {"type": ["integer", "null"], "minimum": 1},
                    },
                    "additionalProperties": False,
                },
                "chat_engagement": {
                    "type": "object",
                    "properties": {
                        **_COMMON_RULE_PROPERTIES,
                        "quiet_period_threshold": {"type": "number", "exclusiveMinimum": 0},
                        "responses": {"type": "array", "items": {"type": "string", "minLength": 1}},
                    },
                    "additionalProperties": False,
                },
                "poll_automation": {
                    "type": "object",
                    "properties": {
                        **_COMMON_RULE_PROPERTIES,
                        "trigger": {"enum": [t.value for t in PollTrigger]},
                        "cooldown": {"type": "number", "minimum": 0},
                        "poll_duration": {"type": "integer", "minimum": 15, "maximum": 1800},
                        "default_choices": {
                            "type": "array",
                            "items": {"type": "string", "minLength": 1},
                            "minItems": 2,
                            "maxItems": 5,
                        },
                    },
                    "additionalProperties": False,
                },
            },
            "additionalProperties": False,
        },
    },
    "additionalProperties": False,
}


@dataclass(frozen=True)
class RuleConfig:
    """Settings shared by every rule category."""

    enabled: bool = False
    cooldown_seconds: float | None = None
    min_confidence: float = 0.5


@dataclass(frozen=True)
class SpamRule(RuleConfig):
    enabled: bool = True
    threshold: float = 5
    action: ActionType = ActionType.TIMEOUT
    duration: int | None = 300


@dataclass(frozen=True)
class ToxicityRule(RuleConfig):
    enabled: bool = True
    severity_threshold: float = 6
    action: ActionType = ActionType.TIMEOUT
    duration: int | None = 1800


@dataclass(frozen=True)
class EngagementRule(RuleConfig):
    quiet_period_threshold: float = 10
    responses: Tuple[str, ...] = DEFAULT_RESPONSES
    cooldown_seconds: float | None = 60


@dataclass(frozen=True)
class PollRule(RuleConfig):
    trigger: PollTrigger = PollTrigger.VIEWER_REQUEST
    cooldown: float = 15
    poll_duration: int = 120
    default_choices: Tuple[str, ...] = DEFAULT_POLL_CHOICES

    @property
    def cooldown_window_seconds(self) -> float:
        """Poll cooldown is configured in minutes; ``cooldown_seconds`` overrides it."""
        if self.cooldown_seconds is not None:
            return self.cooldown_seconds
        return self.cooldown * 60


@dataclass(frozen=True)
class RuleSet:
    spam: SpamRule = field(default_factory=SpamRule)
    toxicity: ToxicityRule = field(default_factory=ToxicityRule)
    engagement: EngagementRule = field(default_factory=EngagementRule)
    poll: PollRule = field(default_factory=PollRule)

    def for_category(self, category: PatternCategory) -> RuleConfig:
        return {
            PatternCategory.SPAM: self.spam,
            PatternCategory.TOXICITY: self.toxicity,
            PatternCategory.ENGAGEMENT: self.engagement,
            PatternCategory.POLL: self.poll,
        }[category]

    def enabled_categories(self) -> List[PatternCategory]:
        return [category for category in PatternCategory if self.for_category(category).enabled]


@dataclass(frozen=True)
class MonitorSettings:
    """Everything the monitor needs from configuration."""

    enabled: bool = False
    monitoring_interval_seconds: float = 5.0
    buffer_capacity: int = 100
    rules: RuleSet = field(default_factory=RuleSet)
    feedback_dir: Path = Path("autonomous_feedback")
    max_feedback_retention_days: int = 30


def _validation_messages(raw: Dict[str, Any]) -> Iterator[str]:
    validator = jsonschema.Draft7Validator(MONITOR_CONFIG_SCHEMA)
    for error in sorted(validator.iter_errors(raw), key=lambda e: list(e.path)):
        location = ".".join(str(part) for part in error.path) or "autonomous"
        yield f"{location}: {error.message}"


def build_monitor_settings(
    raw: Dict[str, Any] | None,
    *,
    feedback_dir: str | Path | None = None,
    max_feedback_retention_days: Any = 30,
) -> MonitorSettings:
    """Validate the raw ``autonomous`` mapping and build :class:`MonitorSettings`.

    Args:
        raw: The ``autonomous`` section of the configuration (may be None).
        feedback_dir: Directory for action/feedback logs.
        max_feedback_retention_days: Days of history to retain.

    Raises:
        ConfigurationError: If any setting is missing, mistyped or out of range.
    """
    raw = raw if raw is not None else {}
    if not isinstance(raw, dict):
        raise ConfigurationError("autonomous: expected a mapping")

    problems = list(_validation_messages(raw))
    if not isinstance(max_feedback_retention_days, int) or isinstance(max_feedback_retention_days, bool) \
            or max_feedback_retention_days < 1:
        problems.append("max_feedback_retention_days: must be a positive integer")
    if feedback_dir is not None and not str(feedback_dir).strip():
        problems.append("feedback_dir: must not be empty")
    if problems:
        raise ConfigurationError("Invalid configuration: " + "; ".join(problems))

    rules = raw.get("rules") or {}
    spam = rules.get("spam_detection") or {}
    toxicity = rules.get("toxicity_detection") or {}
    engagement = rules.get("chat_engagement") or {}
    poll = rules.get("poll_automation") or {}

    rule_set = RuleSet(
        spam=SpamRule(
            enabled=spam.get("enabled", True),
            threshold=spam.get("threshold", 5),
            action=ActionType(spam.get("action", "timeout")),
            duration=spam.get("duration", 300),
            cooldown_seconds=spam.get("cooldown_seconds"),
            min_confidence=spam.get("min_confidence", 0.5),
        ),
        toxicity=ToxicityRule(
            enabled=toxicity.get("enabled", True),
            severity_threshold=toxicity.get("severity_threshold", 6),
            action=ActionType(toxicity.get("action", "timeout")),
            duration=toxicity.get("duration", 1800),
            cooldown_seconds=toxicity.get("cooldown_seconds"),
            min_confidence=toxicity.get("min_confidence", 0.5),
        ),
        engagement=EngagementRule(
            enabled=engagement.get("enabled", False),
            quiet_period_threshold=engagement.get("quiet_period_threshold", 10),
            responses=tuple(engagement.get("responses") or DEFAULT_RESPONSES),
            cooldown_seconds=engagement.get("cooldown_seconds", 60),
            min_confidence=engagement.get("min_confidence", 0.5),
        ),
        poll=PollRule(
            enabled=poll.get("enabled", False),
            trigger=PollTrigger(poll.get("trigger", PollTrigger.VIEWER_REQUEST.value)),
            cooldown=poll.get("cooldown", 15),
            poll_duration=poll.get("poll_duration", 120),
            default_choices=tuple(poll.get("default_choices") or DEFAULT_POLL_CHOICES),
            cooldown_seconds=poll.get("cooldown_seconds"),
            min_confidence=poll.get("min_confidence", 0.5),
        ),
    )

    return MonitorSettings(
        enabled=raw.get("enabled", False),
        monitoring_interval_seconds=float(raw.get("monitoring_interval_seconds", 5.0)),
        buffer_capacity=raw.get("buffer_capacity", 100),
        rules=rule_set,
        feedback_dir=Path(feedback_dir) if feedback_dir else Path("autonomous_feedback"),
        max_feedback_retention_days=max_feedback_retention_days,
    )
