"""
Turn detected patterns into a conflict-free list of decisions.

Each cycle the engine maps patterns to candidate actions using the rule
configuration, drops candidates still cooling down or below their confidence
floor, and then arbitrates so that no target receives more than one action.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Tuple

from modwatch.configuration.monitor_settings import PollTrigger, RuleSet
from modwatch.datatypes.action_datatypes import ACTION_SEVERITY, ActionRecord, ActionType, Decision
from modwatch.datatypes.pattern_datatypes import Pattern, PatternCategory
from modwatch.util.format_utils import utc_now
from modwatch.util.logger import get_logger

logger = get_logger("decision_engine")

MODERATION_CATEGORIES = (PatternCategory.SPAM, PatternCategory.TOXICITY)

POLL_TRIGGER_CONFIDENCE = {
    PollTrigger.SCHEDULED: 0.6,
    PollTrigger.GAME_EVENT: 0.8,
}

WARN_MESSAGES = {
    PatternCategory.SPAM: "please stop spamming the chat.",
    PatternCategory.TOXICITY: "please keep the chat respectful.",
}

CooldownKey = Tuple[str, "str | None"]


def guess_timeout_duration(reason: str) -> int:
    """Pick a timeout length in seconds from the wording of ``reason``."""
    lowered = (reason or "").lower()
    if any(word in lowered for word in ("spam", "caps", "emote")):
        return 300
    if any(word in lowered for word in ("toxic", "rude", "mean")):
        return 1800
    if any(word in lowered for word in ("severe", "serious")):
        return 3600
    return 600


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


class CooldownTracker:
    """Last execution time per ``(category, target)``; targetless keys use None."""

    def __init__(self) -> None:
        self._last: Dict[CooldownKey, datetime] = {}

    @staticmethod
    def key(category: PatternCategory, target: str | None) -> CooldownKey:
        return category.value, target.casefold() if target else None

    def last(self, category: PatternCategory, target: str | None) -> datetime | None:
        return self._last.get(self.key(category, target))

    def mark(self, category: PatternCategory, target: str | None, at: datetime) -> None:
        key = self.key(category, target)
        previous = self._last.get(key)
        if previous is None or at > previous:
            self._last[key] = at

    def clear(self) -> None:
        self._last.clear()

    def snapshot(self) -> Dict[str, str]:
        return {
            f"{category}:{target or '*'}": at.isoformat()
            for (category, target), at in sorted(self._last.items(), key=lambda item: item[1])
        }

    def __len__(self) -> int:
        return len(self._last)


class DecisionEngine:
    """Rule evaluation, cooldown gating and per-target arbitration."""

    def __init__(self, rules: RuleSet, cooldowns: CooldownTracker | None = None) -> None:
        self._rules = rules
        self.cooldowns = cooldowns or CooldownTracker()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def decide(
        self,
        patterns: Iterable[Pattern],
        adjustments: Mapping[str, float] | None = None,
        now: datetime | None = None,
    ) -> List[Decision]:
        """Evaluate ``patterns`` and return the decisions to execute.

        Args:
            patterns: Signals from the current cycle.
            adjustments: Per-action confidence floor adjustments learned from
                feedback, keyed by action value. Positive values lower the floor.
            now: Evaluation time for cooldown checks.

        Returns:
            At most one decision per target and per targetless category,
            ordered by descending confidence.
        """
        adjustments = adjustments or {}
        now = now or utc_now()

        candidates: List[Decision] = []
        for pattern in patterns:
            candidate = self._candidate(pattern)
            if candidate is None:
                continue
            if self._cooling_down(candidate, now):
                logger.debug("[DECISION] %s for %s still cooling down", candidate.action, candidate.target or "*")
                continue
            floor = self.confidence_floor(candidate, adjustments)
            if candidate.confidence < floor:
                logger.debug(
                    "[DECISION] Dropping %s for %s: confidence %.2f below floor %.2f",
                    candidate.action, candidate.target or "*", candidate.confidence, floor,
                )
                continue
            candidates.append(candidate)

        decisions = self._arbitrate(candidates)
        decisions.sort(key=lambda decision: -decision.confidence)
        if decisions:
            logger.info("[DECISION] %d decision(s) from %d candidate(s)", len(decisions), len(candidates))
        return decisions

    def confidence_floor(self, decision: Decision, adjustments: Mapping[str, float]) -> float:
        rule = self._rules.for_category(decision.category)
        return _clamp(rule.min_confidence - adjustments.get(decision.action.value, 0.0))

    def cooldown_window(self, decision: Decision) -> float:
        """Seconds during which a repeat of ``decision`` is suppressed."""
        category = decision.category
        if category is PatternCategory.POLL:
            return self._rules.poll.cooldown_window_seconds
        if category is PatternCategory.ENGAGEMENT:
            return self._rules.engagement.cooldown_seconds or 0.0

        rule = self._rules.for_category(category)
        if rule.cooldown_seconds is not None:
            return rule.cooldown_seconds
        if decision.action is ActionType.BAN:
            return math.inf
        return float(decision.duration or guess_timeout_duration(decision.reason))

    def mark_executed(self, decision: Decision, at: datetime) -> None:
        self.cooldowns.mark(decision.category, self._cooldown_target(decision), at)

    def restore_cooldowns(self, records: Iterable[ActionRecord]) -> int:
        """Seed cooldown state from persisted history.

        Returns:
            Number of records applied; records without a known category are ignored.
        """
        applied = 0
        for record in records:
            try:
                category = PatternCategory(record.category)
            except ValueError:
                continue
            target = record.target if category in MODERATION_CATEGORIES else None
            self.cooldowns.mark(category, target, record.timestamp)
            applied += 1
        logger.info("[DECISION] Restored cooldowns from %d record(s)", applied)
        return applied

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _cooldown_target(decision: Decision) -> str | None:
        return decision.target if decision.category in MODERATION_CATEGORIES else None

    def _cooling_down(self, decision: Decision, now: datetime) -> bool:
        last = self.cooldowns.last(decision.category, self._cooldown_target(decision))
        if last is None:
            return False
        return (now - last).total_seconds() < self.cooldown_window(decision)

    def _candidate(self, pattern: Pattern) -> Decision | None:
        category = pattern.category
        if not self._rules.for_category(category).enabled:
            return None
        if category is PatternCategory.TOXICITY:
            return self._toxicity_candidate(pattern)
        if category is PatternCategory.SPAM:
            return self._spam_candidate(pattern)
        if category is PatternCategory.ENGAGEMENT:
            return self._engagement_candidate(pattern)
        return self._poll_candidate(pattern)

    def _moderation_decision(self, pattern: Pattern, action: ActionType, duration: int | None,
                             reason: str, confidence: float) -> Decision | None:
        if not pattern.subject:
            return None
        parameters: Dict[str, object] = {}
        if action is ActionType.TIMEOUT:
            duration = duration or guess_timeout_duration(reason)
        else:
            duration = None
        if action is ActionType.WARN:
            parameters["message"] = WARN_MESSAGES[pattern.category]
        return Decision(
            category=pattern.category,
            action=action,
            target=pattern.subject,
            reason=reason,
            confidence=_clamp(confidence),
            duration=duration,
            parameters=parameters,
        )

    def _toxicity_candidate(self, pattern: Pattern) -> Decision | None:
        rule = self._rules.toxicity
        if pattern.score < rule.severity_threshold:
            return None
        reason = f"Toxic behavior (severity {pattern.score:g}/10)"
        if pattern.evidence:
            reason += f": {pattern.evidence}"
        return self._moderation_decision(pattern, rule.action, rule.duration, reason, pattern.score / 10)

    def _spam_candidate(self, pattern: Pattern) -> Decision | None:
        rule = self._rules.spam
        if pattern.score < rule.threshold:
            return None
        confidence = min(1.0, 0.5 + 0.5 * (pattern.score - rule.threshold) / rule.threshold)
        reason = f"Spam ({pattern.score:g} messages)"
        if pattern.evidence:
            reason += f": {pattern.evidence}"
        return self._moderation_decision(pattern, rule.action, rule.duration, reason, confidence)

    def _engagement_candidate(self, pattern: Pattern) -> Decision | None:
        rule = self._rules.engagement
        message = pattern.details.get("message")
        if not message:
            return None
        threshold = rule.quiet_period_threshold
        confidence = min(1.0, 0.5 + 0.5 * (pattern.score - threshold) / threshold)
        return Decision(
            category=PatternCategory.ENGAGEMENT,
            action=ActionType.MESSAGE,
            target=None,
            reason=f"Chat quiet for {pattern.score:.0f}s",
            confidence=_clamp(confidence),
            parameters={"message": message},
        )

    def _poll_candidate(self, pattern: Pattern) -> Decision | None:
        rule = self._rules.poll
        trigger = PollTrigger(pattern.details.get("trigger", rule.trigger.value))
        if trigger is PollTrigger.VIEWER_REQUEST:
            confidence = 0.5 + 0.1 * pattern.score
        else:
            confidence = POLL_TRIGGER_CONFIDENCE[trigger]
        choices = list(pattern.details.get("choices") or rule.default_choices)
        return Decision(
            category=PatternCategory.POLL,
            action=ActionType.POLL,
            target=None,
            reason=pattern.evidence or f"Poll trigger: {trigger}",
            confidence=_clamp(confidence),
            duration=rule.poll_duration,
            parameters={"title": pattern.details.get("title", ""), "choices": choices},
        )

    @staticmethod
    def _arbitrate(candidates: List[Decision]) -> List[Decision]:
        by_target: Dict[str, Decision] = {}
        by_category: Dict[PatternCategory, Decision] = {}

        for candidate in candidates:
            if candidate.target:
                key = candidate.target.casefold()
                current = by_target.get(key)
                if current is None or (ACTION_SEVERITY[candidate.action], candidate.confidence) > (
                    ACTION_SEVERITY[current.action], current.confidence
                ):
                    by_target[key] = candidate
            else:
                current = by_category.get(candidate.category)
                if current is None or candidate.confidence > current.confidence:
                    by_category[candidate.category] = candidate

        return list(by_target.values()) + list(by_category.values())
