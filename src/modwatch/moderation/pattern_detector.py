"""
Pattern detection over a buffer snapshot.

For every enabled rule category the detector builds a prompt from the
snapshot, asks the analysis strategy once, and converts the validated payload
into :class:`Pattern` signals. Categories run concurrently; a category whose
strategy output does not parse is skipped for this cycle only.
"""

from __future__ import annotations

import asyncio
from collections import deque
from datetime import datetime
from typing import Any, Callable, Dict, List, Sequence

from modwatch.ai.analysis_strategy import AnalysisStrategy
from modwatch.configuration.monitor_settings import PollTrigger, RuleSet
from modwatch.datatypes.chat_datatypes import ChatMessage
from modwatch.datatypes.error_datatypes import ErrorKind, Failure
from modwatch.datatypes.pattern_datatypes import Pattern, PatternCategory
from modwatch.moderation.pattern_parsing import StrategyParseError, build_prompt, parse_response
from modwatch.util.format_utils import utc_now
from modwatch.util.logger import get_logger

logger = get_logger("pattern_detector")

POLL_REQUEST_PHRASES = (
    "!poll", "make a poll", "start a poll", "do a poll", "run a poll", "poll please",
    "can we vote", "let's vote", "lets vote", "we should vote",
)
DEFAULT_POLL_TITLE = "What should we do next?"
MAX_POLL_CHOICES = 5


def is_poll_request(content: str) -> bool:
    lowered = content.lower()
    return any(phrase in lowered for phrase in POLL_REQUEST_PHRASES)


class PatternDetector:
    """Turns buffered chat into typed signals through the analysis strategy."""

    def __init__(
        self,
        rules: RuleSet,
        strategy: AnalysisStrategy,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._rules = rules
        self._strategy = strategy
        self._clock = clock
        self._engagement_index = 0
        self._game_events: deque[str] = deque()
        self._consumed_requests: set[ChatMessage] = set()
        self._skipped: List[Failure] = []

    @property
    def skipped(self) -> List[Failure]:
        """Categories skipped during the most recent :meth:`detect` call."""
        return list(self._skipped)

    @property
    def pending_game_events(self) -> int:
        return len(self._game_events)

    def signal_game_event(self, description: str) -> None:
        """Queue an out-of-band game event for the next poll evaluation."""
        self._game_events.append(description.strip() or "game event")
        logger.info("[DETECT] Game event queued: %s", description)

    async def detect(self, messages: Sequence[ChatMessage]) -> List[Pattern]:
        """Run every enabled category against ``messages``.

        Args:
            messages: Buffer snapshot in insertion order.

        Returns:
            All patterns found, grouped by category in rule order.
        """
        self._skipped = []
        categories = self._rules.enabled_categories()
        results = await asyncio.gather(*(self._detect_category(category, messages) for category in categories))
        patterns = [pattern for group in results for pattern in group]
        logger.debug("[DETECT] %d patterns from %d categories", len(patterns), len(categories))
        return patterns

    async def _detect_category(self, category: PatternCategory, messages: Sequence[ChatMessage]) -> List[Pattern]:
        handlers = {
            PatternCategory.TOXICITY: self._detect_toxicity,
            PatternCategory.SPAM: self._detect_spam,
            PatternCategory.ENGAGEMENT: self._detect_engagement,
            PatternCategory.POLL: self._detect_poll,
        }
        try:
            return await handlers[category](messages)
        except StrategyParseError as exc:
            logger.warning("[DETECT] Skipping %s this cycle: %s", category, exc)
            self._skipped.append(exc.failure)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error("[DETECT] Analysis strategy failed for %s: %s", category, exc)
            self._skipped.append(Failure(ErrorKind.STRATEGY_PARSE, f"{category}: {exc}"))
        return []

    async def _ask(self, category: PatternCategory, messages: Sequence[ChatMessage], extra: str = "") -> Any:
        raw = await self._strategy.analyze(build_prompt(category, messages, extra))
        return parse_response(category, raw)

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    async def _detect_toxicity(self, messages: Sequence[ChatMessage]) -> List[Pattern]:
        if not messages:
            return []
        payload = await self._ask(PatternCategory.TOXICITY, messages)

        worst: Dict[str, Pattern] = {}
        for item in payload:
            username = item["username"].strip()
            severity = float(item["severity"])
            current = worst.get(username.lower())
            if current is None or severity > current.score:
                worst[username.lower()] = Pattern(
                    category=PatternCategory.TOXICITY,
                    subject=username,
                    score=severity,
                    evidence=str(item.get("evidence", "")),
                )
        return list(worst.values())

    async def _detect_spam(self, messages: Sequence[ChatMessage]) -> List[Pattern]:
        if not messages:
            return []
        payload = await self._ask(PatternCategory.SPAM, messages)

        patterns: Dict[str, Pattern] = {}
        for item in payload:
            username = item["username"].strip()
            count = item.get("count")
            if count is None:
                count = sum(1 for message in messages if message.username.lower() == username.lower())
            existing = patterns.get(username.lower())
            if existing is None or count > existing.score:
                patterns[username.lower()] = Pattern(
                    category=PatternCategory.SPAM,
                    subject=username,
                    score=float(count),
                    evidence=str(item.get("evidence", "")),
                )
        return list(patterns.values())

    async def _detect_engagement(self, messages: Sequence[ChatMessage]) -> List[Pattern]:
        rule = self._rules.engagement
        if not messages:
            return []
        quiet_seconds = (self._clock() - messages[-1].timestamp).total_seconds()
        if quiet_seconds < rule.quiet_period_threshold:
            return []

        payload = await self._ask(PatternCategory.ENGAGEMENT, messages)
        if payload:
            message = payload[0]["message"].strip()
        else:
            message = rule.responses[self._engagement_index % len(rule.responses)]
            self._engagement_index += 1

        return [
            Pattern(
                category=PatternCategory.ENGAGEMENT,
                subject=None,
                score=quiet_seconds,
                evidence=f"No chat for {quiet_seconds:.0f}s",
                details={"message": message},
            )
        ]

    async def _detect_poll(self, messages: Sequence[ChatMessage]) -> List[Pattern]:
        rule = self._rules.poll
        trigger = rule.trigger

        if trigger is PollTrigger.VIEWER_REQUEST:
            self._consumed_requests &= set(messages)
            requests = [m for m in messages if is_poll_request(m.content) and m not in self._consumed_requests]
            if not requests:
                return []
            score = float(len(requests))
            evidence = f"{len(requests)} viewer request(s), latest from {requests[-1].username}: {requests[-1].content}"
        elif trigger is PollTrigger.SCHEDULED:
            score = 1.0
            evidence = "Scheduled poll"
        else:
            if not self._game_events:
                return []
            events = list(self._game_events)
            score = float(len(events))
            evidence = f"Game event: {events[-1]}"

        payload = await self._ask(PatternCategory.POLL, messages, extra=f"Trigger: {evidence}")

        # Triggers are consumed only after a valid strategy reply.
        if trigger is PollTrigger.VIEWER_REQUEST:
            self._consumed_requests.update(requests)
        elif trigger is PollTrigger.GAME_EVENT:
            for _ in events:
                self._game_events.popleft()

        title = str(payload.get("title") or "").strip() or DEFAULT_POLL_TITLE
        choices = [c.strip() for c in payload.get("choices", []) if c.strip()][:MAX_POLL_CHOICES]
        if len(choices) < 2:
            choices = list(rule.default_choices)

        return [
            Pattern(
                category=PatternCategory.POLL,
                subject=None,
                score=score,
                evidence=evidence,
                details={"trigger": trigger.value, "title": title, "choices": choices},
            )
        ]
