"""
Analysis strategy contract and the keyword heuristic implementation.

A strategy takes a prompt built by :mod:`modwatch.moderation.pattern_parsing`
and returns text that should decode to the JSON shape the prompt asks for.
The core trusts only that structure; malformed output merely skips the
category for one cycle.
"""

from __future__ import annotations

import json
from collections import defaultdict
from typing import Dict, List, Protocol, runtime_checkable

from modwatch.datatypes.pattern_datatypes import PatternCategory
from modwatch.moderation.pattern_parsing import prompt_category, prompt_chat_lines
from modwatch.moderation.target_resolver import DESCRIPTOR_KEYWORDS
from modwatch.util.logger import get_logger

logger = get_logger("analysis_strategy")


@runtime_checkable
class AnalysisStrategy(Protocol):
    """Prompt in, structured text out."""

    async def analyze(self, prompt: str) -> str:
        ...


def _is_shouting(content: str) -> bool:
    letters = [c for c in content if c.isalpha()]
    return len(letters) >= 10 and sum(c.isupper() for c in letters) / len(letters) > 0.7


class HeuristicAnalysisStrategy:
    """Keyword based stand-in for a language model.

    Reads the chat log back out of the prompt and scores it with the same
    keyword families the target resolver uses for descriptors.

    Attributes:
        severity_per_hit: Toxicity severity added per keyword hit (capped at 10).
        min_spam_count: Smallest number of spam messages reported for a user.
    """

    def __init__(self, severity_per_hit: float = 3.0, min_spam_count: int = 2) -> None:
        self.severity_per_hit = severity_per_hit
        self.min_spam_count = min_spam_count

    async def analyze(self, prompt: str) -> str:
        category = prompt_category(prompt)
        lines = prompt_chat_lines(prompt)
        logger.debug("[HEURISTIC] %s analysis over %d lines", category, len(lines))

        if category is PatternCategory.TOXICITY:
            return json.dumps(self._toxicity(lines))
        if category is PatternCategory.SPAM:
            return json.dumps(self._spam(lines))
        if category is PatternCategory.ENGAGEMENT:
            return json.dumps([])
        if category is PatternCategory.POLL:
            return json.dumps({"title": "What should we do next?", "choices": []})
        return json.dumps({"error": "Unknown analysis type"})

    def _toxicity(self, lines: List[tuple[str, str]]) -> List[Dict[str, object]]:
        hits: Dict[str, int] = defaultdict(int)
        evidence: Dict[str, str] = {}
        for username, content in lines:
            lowered = content.lower()
            count = sum(1 for keyword in DESCRIPTOR_KEYWORDS["toxic"] if keyword in lowered)
            if count:
                hits[username] += count
                evidence.setdefault(username, content)
        return [
            {
                "username": username,
                "severity": min(10.0, count * self.severity_per_hit),
                "evidence": evidence[username],
            }
            for username, count in hits.items()
        ]

    def _spam(self, lines: List[tuple[str, str]]) -> List[Dict[str, object]]:
        counts: Dict[str, int] = defaultdict(int)
        seen: Dict[str, set[str]] = defaultdict(set)
        evidence: Dict[str, str] = {}
        for username, content in lines:
            lowered = content.lower().strip()
            flagged = (
                lowered in seen[username]
                or _is_shouting(content)
                or any(keyword in lowered for keyword in DESCRIPTOR_KEYWORDS["spam"])
            )
            seen[username].add(lowered)
            if flagged:
                counts[username] += 1
                evidence.setdefault(username, content)
        return [
            {"username": username, "evidence": evidence[username], "count": count}
            for username, count in counts.items()
            if count >= self.min_spam_count
        ]
