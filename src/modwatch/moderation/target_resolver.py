"""
Resolve a moderation target from a username or a descriptor.

A literal username is matched against buffered senders to recover the exact
casing. A descriptor such as ``"toxic"`` is resolved by keyword scoring over
the buffered messages; ties go to the sender whose first qualifying message
appears earliest, so the result never depends on dict ordering.
"""

from __future__ import annotations

import re
from typing import Dict, List, Sequence, Tuple

from modwatch.chat.chat_buffer import ChatBuffer
from modwatch.datatypes.chat_datatypes import ChatMessage
from modwatch.util.logger import get_logger

logger = get_logger("target_resolver")

_TOXIC_KEYWORDS = (
    "idiot", "stupid", "hate", "kill", "dumb", "trash", "noob", "loser", "shut up",
    "annoying", "toxic", "rude", "mean", "sucks", "bad", "worst", "report", "ban",
)
_SPAM_KEYWORDS = (
    "buy followers", "free", "promo", "visit", "http", "www", "spam", "emote", "caps", "repeated",
)
_RUDE_KEYWORDS = (
    "shut up", "idiot", "stupid", "dumb", "annoying", "rude", "mean", "trash", "loser", "bad", "worst",
)

DESCRIPTOR_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "toxic": _TOXIC_KEYWORDS,
    "spam": _SPAM_KEYWORDS,
    "spammer": _SPAM_KEYWORDS,
    "rude": _RUDE_KEYWORDS,
}

USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_]{3,25}$")
USER_NAMED_PATTERN = re.compile(r"user named\s+(\S+)", re.IGNORECASE)


def keywords_for(descriptor: str) -> Tuple[str, ...]:
    """Keyword family for ``descriptor``; unknown descriptors are their own keyword."""
    key = descriptor.strip().lower()
    return DESCRIPTOR_KEYWORDS.get(key, (key,))


def score_descriptor(messages: Sequence[ChatMessage], keywords: Sequence[str]) -> List[Tuple[str, int, int]]:
    """Score every sender by keyword hits.

    Returns:
        ``(username, score, first_index)`` tuples ordered by score descending,
        then by the index of the sender's first qualifying message.
    """
    scores: Dict[str, int] = {}
    first_seen: Dict[str, int] = {}
    for index, message in enumerate(messages):
        content = message.content.lower()
        hits = sum(1 for keyword in keywords if keyword and keyword in content)
        if not hits:
            continue
        scores[message.username] = scores.get(message.username, 0) + hits
        first_seen.setdefault(message.username, index)

    ranked = [(user, score, first_seen[user]) for user, score in scores.items()]
    ranked.sort(key=lambda item: (-item[1], item[2]))
    return ranked


class TargetResolver:
    """Maps user input to a concrete chat participant using the buffer."""

    def __init__(self, buffer: ChatBuffer) -> None:
        self._buffer = buffer

    def resolve(self, user_input: str | None) -> str | None:
        """Resolve a username or descriptor to a username.

        Args:
            user_input: A literal username, a ``"user named X"`` phrase, or a
                descriptor like ``"toxic"``.

        Returns:
            The resolved username, or None when nothing in the buffer
            qualifies. Callers should then show :meth:`recent_log` instead of
            guessing.
        """
        text = (user_input or "").strip()
        if not text:
            return None

        named = USER_NAMED_PATTERN.search(text)
        if named:
            return self._resolve_literal(named.group(1))

        if text.lower() in DESCRIPTOR_KEYWORDS:
            return self._resolve_descriptor(text)

        if USERNAME_PATTERN.match(text):
            return self._resolve_literal(text)

        return self._resolve_descriptor(text)

    def canonical_username(self, username: str | None) -> str | None:
        """Recover the buffered casing of a known username.

        Only an exact case-insensitive match counts, so a sender called
        ``spammer`` or ``jo`` is never reinterpreted as a descriptor or
        matched against someone else's name. Unbuffered names come back
        unchanged; blank input gives None.
        """
        text = (username or "").strip()
        if not text:
            return None
        lowered = text.casefold()
        for message in self._buffer.snapshot():
            if message.username.casefold() == lowered:
                return message.username
        return text

    def recent_log(self, n: int = 20) -> List[str]:
        return self._buffer.recent_log(n)

    def _resolve_literal(self, candidate: str) -> str:
        lowered = candidate.lower()
        senders = [message.username for message in self._buffer.snapshot()]
        for username in senders:
            if username.lower() == lowered:
                return username
        for username in senders:
            if lowered in username.lower():
                return username
        return candidate

    def _resolve_descriptor(self, descriptor: str) -> str | None:
        ranked = score_descriptor(self._buffer.snapshot(), keywords_for(descriptor))
        if not ranked:
            logger.debug("[RESOLVER] Descriptor %r matched nobody", descriptor)
            return None
        username, score, _ = ranked[0]
        logger.debug("[RESOLVER] Descriptor %r resolved to %s (score=%d)", descriptor, username, score)
        return username
