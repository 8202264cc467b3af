"""Topic and activity summary over a chat snapshot."""

from __future__ import annotations

from collections import Counter
from typing import Sequence

from modwatch.datatypes.chat_datatypes import ChatMessage

# Filler words excluded from topic counting.
COMMON_WORDS = frozenset({
    "the", "and", "that", "have", "for", "not", "with", "you", "this", "but",
    "his", "from", "they", "say", "her", "she", "will", "one", "all", "would",
    "there", "their", "what", "so", "up", "out", "if", "about", "who", "get",
    "which", "go", "me", "when", "make", "can", "like", "time", "no", "just",
    "him", "know", "take", "people", "into", "year", "your", "good", "some",
    "could", "them", "see", "other", "than", "then", "now", "look", "only",
    "come", "its", "over", "think", "also", "back", "after", "use", "two",
    "how", "our", "work", "first", "well", "way", "even", "new", "want",
    "because", "any", "these", "give", "day", "most", "us",
})


def top_topics(messages: Sequence[ChatMessage], limit: int = 5) -> list[tuple[str, int]]:
    """Most frequent non-filler words longer than three characters.

    Ties keep first-seen order.
    """
    counts: Counter[str] = Counter()
    for message in messages:
        for word in message.content.lower().split():
            if len(word) > 3 and word not in COMMON_WORDS:
                counts[word] += 1
    return counts.most_common(limit)


def analyze_chat(messages: Sequence[ChatMessage]) -> str:
    """Summarize message volume, verbosity and the top topics."""
    if not messages:
        return "No recent chat messages to analyze."

    total_words = sum(len(message.content.lower().split()) for message in messages)
    average = total_words / len(messages)
    topics = [f"{word} ({count} mentions)" for word, count in top_topics(messages)]

    return (
        "Chat Analysis:\n"
        f"- Total messages: {len(messages)}\n"
        f"- Average words per message: {average:.1f}\n"
        f"- Top topics: {', '.join(topics) if topics else 'No significant topics detected'}"
    )
