"""Chat message types."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass(frozen=True, slots=True)
class ChatMessage:
    """A single chat line as delivered by the chat transport.

    Attributes:
        username: Login name of the sender, in the casing the transport used.
        content: Raw message text.
        timestamp: When the message was received (UTC).
    """

    username: str
    content: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def as_log_line(self) -> str:
        return f"{self.username}: {self.content}"
