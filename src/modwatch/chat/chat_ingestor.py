"""
Ingestion channel between the chat transport and the buffer.

The transport pushes ordered batches with :meth:`ChatIngestor.ingest`; a
single consumer moves them into the :class:`ChatBuffer`, either continuously
through :meth:`run` or on demand through :meth:`drain` at the start of a
cycle. Because there is exactly one queue and one consumer, arrival order is
preserved.
"""

from __future__ import annotations

import asyncio
from typing import Iterable

from modwatch.chat.chat_buffer import ChatBuffer
from modwatch.datatypes.chat_datatypes import ChatMessage
from modwatch.util.logger import get_logger

logger = get_logger("chat_ingestor")


class ChatIngestor:
    """Queue-backed ingestion boundary feeding a :class:`ChatBuffer`."""

    def __init__(self, buffer: ChatBuffer) -> None:
        self._buffer = buffer
        self._queue: asyncio.Queue[ChatMessage] = asyncio.Queue()
        self._consumer: asyncio.Task[None] | None = None

    @property
    def buffer(self) -> ChatBuffer:
        return self._buffer

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def ingest(self, messages: Iterable[ChatMessage]) -> int:
        """Queue messages in the order given. Returns how many were queued."""
        count = 0
        for message in messages:
            self._queue.put_nowait(message)
            count += 1
        return count

    def drain(self) -> int:
        """Move every queued message into the buffer without waiting."""
        moved = 0
        while True:
            try:
                message = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            self._buffer.append(message)
            self._queue.task_done()
            moved += 1
        if moved:
            logger.debug("[INGEST] Drained %d messages into buffer (size=%d)", moved, len(self._buffer))
        return moved

    async def run(self) -> None:
        """Consume the queue forever; cancel the task to stop."""
        try:
            while True:
                message = await self._queue.get()
                self._buffer.append(message)
                self._queue.task_done()
        except asyncio.CancelledError:
            logger.debug("[INGEST] Consumer cancelled")
            raise

    def start(self) -> None:
        """Start the background consumer if not already running."""
        if self._consumer and not self._consumer.done():
            return
        self._consumer = asyncio.create_task(self.run(), name="modwatch-chat-ingestor")

    async def shutdown(self) -> None:
        """Stop the consumer and flush whatever is still queued."""
        if self._consumer and not self._consumer.done():
            self._consumer.cancel()
            try:
                await self._consumer
            except asyncio.CancelledError:
                pass
        self._consumer = None
        self.drain()
