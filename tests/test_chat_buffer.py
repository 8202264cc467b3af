"""Tests for the chat buffer, the ingestion queue and chat analysis."""

import asyncio
import threading

import pytest

from conftest import make_messages
from modwatch.chat.chat_analysis import analyze_chat, top_topics
from modwatch.chat.chat_buffer import ChatBuffer
from modwatch.chat.chat_ingestor import ChatIngestor
from modwatch.datatypes.chat_datatypes import ChatMessage


def numbered(count: int) -> list[ChatMessage]:
    return make_messages(*[(f"user{i}", f"message {i}") for i in range(count)])


class TestChatBuffer:
    """Tests for ChatBuffer."""

    def test_capacity_must_be_positive(self):
        with pytest.raises(ValueError):
            ChatBuffer(0)

    @pytest.mark.parametrize("count", [0, 1, 99, 100, 101, 250])
    def test_length_is_min_of_appended_and_capacity(self, count):
        buffer = ChatBuffer(100)
        messages = numbered(count)
        for message in messages:
            buffer.append(message)

        assert len(buffer) == min(count, 100)
        assert list(buffer.snapshot()) == messages[-100:]

    def test_overflow_evicts_oldest_first(self):
        buffer = ChatBuffer(100)
        messages = numbered(105)
        buffer.extend(messages)

        snapshot = buffer.snapshot()
        assert len(snapshot) == 100
        assert snapshot[0] is messages[5]
        assert snapshot[-1] is messages[104]
        assert all(message not in snapshot for message in messages[:5])
        assert buffer.total_appended == 105

    def test_order_is_insertion_not_timestamp(self):
        older, newer = make_messages(("b", "early"), ("a", "late"))
        buffer = ChatBuffer(10)
        buffer.append(newer)
        buffer.append(older)

        assert [m.content for m in buffer.snapshot()] == ["late", "early"]

    def test_snapshot_is_immutable_copy(self):
        buffer = ChatBuffer(10)
        buffer.extend(numbered(3))
        snapshot = buffer.snapshot()

        buffer.extend(numbered(2))

        assert isinstance(snapshot, tuple)
        assert len(snapshot) == 3
        assert len(buffer) == 5

    def test_newest_and_recent_log(self):
        buffer = ChatBuffer(10)
        assert buffer.newest() is None
        assert buffer.recent_log() == []

        buffer.extend(make_messages(("alice", "hi"), ("bob", "hello"), ("carol", "yo")))

        assert buffer.newest().username == "carol"
        assert buffer.recent_log(2) == ["bob: hello", "carol: yo"]
        assert buffer.recent_log(0) == []

    def test_concurrent_appends_keep_bound(self):
        buffer = ChatBuffer(50)

        def writer(prefix: str) -> None:
            for i in range(200):
                buffer.append(ChatMessage(username=prefix, content=str(i)))

        threads = [threading.Thread(target=writer, args=(f"t{n}",)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(buffer) == 50
        assert buffer.total_appended == 800


class TestChatIngestor:
    """Tests for ChatIngestor."""

    def test_drain_moves_messages_in_order(self):
        buffer = ChatBuffer(10)
        ingestor = ChatIngestor(buffer)
        messages = numbered(4)

        assert ingestor.ingest(messages[:2]) == 2
        assert ingestor.ingest(messages[2:]) == 2
        assert ingestor.pending == 4
        assert len(buffer) == 0

        assert ingestor.drain() == 4
        assert list(buffer.snapshot()) == messages
        assert ingestor.pending == 0

    @pytest.mark.asyncio
    async def test_background_consumer_feeds_buffer(self):
        buffer = ChatBuffer(10)
        ingestor = ChatIngestor(buffer)
        ingestor.start()
        ingestor.start()

        ingestor.ingest(numbered(3))
        for _ in range(10):
            if len(buffer) == 3:
                break
            await asyncio.sleep(0)

        assert len(buffer) == 3
        await ingestor.shutdown()

    @pytest.mark.asyncio
    async def test_shutdown_flushes_pending(self):
        buffer = ChatBuffer(10)
        ingestor = ChatIngestor(buffer)
        ingestor.ingest(numbered(2))

        await ingestor.shutdown()

        assert len(buffer) == 2


class TestChatAnalysis:
    """Tests for topic summaries."""

    def test_empty_snapshot(self):
        assert analyze_chat([]) == "No recent chat messages to analyze."

    def test_topics_skip_short_and_common_words(self):
        messages = make_messages(
            ("a", "the boss fight was brutal"),
            ("b", "boss fight again please"),
            ("c", "that boss is hard"),
        )

        topics = top_topics(messages)

        assert topics[0] == ("boss", 3)
        assert ("fight", 2) in topics
        assert all(word not in {"the", "that", "was", "is"} for word, _ in topics)

    def test_summary_reports_counts(self):
        messages = make_messages(("a", "speedrun strats"), ("b", "speedrun when"))

        summary = analyze_chat(messages)

        assert "Total messages: 2" in summary
        assert "Average words per message: 2.0" in summary
        assert "speedrun (2 mentions)" in summary
