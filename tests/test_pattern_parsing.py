"""Tests for prompt construction, response parsing and the heuristic strategy."""

import json

import pytest

from conftest import make_messages
from modwatch.ai.analysis_strategy import AnalysisStrategy, HeuristicAnalysisStrategy
from modwatch.datatypes.error_datatypes import ErrorKind
from modwatch.datatypes.pattern_datatypes import PatternCategory
from modwatch.moderation.pattern_parsing import (
    CONTEXT_MESSAGE_LIMIT,
    StrategyParseError,
    build_prompt,
    format_log_line,
    parse_response,
    prompt_category,
    prompt_chat_lines,
)


class TestPromptRoundTrip:
    """A prompt must carry its category and chat log back out."""

    def test_prompt_carries_category_and_lines(self):
        messages = make_messages(("alice", "hello: world"), ("bob", "gg"))

        prompt = build_prompt(PatternCategory.SPAM, messages, extra="Trigger: test")

        assert prompt_category(prompt) is PatternCategory.SPAM
        assert prompt_chat_lines(prompt) == [("alice", "hello: world"), ("bob", "gg")]
        assert "Trigger: test" in prompt

    def test_context_is_bounded_to_newest_messages(self):
        messages = make_messages(*[(f"u{i}", f"m{i}") for i in range(CONTEXT_MESSAGE_LIMIT + 10)])

        lines = prompt_chat_lines(build_prompt(PatternCategory.TOXICITY, messages))

        assert len(lines) == CONTEXT_MESSAGE_LIMIT
        assert lines[0] == ("u10", "m10")

    def test_log_line_format(self):
        (message,) = make_messages(("alice", "hi"))
        assert format_log_line(message) == "[12:00:00] alice: hi"

    def test_prompt_without_header_has_no_category(self):
        assert prompt_category("just some text") is None


class TestParseResponse:
    """Tests for parse_response."""

    def test_valid_toxicity_payload(self):
        raw = json.dumps([{"username": "alice", "severity": 7, "evidence": "idiot"}])

        assert parse_response(PatternCategory.TOXICITY, raw)[0]["severity"] == 7

    def test_code_fence_is_tolerated(self):
        raw = "```json\n[{\"message\": \"hi chat\"}]\n```"

        assert parse_response(PatternCategory.ENGAGEMENT, raw) == [{"message": "hi chat"}]

    @pytest.mark.parametrize(
        "category, raw",
        [
            (PatternCategory.TOXICITY, "not json at all"),
            (PatternCategory.TOXICITY, json.dumps([{"username": "alice", "severity": 42}])),
            (PatternCategory.SPAM, json.dumps({"username": "alice"})),
            (PatternCategory.POLL, json.dumps(["Yes", "No"])),
            (PatternCategory.ENGAGEMENT, "null: api error - timeout"),
        ],
    )
    def test_malformed_payload_raises(self, category, raw):
        with pytest.raises(StrategyParseError) as excinfo:
            parse_response(category, raw)

        assert excinfo.value.category is category
        assert excinfo.value.failure.kind is ErrorKind.STRATEGY_PARSE


class TestHeuristicStrategy:
    """Tests for HeuristicAnalysisStrategy."""

    def test_satisfies_protocol(self):
        assert isinstance(HeuristicAnalysisStrategy(), AnalysisStrategy)

    @pytest.mark.asyncio
    async def test_toxicity_scores_keyword_hits(self):
        messages = make_messages(("alice", "you idiot"), ("alice", "so dumb"), ("bob", "gg"))
        strategy = HeuristicAnalysisStrategy()

        raw = await strategy.analyze(build_prompt(PatternCategory.TOXICITY, messages))
        payload = parse_response(PatternCategory.TOXICITY, raw)

        assert payload == [{"username": "alice", "severity": 6.0, "evidence": "you idiot"}]

    @pytest.mark.asyncio
    async def test_spam_reports_repeats(self):
        messages = make_messages(
            ("spammy", "follow me"),
            ("spammy", "follow me"),
            ("spammy", "follow me"),
            ("calm", "nice run"),
        )

        raw = await HeuristicAnalysisStrategy().analyze(build_prompt(PatternCategory.SPAM, messages))
        payload = parse_response(PatternCategory.SPAM, raw)

        assert payload == [{"username": "spammy", "evidence": "follow me", "count": 2}]

    @pytest.mark.asyncio
    async def test_poll_and_engagement_defer_to_configuration(self):
        strategy = HeuristicAnalysisStrategy()
        messages = make_messages(("a", "hi"))

        poll = parse_response(PatternCategory.POLL, await strategy.analyze(build_prompt(PatternCategory.POLL, messages)))
        engagement = await strategy.analyze(build_prompt(PatternCategory.ENGAGEMENT, messages))

        assert poll["choices"] == []
        assert json.loads(engagement) == []

    @pytest.mark.asyncio
    async def test_unknown_prompt(self):
        assert json.loads(await HeuristicAnalysisStrategy().analyze("hello")) == {"error": "Unknown analysis type"}
