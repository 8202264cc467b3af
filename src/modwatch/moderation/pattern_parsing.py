"""Prompt construction and response parsing for the analysis strategy.

Every category has a prompt template and a JSON schema. Strategy output is
decoded with ``json.loads`` (tolerating a Markdown code fence) and validated
with jsonschema; anything that fails raises :class:`StrategyParseError`, which
the detector turns into a skip for that category.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Sequence

import jsonschema
from jsonschema import ValidationError

from modwatch.datatypes.chat_datatypes import ChatMessage
from modwatch.datatypes.error_datatypes import ErrorKind, Failure
from modwatch.datatypes.pattern_datatypes import PatternCategory
from modwatch.util.logger import get_logger

logger = get_logger("pattern_parsing")

CONTEXT_MESSAGE_LIMIT = 50
CHAT_LOG_START = "CHAT LOG:"
CHAT_LOG_END = "END CHAT LOG"
_TASK_PREFIX = "ANALYSIS:"
_FENCE_PATTERN = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)
_LOG_LINE_PATTERN = re.compile(r"^\[(?P<time>[^\]]*)\]\s(?P<username>[^:]+):\s?(?P<content>.*)$")


class StrategyParseError(ValueError):
    """Strategy output for a category was malformed."""

    def __init__(self, category: PatternCategory, message: str) -> None:
        super().__init__(f"{category}: {message}")
        self.category = category
        self.failure = Failure(ErrorKind.STRATEGY_PARSE, f"{category}: {message}")


RESPONSE_SCHEMAS: Dict[PatternCategory, Dict[str, Any]] = {
    PatternCategory.TOXICITY: {
        "type": "array",
        "items": {
            "type": "object",
            "properties": {
                "username": {"type": "string", "minLength": 1},
                "severity": {"type": "number", "minimum": 0, "maximum": 10},
                "evidence": {"type": "string"},
            },
            "required": ["username", "severity"],
        },
    },
    PatternCategory.SPAM: {
        "type": "array",
        "items": {
            "type": "object",
            "properties": {
                "username": {"type": "string", "minLength": 1},
                "evidence": {"type": "string"},
                "count": {"type": "integer", "minimum": 0},
            },
            "required": ["username"],
        },
    },
    PatternCategory.ENGAGEMENT: {
        "type": "array",
        "items": {
            "type": "object",
            "properties": {"message": {"type": "string", "minLength": 1}},
            "required": ["message"],
        },
    },
    PatternCategory.POLL: {
        "type": "object",
        "properties": {
            "title": {"type": "string"},
            "choices": {"type": "array", "items": {"type": "string", "minLength": 1}},
        },
    },
}

_INSTRUCTIONS: Dict[PatternCategory, str] = {
    PatternCategory.TOXICITY: (
        "Identify users whose messages are toxic, harassing or hateful. Rate each "
        "user's worst behaviour from 0 (harmless) to 10 (extreme).\n"
        'Respond with a JSON array: [{"username": str, "severity": number, "evidence": str}]. '
        "Respond with [] when nobody is toxic."
    ),
    PatternCategory.SPAM: (
        "Identify users who spam: repeated messages, excessive caps or emotes, links, "
        "self promotion or follower selling.\n"
        'Respond with a JSON array: [{"username": str, "evidence": str, "count": int}] where '
        "count is the number of spam messages. Respond with [] when nobody spams."
    ),
    PatternCategory.ENGAGEMENT: (
        "The chat has gone quiet. Suggest a short, friendly message the streamer's bot "
        "could send to restart the conversation, based on the recent topics.\n"
        'Respond with a JSON array: [{"message": str}]. Respond with [] to use a stock message.'
    ),
    PatternCategory.POLL: (
        "Viewers may want a poll. Propose one poll that fits the recent chat.\n"
        'Respond with a JSON object: {"title": str, "choices": [str, ...]} with 2 to 5 short choices.'
    ),
}


def format_log_line(message: ChatMessage) -> str:
    return f"[{message.timestamp.strftime('%H:%M:%S')}] {message.username}: {message.content}"


def build_prompt(category: PatternCategory, messages: Sequence[ChatMessage], extra: str = "") -> str:
    """Build the analysis prompt for ``category`` from the newest messages."""
    context = messages[-CONTEXT_MESSAGE_LIMIT:]
    lines = [f"{_TASK_PREFIX} {category.value}", _INSTRUCTIONS[category]]
    if extra:
        lines.append(extra)
    lines.append(CHAT_LOG_START)
    lines.extend(format_log_line(message) for message in context)
    lines.append(CHAT_LOG_END)
    return "\n".join(lines)


def prompt_category(prompt: str) -> PatternCategory | None:
    """Recover the category a prompt was built for."""
    for line in prompt.splitlines():
        if line.startswith(_TASK_PREFIX):
            value = line[len(_TASK_PREFIX):].strip().lower()
            try:
                return PatternCategory(value)
            except ValueError:
                return None
    return None


def prompt_chat_lines(prompt: str) -> List[tuple[str, str]]:
    """Recover ``(username, content)`` pairs from a prompt's chat log section."""
    pairs: List[tuple[str, str]] = []
    inside = False
    for line in prompt.splitlines():
        if line == CHAT_LOG_START:
            inside = True
            continue
        if line == CHAT_LOG_END:
            break
        if inside:
            match = _LOG_LINE_PATTERN.match(line)
            if match:
                pairs.append((match.group("username"), match.group("content")))
    return pairs


def _extract_json_payload(category: PatternCategory, raw: str) -> Any:
    text = (raw or "").strip()
    fenced = _FENCE_PATTERN.match(text)
    if fenced:
        text = fenced.group(1)
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise StrategyParseError(category, f"invalid JSON ({exc.msg})") from exc


def parse_response(category: PatternCategory, raw: str) -> Any:
    """Decode and validate the strategy payload for ``category``.

    Raises:
        StrategyParseError: If the payload is not JSON or violates the schema.
    """
    logger.debug("[PARSE] Parsing %s response (%d chars)", category, len(raw or ""))
    payload = _extract_json_payload(category, raw)
    try:
        jsonschema.validate(instance=payload, schema=RESPONSE_SCHEMAS[category])
    except ValidationError as exc:
        raise StrategyParseError(category, f"schema violation ({exc.message})") from exc
    return payload
