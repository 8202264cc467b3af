"""
Pytest configuration and fixtures for Modwatch tests.
"""

import json
import os
import sys
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Mapping

import pytest

# Keep session logs out of the working tree
os.environ.setdefault("MODWATCH_LOG_DIR", tempfile.mkdtemp(prefix="modwatch-logs-"))

# Add src directory to path so imports work
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from modwatch.datatypes.action_datatypes import ActionResult  # noqa: E402
from modwatch.datatypes.chat_datatypes import ChatMessage  # noqa: E402
from modwatch.moderation.pattern_parsing import prompt_category  # noqa: E402

BASE_TIME = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock usable anywhere a ``utc_now`` callable is expected."""

    def __init__(self, start: datetime = BASE_TIME) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


class ScriptedStrategy:
    """Analysis strategy returning canned responses per category value."""

    def __init__(self, responses: Mapping[str, Any] | None = None) -> None:
        self.responses = dict(responses or {})
        self.prompts: list[str] = []

    async def analyze(self, prompt: str) -> str:
        self.prompts.append(prompt)
        category = prompt_category(prompt)
        response = self.responses.get(category.value if category else "", [])
        if isinstance(response, Exception):
            raise response
        if isinstance(response, str):
            return response
        return json.dumps(response)

    def calls_for(self, category: str) -> int:
        return sum(1 for prompt in self.prompts if prompt.startswith(f"ANALYSIS: {category}"))


class RecordingCapability:
    """Action capability that records calls and succeeds unless told otherwise."""

    def __init__(self, fail_tools: Mapping[str, str] | None = None, raise_tools: set[str] | None = None) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.fail_tools = dict(fail_tools or {})
        self.raise_tools = set(raise_tools or ())

    async def invoke(self, tool_name: str, parameters: Mapping[str, Any]) -> ActionResult:
        self.calls.append((tool_name, dict(parameters)))
        if tool_name in self.raise_tools:
            raise RuntimeError(f"{tool_name} exploded")
        if tool_name in self.fail_tools:
            return ActionResult.failed(self.fail_tools[tool_name])
        return ActionResult.ok({"tool": tool_name})


def make_messages(*pairs: tuple[str, str], start: datetime = BASE_TIME, step: float = 1.0) -> list[ChatMessage]:
    """Build messages one ``step`` second apart from ``(username, content)`` pairs."""
    return [
        ChatMessage(username=username, content=content, timestamp=start + timedelta(seconds=index * step))
        for index, (username, content) in enumerate(pairs)
    ]


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def capability() -> RecordingCapability:
    return RecordingCapability()
