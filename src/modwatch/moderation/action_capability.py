"""
Collaborator contracts for acting on the streaming platform.

:class:`ActionCapability` performs a named tool call and :class:`IdentityLookup`
maps a chat username to the platform's user id. The dry-run implementations
validate parameters and log what would have happened; they are what the
console runs with when no platform integration is configured.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Protocol, Tuple, runtime_checkable

from modwatch.datatypes.action_datatypes import ActionResult, ToolName
from modwatch.util.logger import get_logger

logger = get_logger("action_capability")


@runtime_checkable
class ActionCapability(Protocol):
    async def invoke(self, tool_name: str, parameters: Mapping[str, Any]) -> ActionResult:
        ...


@runtime_checkable
class IdentityLookup(Protocol):
    async def lookup(self, username: str) -> str | None:
        ...


# Parameters each tool refuses to run without.
REQUIRED_PARAMETERS: Dict[ToolName, Tuple[str, ...]] = {
    ToolName.SEND_CHAT_MESSAGE: ("message",),
    ToolName.TIMEOUT_USER: ("user_id", "duration"),
    ToolName.BAN_USER: ("user_id",),
    ToolName.CREATE_POLL: ("title", "choices"),
    ToolName.CREATE_PREDICTION: ("title", "outcomes"),
    ToolName.CREATE_CLIP: (),
    ToolName.UPDATE_TITLE: ("title",),
    ToolName.UPDATE_CATEGORY: ("category",),
}


class EchoIdentityLookup:
    """Treats the username itself as the platform id."""

    async def lookup(self, username: str) -> str | None:
        return username.strip() or None


class DryRunActionCapability:
    """Validates and logs tool calls without contacting a platform.

    Every accepted call is kept in :attr:`calls` as ``(tool_name, parameters)``.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, Dict[str, Any]]] = []

    async def invoke(self, tool_name: str, parameters: Mapping[str, Any]) -> ActionResult:
        try:
            tool = ToolName(tool_name)
        except ValueError:
            logger.warning("[DRY RUN] Unknown tool requested: %s", tool_name)
            return ActionResult.failed(f"Unknown tool: {tool_name}")

        missing = [name for name in REQUIRED_PARAMETERS[tool] if parameters.get(name) in (None, "", [])]
        if missing:
            return ActionResult.failed(f"{tool}: missing parameter(s) {', '.join(missing)}")

        if tool is ToolName.CREATE_POLL:
            choices = parameters["choices"]
            if isinstance(choices, str):
                choices = [c.strip() for c in choices.split(",") if c.strip()]
            if not 2 <= len(choices) <= 5:
                return ActionResult.failed(f"{tool}: a poll needs between 2 and 5 choices")

        self.calls.append((tool.value, dict(parameters)))
        logger.info("[DRY RUN] %s %s", tool, dict(parameters))
        return ActionResult.ok({"tool": tool.value, "dry_run": True})
