"""Interactive operator console for the autonomous monitor."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from prompt_toolkit import print_formatted_text
from prompt_toolkit.formatted_text import FormattedText
from prompt_toolkit.patch_stdout import patch_stdout
from prompt_toolkit.shortcuts import PromptSession, clear

from modwatch.chat.chat_analysis import analyze_chat
from modwatch.datatypes.chat_datatypes import ChatMessage
from modwatch.datatypes.feedback_datatypes import FeedbackSource
from modwatch.feedback.performance_report import format_cycle_summary, format_state_report
from modwatch.scheduler.monitor_scheduler import MonitorScheduler
from modwatch.util.format_utils import parse_timestamp
from modwatch.util.logger import get_logger

# Width of the boxed section titles
BOX_WIDTH = 45


def box_title(title: str) -> list[str]:
    inner_width = BOX_WIDTH - 2
    pad_left = (inner_width - len(title)) // 2
    pad_right = inner_width - len(title) - pad_left
    return [
        f"╔{'═' * inner_width}╗",
        f"║{' ' * pad_left}{title}{' ' * pad_right}║",
        f"╚{'═' * inner_width}╝"
    ]


logger = get_logger("console")

CommandHandler = Callable[["ConsoleControl", list[str]], Awaitable[None]]


@dataclass
class Command:
    """Definition of a console command."""
    name: str
    handler: CommandHandler
    aliases: list[str]
    description: str
    usage: str = ""

    def matches(self, input_cmd: str) -> bool:
        return input_cmd == self.name or input_cmd in self.aliases


def console_print(message: str, style: str = "") -> None:
    """Render text via prompt_toolkit without breaking the active prompt."""
    formatted: FormattedText | str
    if style:
        formatted = FormattedText([(style, message)])
    else:
        formatted = message
    print_formatted_text(formatted)


class ConsoleControl:
    """Console-side handle on the running monitor."""

    def __init__(self, scheduler: MonitorScheduler) -> None:
        self.shutdown_event = asyncio.Event()
        self._scheduler = scheduler

    @property
    def scheduler(self) -> MonitorScheduler:
        return self._scheduler

    def request_shutdown(self) -> None:
        self.shutdown_event.set()

    def is_shutdown_requested(self) -> bool:
        return self.shutdown_event.is_set()


# ==================== Command Handlers ====================

async def cmd_help(control: ConsoleControl, args: list[str]) -> None:
    """List every command with its aliases and usage."""
    for line in box_title("Monitor Console Commands"):
        console_print(line, "ansigreen")

    for cmd in COMMANDS:
        names = " | ".join([cmd.name, *cmd.aliases])
        console_print(f"\n  {names}", "ansicyan")
        console_print(f"    {cmd.description}")
        if cmd.usage:
            console_print(f"    {cmd.usage}", "ansibrightblack")
    console_print("")


async def cmd_status(control: ConsoleControl, args: list[str]) -> None:
    """Show monitoring state and today's statistics."""
    for line in box_title("Monitor Status"):
        console_print(line, "ansiblue")
    state = await control.scheduler.get_state()
    console_print(format_state_report(state))
    console_print("")


async def cmd_start(control: ConsoleControl, args: list[str]) -> None:
    if control.scheduler.start():
        console_print("Autonomous monitoring started.", "ansigreen")
    else:
        console_print("Monitoring is already active.", "ansiyellow")


async def cmd_stop(control: ConsoleControl, args: list[str]) -> None:
    if not control.scheduler.is_active:
        console_print("Monitoring is not active.", "ansiyellow")
        return
    path = await control.scheduler.stop()
    console_print("Autonomous monitoring stopped.", "ansigreen")
    if path:
        console_print(f"Daily report written to {path}", "ansibrightblack")


async def cmd_analyze(control: ConsoleControl, args: list[str]) -> None:
    result = await control.scheduler.force_analysis()
    console_print(format_cycle_summary(result))


async def cmd_report(control: ConsoleControl, args: list[str]) -> None:
    console_print(await control.scheduler.generate_performance_report())


async def cmd_feedback(control: ConsoleControl, args: list[str]) -> None:
    """Rate an action: ``feedback <timestamp|last> <rating> [source] [comment...]``."""
    if len(args) < 2:
        console_print("Usage: feedback <timestamp|last> <rating> [source] [comment]", "ansiyellow")
        return

    store = control.scheduler.context.feedback_store
    if args[0].lower() == "last":
        recent = store.recent(1)
        if not recent:
            console_print("No actions recorded yet.", "ansiyellow")
            return
        timestamp = recent[-1].timestamp
    else:
        timestamp = parse_timestamp(args[0])
        if timestamp is None:
            console_print(f"Invalid timestamp '{args[0]}'. Use ISO 8601, e.g. 2024-01-01T12:00:00Z.", "ansired")
            return

    try:
        rating = int(args[1])
    except ValueError:
        console_print(f"Rating must be a number from 1 to 5, got '{args[1]}'.", "ansired")
        return

    rest = args[2:]
    source = FeedbackSource.MANUAL.value
    if rest and rest[0].lower() in {s.value for s in FeedbackSource}:
        source = rest[0].lower()
        rest = rest[1:]
    comment = " ".join(rest) or None

    result = await store.add_feedback(timestamp, rating, comment=comment, source=source)
    if result.ok:
        console_print(f"Feedback recorded: {rating}/5 ({source}).", "ansigreen")
    else:
        console_print(f"Feedback rejected: {result.error}", "ansired")


async def cmd_chat(control: ConsoleControl, args: list[str]) -> None:
    """Inject a chat message: ``chat <user> <message...>``."""
    if len(args) < 2:
        console_print("Usage: chat <user> <message>", "ansiyellow")
        return
    control.scheduler.ingest([ChatMessage(username=args[0], content=" ".join(args[1:]))])
    console_print(f"Queued message from {args[0]}.", "ansibrightblack")


async def cmd_event(control: ConsoleControl, args: list[str]) -> None:
    description = " ".join(args) or "game event"
    control.scheduler.signal_game_event(description)
    console_print(f"Game event signalled: {description}", "ansibrightblack")


async def cmd_log(control: ConsoleControl, args: list[str]) -> None:
    try:
        count = int(args[0]) if args else 20
    except ValueError:
        count = 20
    control.scheduler.snapshot()
    lines = control.scheduler.context.buffer.recent_log(count)
    if not lines:
        console_print("No recent chat messages.", "ansiyellow")
        return
    for line in lines:
        console_print(f"  {line}")


async def cmd_topics(control: ConsoleControl, args: list[str]) -> None:
    console_print(analyze_chat(control.scheduler.snapshot()))


async def cmd_debug(control: ConsoleControl, args: list[str]) -> None:
    console_print(control.scheduler.get_debug_info())


async def cmd_clear(control: ConsoleControl, args: list[str]) -> None:
    clear()


async def cmd_shutdown(control: ConsoleControl, args: list[str]) -> None:
    console_print("Stopping monitor and exiting...", "ansiyellow")
    control.request_shutdown()


# ==================== Command Registry ====================

COMMANDS: list[Command] = [
    Command(
        name="help",
        handler=cmd_help,
        aliases=["h", "?"],
        description="List console commands",
    ),
    Command(
        name="status",
        handler=cmd_status,
        aliases=["stat", "state"],
        description="Show monitoring state and today's statistics",
    ),
    Command(
        name="start",
        handler=cmd_start,
        aliases=[],
        description="Start autonomous monitoring",
    ),
    Command(
        name="stop",
        handler=cmd_stop,
        aliases=[],
        description="Stop autonomous monitoring and write the daily report",
    ),
    Command(
        name="analyze",
        handler=cmd_analyze,
        aliases=["force", "a"],
        description="Run one analysis cycle immediately",
    ),
    Command(
        name="report",
        handler=cmd_report,
        aliases=["perf"],
        description="Print the performance report",
    ),
    Command(
        name="feedback",
        handler=cmd_feedback,
        aliases=["rate"],
        description="Rate a past action (1-5)",
        usage="feedback <timestamp|last> <rating> [chat|manual|streamer] [comment]",
    ),
    Command(
        name="chat",
        handler=cmd_chat,
        aliases=["say"],
        description="Inject a chat message as if it came from the stream",
        usage="chat <user> <message>",
    ),
    Command(
        name="event",
        handler=cmd_event,
        aliases=[],
        description="Signal a game event for the poll trigger",
        usage="event <description>",
    ),
    Command(
        name="log",
        handler=cmd_log,
        aliases=["recent"],
        description="Show the most recent chat messages",
        usage="log [count]",
    ),
    Command(
        name="topics",
        handler=cmd_topics,
        aliases=[],
        description="Summarize chat activity and top topics",
    ),
    Command(
        name="debug",
        handler=cmd_debug,
        aliases=[],
        description="Dump internal monitor state as JSON",
    ),
    Command(
        name="clear",
        handler=cmd_clear,
        aliases=["cls"],
        description="Clear the terminal",
    ),
    Command(
        name="shutdown",
        handler=cmd_shutdown,
        aliases=["quit", "exit"],
        description="Stop monitoring and exit",
    ),
]


# ==================== Command Dispatcher ====================

async def handle_console_command(command: str, control: ConsoleControl) -> None:
    """Run one console line against the monitor."""
    name, *args = command.split() or [""]
    if not name:
        return

    cmd = next((c for c in COMMANDS if c.matches(name.lower())), None)
    if cmd is None:
        console_print(f"Unknown command '{name.lower()}'. Type 'help' for available commands.", "ansired")
        return

    try:
        await cmd.handler(control, args)
    except Exception as exc:
        logger.exception("[CONSOLE] Command '%s' failed: %s", cmd.name, exc)
        console_print(f"Error executing command: {exc}", "ansired")


async def run_console(control: ConsoleControl) -> None:
    """Run the interactive console until shutdown is requested."""
    session = PromptSession("modwatch> ")

    for line in box_title("Modwatch Interactive Console"):
        console_print(line, "ansigreen")
    console_print("Commands: help, status, start, stop, analyze, feedback, shutdown.\n", "ansibrightblack")

    with patch_stdout():
        while not control.is_shutdown_requested():
            try:
                line = await session.prompt_async()
            except (EOFError, KeyboardInterrupt):
                console_print("\nInterrupted, shutting down.", "ansiyellow")
                control.request_shutdown()
                return
            await handle_console_command(line, control)


@asynccontextmanager
async def console_session(control: ConsoleControl) -> AsyncIterator[ConsoleControl]:
    """Run the console alongside the monitor, cleaning up automatically."""
    console_task = asyncio.create_task(run_console(control))
    try:
        yield control
    finally:
        control.request_shutdown()
        console_task.cancel()
        try:
            await console_task
        except asyncio.CancelledError:
            pass
