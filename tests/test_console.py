"""Tests for console.py module."""

from unittest.mock import AsyncMock, patch

import pytest

from conftest import make_messages
from modwatch.ai.analysis_strategy import HeuristicAnalysisStrategy
from modwatch.configuration.monitor_settings import MonitorSettings
from modwatch.datatypes.feedback_datatypes import FeedbackSource
from modwatch.scheduler.monitor_context import build_context
from modwatch.scheduler.monitor_scheduler import MonitorScheduler
from modwatch.ui import console


@pytest.fixture()
def control(tmp_path, capability, clock) -> console.ConsoleControl:
    settings = MonitorSettings(feedback_dir=tmp_path / "feedback")
    context = build_context(settings, HeuristicAnalysisStrategy(), capability, clock=clock)
    return console.ConsoleControl(MonitorScheduler(context))


@pytest.fixture()
def printed():
    lines: list[str] = []
    with patch("modwatch.ui.console.console_print", side_effect=lambda message, style="": lines.append(message)):
        yield lines


def test_console_print_without_style():
    with patch("modwatch.ui.console.print_formatted_text") as mock_print:
        console.console_print("Test message")
        mock_print.assert_called_once_with("Test message")


def test_console_print_with_style():
    with patch("modwatch.ui.console.print_formatted_text") as mock_print:
        console.console_print("Test message", "ansigreen")
        assert mock_print.call_count == 1


def test_box_title_is_aligned():
    lines = console.box_title("Title")

    assert len({len(line) for line in lines}) == 1
    assert "Title" in lines[1]


def test_command_matches_aliases():
    (analyze,) = [cmd for cmd in console.COMMANDS if cmd.name == "analyze"]

    assert analyze.matches("analyze")
    assert analyze.matches("force")
    assert not analyze.matches("analyse")


@pytest.mark.asyncio
async def test_shutdown_sets_event(control, printed):
    assert not control.is_shutdown_requested()

    await console.handle_console_command("quit", control)

    assert control.is_shutdown_requested()


@pytest.mark.asyncio
async def test_unknown_and_empty_commands(control, printed):
    await console.handle_console_command("   ", control)
    assert printed == []

    await console.handle_console_command("dance", control)
    assert printed == ["Unknown command 'dance'. Type 'help' for available commands."]


@pytest.mark.asyncio
async def test_help_lists_every_command(control, printed):
    await console.handle_console_command("help", control)

    output = "\n".join(printed)
    for cmd in console.COMMANDS:
        assert cmd.name in output


@pytest.mark.asyncio
async def test_start_and_stop(control, printed):
    await console.handle_console_command("start", control)
    await console.handle_console_command("start", control)
    await console.handle_console_command("stop", control)
    await console.handle_console_command("stop", control)

    assert printed[0] == "Autonomous monitoring started."
    assert printed[1] == "Monitoring is already active."
    assert printed[2] == "Autonomous monitoring stopped."
    assert printed[3].startswith("Daily report written to")
    assert printed[4] == "Monitoring is not active."


@pytest.mark.asyncio
async def test_chat_analyze_and_feedback_last(control, printed, capability):
    for user, text in (("alice", "you stupid idiot"), ("alice", "so dumb")):
        await console.handle_console_command(f"chat {user} {text}", control)

    await console.handle_console_command("analyze", control)
    await console.handle_console_command("feedback last 4 streamer nice work", control)

    assert [name for name, _ in capability.calls] == ["timeout-user"]
    assert any(line.startswith("Forced Analysis Results:") for line in printed)
    assert printed[-1] == "Feedback recorded: 4/5 (streamer)."
    (record,) = control.scheduler.context.feedback_store.records
    assert record.feedback.rating == 4
    assert record.feedback.source is FeedbackSource.STREAMER
    assert record.feedback.comment == "nice work"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "command, expected",
    [
        ("feedback", "Usage: feedback <timestamp|last> <rating> [source] [comment]"),
        ("feedback last 5", "No actions recorded yet."),
        ("feedback yesterday 5", "Invalid timestamp 'yesterday'. Use ISO 8601, e.g. 2024-01-01T12:00:00Z."),
        ("feedback 2024-05-01T12:00:00Z five", "Rating must be a number from 1 to 5, got 'five'."),
    ],
)
async def test_feedback_argument_errors(control, printed, command, expected):
    await console.handle_console_command(command, control)

    assert printed == [expected]


@pytest.mark.asyncio
async def test_feedback_without_matching_action_is_rejected(control, printed):
    await console.handle_console_command("feedback 2024-05-01T12:00:00Z 3", control)

    assert printed[-1].startswith("Feedback rejected: feedback_not_found")


@pytest.mark.asyncio
async def test_log_and_topics(control, printed):
    control.scheduler.ingest(make_messages(("alice", "speedrun strats"), ("bob", "speedrun tonight")))

    await console.handle_console_command("log 1", control)
    await console.handle_console_command("topics", control)

    assert printed[0] == "  bob: speedrun tonight"
    assert "speedrun (2 mentions)" in printed[1]


@pytest.mark.asyncio
async def test_status_and_event(control, printed):
    await console.handle_console_command("event boss fight", control)
    await console.handle_console_command("status", control)

    assert printed[0] == "Game event signalled: boss fight"
    assert control.scheduler.context.detector.pending_game_events == 1
    assert any("Status: Inactive" in line for line in printed)


@pytest.mark.asyncio
async def test_handler_errors_are_reported(control, printed):
    with patch.object(control.scheduler, "force_analysis", AsyncMock(side_effect=RuntimeError("boom"))):
        await console.handle_console_command("a", control)

    assert printed == ["Error executing command: boom"]
