"""Tests for MonitorScheduler lifecycle and full monitoring cycles."""

import asyncio
import json
from datetime import timedelta

import pytest

from conftest import BASE_TIME, ScriptedStrategy, make_messages
from modwatch.ai.analysis_strategy import HeuristicAnalysisStrategy
from modwatch.configuration.monitor_settings import (
    MonitorSettings,
    PollRule,
    PollTrigger,
    RuleSet,
    SpamRule,
    ToxicityRule,
)
from modwatch.datatypes.action_datatypes import ActionRecord, Outcome
from modwatch.scheduler.monitor_context import build_context
from modwatch.scheduler.monitor_scheduler import MonitorScheduler

TOXIC_CHAT = (("alice", "you stupid idiot"), ("bob", "gg"), ("alice", "so dumb"))


class GatedStrategy:
    """Toxicity strategy that blocks until ``gate`` is set."""

    def __init__(self) -> None:
        self.gate = asyncio.Event()
        self.calls = 0

    async def analyze(self, prompt: str) -> str:
        self.calls += 1
        await self.gate.wait()
        return json.dumps([{"username": "alice", "severity": 9, "evidence": "you stupid idiot"}])


def toxicity_only() -> RuleSet:
    return RuleSet(spam=SpamRule(enabled=False), toxicity=ToxicityRule())


def poll_only(**poll) -> RuleSet:
    return RuleSet(
        spam=SpamRule(enabled=False),
        toxicity=ToxicityRule(enabled=False),
        poll=PollRule(enabled=True, **poll),
    )


def make_scheduler(tmp_path, strategy, capability, clock, rules=None, interval=5.0) -> MonitorScheduler:
    settings = MonitorSettings(
        monitoring_interval_seconds=interval,
        rules=rules or toxicity_only(),
        feedback_dir=tmp_path / "feedback",
    )
    return MonitorScheduler(build_context(settings, strategy, capability, clock=clock))


async def wait_for(predicate, attempts: int = 200) -> None:
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0.01)
    raise AssertionError("condition not reached")


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_double_start_arms_one_timer(self, tmp_path, capability, clock):
        scheduler = make_scheduler(tmp_path, ScriptedStrategy(), capability, clock)

        assert scheduler.start() is True
        assert scheduler.start() is False
        assert scheduler.is_active

        path = await scheduler.stop()

        assert not scheduler.is_active
        assert path == tmp_path / "feedback" / "performance_report_2024-05-01.md"
        assert "Performance" in path.read_text(encoding="utf-8")

    @pytest.mark.asyncio
    async def test_stop_when_inactive_is_a_noop(self, tmp_path, capability, clock):
        scheduler = make_scheduler(tmp_path, ScriptedStrategy(), capability, clock)

        assert await scheduler.stop() is None
        assert not (tmp_path / "feedback").exists()

    @pytest.mark.asyncio
    async def test_timer_runs_cycles(self, tmp_path, capability, clock):
        scheduler = make_scheduler(tmp_path, HeuristicAnalysisStrategy(), capability, clock, interval=0.01)
        scheduler.start()
        scheduler.ingest(make_messages(*TOXIC_CHAT))

        await wait_for(lambda: capability.calls)
        await scheduler.stop()

        assert capability.calls[0][0] == "timeout-user"
        assert capability.calls[0][1]["username"] == "alice"

    @pytest.mark.asyncio
    async def test_stop_waits_for_in_flight_cycle(self, tmp_path, capability, clock):
        strategy = GatedStrategy()
        scheduler = make_scheduler(tmp_path, strategy, capability, clock, interval=0.01)
        scheduler.ingest(make_messages(*TOXIC_CHAT))
        scheduler.start()

        await wait_for(lambda: scheduler.cycle_in_flight)
        await asyncio.sleep(0.05)
        assert strategy.calls == 1

        stopping = asyncio.create_task(scheduler.stop())
        await asyncio.sleep(0.02)
        assert not stopping.done()

        strategy.gate.set()
        path = await stopping

        assert path is not None
        assert [name for name, _ in capability.calls] == ["timeout-user"]
        assert len(scheduler.context.feedback_store.records) == 1

        await asyncio.sleep(0.05)
        assert strategy.calls == 1
        assert json.loads(scheduler.get_debug_info())["ticks_skipped"] > 0


class TestForcedAnalysis:
    @pytest.mark.asyncio
    async def test_end_to_end_with_heuristic_strategy(self, tmp_path, capability, clock):
        scheduler = make_scheduler(tmp_path, HeuristicAnalysisStrategy(), capability, clock)
        scheduler.ingest(make_messages(*TOXIC_CHAT))

        result = await scheduler.force_analysis()

        assert not result.skipped
        assert [p.subject for p in result.patterns] == ["alice"]
        (record,) = result.executed
        assert record.outcome is Outcome.SUCCESS
        assert record.target == "alice"
        assert capability.calls[0][1]["duration"] == 1800
        assert scheduler.recent_actions() == [record]

    @pytest.mark.asyncio
    async def test_skipped_while_cycle_in_flight(self, tmp_path, capability, clock):
        strategy = GatedStrategy()
        scheduler = make_scheduler(tmp_path, strategy, capability, clock)
        scheduler.ingest(make_messages(*TOXIC_CHAT))

        first = asyncio.create_task(scheduler.force_analysis())
        await wait_for(lambda: strategy.calls == 1)

        second = await scheduler.force_analysis()
        strategy.gate.set()
        completed = await first

        assert second.skipped
        assert second.executed == []
        assert not completed.skipped
        assert len(completed.executed) == 1

    @pytest.mark.asyncio
    async def test_poll_cooldown_across_cycles(self, tmp_path, capability, clock):
        strategy = ScriptedStrategy({"poll": {"title": "Next map?", "choices": ["Dust", "Mirage"]}})
        scheduler = make_scheduler(tmp_path, strategy, capability, clock, rules=poll_only(cooldown=15))

        scheduler.ingest(make_messages(("a", "make a poll!")))
        first = await scheduler.force_analysis()

        clock.advance(300)
        scheduler.ingest(make_messages(("b", "can we vote?"), start=clock()))
        second = await scheduler.force_analysis()

        assert len(first.executed) == 1
        assert len(second.patterns) == 1
        assert second.decisions == []
        assert [name for name, _ in capability.calls] == ["create-poll"]
        assert capability.calls[0][1] == {"title": "Next map?", "choices": ["Dust", "Mirage"], "duration": 120}

    @pytest.mark.asyncio
    async def test_game_event_triggers_poll(self, tmp_path, capability, clock):
        strategy = ScriptedStrategy({"poll": {"title": "Fight the boss?", "choices": ["Yes", "No"]}})
        scheduler = make_scheduler(
            tmp_path, strategy, capability, clock, rules=poll_only(trigger=PollTrigger.GAME_EVENT),
        )

        assert (await scheduler.force_analysis()).executed == []

        scheduler.signal_game_event("boss arena reached")
        result = await scheduler.force_analysis()

        assert [record.action for record in result.executed] == ["poll"]


class TestOperatorSurface:
    @pytest.mark.asyncio
    async def test_state_and_debug_info(self, tmp_path, capability, clock):
        scheduler = make_scheduler(tmp_path, HeuristicAnalysisStrategy(), capability, clock)
        scheduler.ingest(make_messages(*TOXIC_CHAT))
        await scheduler.force_analysis()

        state = await scheduler.get_state()
        info = json.loads(scheduler.get_debug_info())

        assert state.is_active is False
        assert state.last_analysis == BASE_TIME
        assert len(state.recent_actions) == 1
        assert state.statistics.total_actions == 1
        assert info["cycles_run"] == 1
        assert info["buffer"]["size"] == 3
        assert info["enabled_rules"] == ["toxicity"]
        assert list(info["cooldowns"]) == ["toxicity:alice"]

    @pytest.mark.asyncio
    async def test_debug_info_is_truncated(self, tmp_path, capability, clock):
        scheduler = make_scheduler(tmp_path, ScriptedStrategy(), capability, clock)

        assert scheduler.get_debug_info(max_length=20).endswith("[Output truncated due to length]")

    @pytest.mark.asyncio
    async def test_snapshot_drains_pending_messages(self, tmp_path, capability, clock):
        scheduler = make_scheduler(tmp_path, ScriptedStrategy(), capability, clock)

        assert scheduler.ingest(make_messages(("a", "one"), ("b", "two"))) == 2

        assert [m.content for m in scheduler.snapshot()] == ["one", "two"]

    @pytest.mark.asyncio
    async def test_restore_cooldowns_from_store(self, tmp_path, capability, clock):
        scheduler = make_scheduler(
            tmp_path, ScriptedStrategy({"poll": {"title": "t", "choices": ["A", "B"]}}), capability, clock,
            rules=poll_only(),
        )
        store = scheduler.context.feedback_store
        await store.record_action(
            ActionRecord(BASE_TIME - timedelta(minutes=1), "poll", None, "asked", 0.6, Outcome.SUCCESS, category="poll")
        )

        assert scheduler.restore_cooldowns() == 1

        scheduler.ingest(make_messages(("a", "poll please")))
        result = await scheduler.force_analysis()

        assert result.decisions == []
        assert capability.calls == []
