"""Timer-driven monitor lifecycle.

The scheduler owns the monitor state and runs at most one
detect → decide → execute cycle at a time. A timer task fires every
``monitoring_interval_seconds``; a tick that finds a cycle still running is
skipped rather than queued. Stopping disarms the timer, lets an in-flight
cycle finish and then writes the daily performance report.
"""

from __future__ import annotations

import asyncio
from collections import deque
from pathlib import Path
from typing import Any, Dict, Iterable, List, Tuple

from modwatch.chat.chat_analysis import analyze_chat
from modwatch.datatypes.action_datatypes import ActionRecord
from modwatch.datatypes.chat_datatypes import ChatMessage
from modwatch.datatypes.monitor_datatypes import CycleResult, MonitorState
from modwatch.feedback.performance_report import format_performance_report
from modwatch.scheduler.monitor_context import MonitorContext
from modwatch.util.format_utils import safe_json_dumps
from modwatch.util.logger import get_logger

logger = get_logger("monitor_scheduler")

RECENT_ACTIONS_LIMIT = 50


class MonitorScheduler:
    """
    Lifecycle controller for autonomous monitoring.

    Args:
        context: Fully wired components; see :func:`build_context`.
    """

    def __init__(self, context: MonitorContext) -> None:
        self._context = context
        self._timer_task: asyncio.Task | None = None
        self._cycle_task: asyncio.Task | None = None
        self._is_active = False
        self._last_analysis = None
        self._last_result: CycleResult | None = None
        self._recent_actions: deque[ActionRecord] = deque(maxlen=RECENT_ACTIONS_LIMIT)
        self._cycles_run = 0
        self._ticks_skipped = 0

    @property
    def context(self) -> MonitorContext:
        return self._context

    @property
    def is_active(self) -> bool:
        return self._is_active

    @property
    def cycle_in_flight(self) -> bool:
        return self._cycle_task is not None and not self._cycle_task.done()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> bool:
        """Arm the repeating timer. Returns False if monitoring was already active."""
        if self._is_active:
            logger.warning("[SCHEDULER] Monitoring already active")
            return False

        self._is_active = True
        self._context.ingestor.start()
        interval = self._context.settings.monitoring_interval_seconds
        logger.info("[SCHEDULER] Starting autonomous monitoring (interval=%.1fs)", interval)
        self._timer_task = asyncio.create_task(self._run_loop(interval), name="modwatch-monitor-timer")
        return True

    async def stop(self) -> Path | None:
        """Disarm the timer, wait for an in-flight cycle and write the report.

        Returns:
            Path of the written performance report, or None if monitoring was
            not active or the report could not be written.
        """
        if not self._is_active:
            logger.debug("[SCHEDULER] Stop requested while inactive")
            return None

        self._is_active = False
        timer, self._timer_task = self._timer_task, None
        if timer and not timer.done():
            timer.cancel()
            try:
                await timer
            except asyncio.CancelledError:
                pass

        if self.cycle_in_flight:
            logger.info("[SCHEDULER] Waiting for the running cycle to finish")
            try:
                await asyncio.shield(self._cycle_task)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.error("[SCHEDULER] Final cycle failed: %s", exc)

        await self._context.ingestor.shutdown()
        path = await self.write_performance_report()
        logger.info("[SCHEDULER] Autonomous monitoring stopped")
        return path

    async def _run_loop(self, interval: float) -> None:
        try:
            while True:
                await asyncio.sleep(interval)
                if self.cycle_in_flight:
                    self._ticks_skipped += 1
                    logger.debug("[SCHEDULER] Previous cycle still running, skipping tick")
                    continue
                self._cycle_task = asyncio.create_task(self._run_timed_cycle(), name="modwatch-monitor-cycle")
        except asyncio.CancelledError:
            logger.debug("[SCHEDULER] Timer cancelled")
            raise

    async def _run_timed_cycle(self) -> None:
        try:
            await self._run_cycle()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("[SCHEDULER] Unexpected error during monitoring cycle")

    # ------------------------------------------------------------------
    # Cycles
    # ------------------------------------------------------------------

    async def force_analysis(self) -> CycleResult:
        """Run one cycle now, unless one is already running."""
        if self.cycle_in_flight:
            logger.info("[SCHEDULER] Forced analysis skipped: cycle in flight")
            return CycleResult(skipped=True, started_at=self._context.clock())
        self._cycle_task = asyncio.create_task(self._run_cycle(), name="modwatch-forced-cycle")
        return await self._cycle_task

    async def _run_cycle(self) -> CycleResult:
        context = self._context
        started_at = context.clock()
        context.ingestor.drain()
        snapshot = context.buffer.snapshot()

        patterns = await context.detector.detect(snapshot)
        decisions = context.engine.decide(
            patterns,
            context.feedback_store.confidence_adjustments(),
            now=context.clock(),
        )
        executed = await context.executor.execute_all(
            decisions,
            on_attempt=lambda decision, record: context.engine.mark_executed(decision, record.timestamp),
        )

        self._recent_actions.extend(executed)
        self._last_analysis = started_at
        self._cycles_run += 1
        result = CycleResult(
            patterns=patterns,
            decisions=decisions,
            executed=executed,
            started_at=started_at,
        )
        self._last_result = result
        logger.debug(
            "[SCHEDULER] Cycle done: %d messages, %d patterns, %d decisions, %d executed",
            len(snapshot), len(patterns), len(decisions), len(executed),
        )
        return result

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    def ingest(self, messages: Iterable[ChatMessage]) -> int:
        return self._context.ingestor.ingest(messages)

    def signal_game_event(self, description: str) -> None:
        self._context.detector.signal_game_event(description)

    def snapshot(self) -> Tuple[ChatMessage, ...]:
        """Current buffer contents, including anything still queued."""
        self._context.ingestor.drain()
        return self._context.buffer.snapshot()

    def restore_cooldowns(self) -> int:
        return self._context.engine.restore_cooldowns(self._context.feedback_store.records)

    # ------------------------------------------------------------------
    # Operator surface
    # ------------------------------------------------------------------

    async def get_state(self) -> MonitorState:
        statistics = await self._context.feedback_store.statistics()
        return MonitorState(
            is_active=self._is_active,
            last_analysis=self._last_analysis,
            recent_actions=list(self._recent_actions),
            statistics=statistics,
        )

    async def generate_performance_report(self) -> str:
        store = self._context.feedback_store
        statistics = await store.statistics()
        return format_performance_report(statistics, store.learning_insights(), self._context.clock())

    async def write_performance_report(self) -> Path | None:
        report = await self.generate_performance_report()
        await self._context.feedback_store.write_learning_insights()
        return await self._context.feedback_store.write_report(report)

    def get_debug_info(self, max_length: int = 8000) -> str:
        """JSON dump of internal state for troubleshooting, truncated to ``max_length``."""
        context = self._context
        snapshot = context.buffer.snapshot()
        info: Dict[str, Any] = {
            "is_active": self._is_active,
            "cycle_in_flight": self.cycle_in_flight,
            "cycles_run": self._cycles_run,
            "ticks_skipped": self._ticks_skipped,
            "last_analysis": self._last_analysis.isoformat() if self._last_analysis else None,
            "monitoring_interval_seconds": context.settings.monitoring_interval_seconds,
            "enabled_rules": [str(category) for category in context.settings.rules.enabled_categories()],
            "buffer": {
                "size": len(snapshot),
                "capacity": context.buffer.capacity,
                "total_appended": context.buffer.total_appended,
                "pending_ingest": context.ingestor.pending,
            },
            "chat_analysis": analyze_chat(snapshot),
            "pending_game_events": context.detector.pending_game_events,
            "skipped_categories": [str(failure) for failure in context.detector.skipped],
            "cooldowns": context.engine.cooldowns.snapshot(),
            "confidence_adjustments": context.feedback_store.confidence_adjustments(),
            "last_cycle": self._last_result.to_dict() if self._last_result else None,
            "recent_actions": [record.to_dict() for record in self.recent_actions(10)],
        }
        return safe_json_dumps(info, max_length=max_length)

    def recent_actions(self, n: int = RECENT_ACTIONS_LIMIT) -> List[ActionRecord]:
        return list(self._recent_actions)[-n:] if n > 0 else []
