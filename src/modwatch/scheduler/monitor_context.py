"""
Explicit wiring of the monitor's components.

Nothing in the core reaches for module-level state: the caller builds a
:class:`MonitorContext` once and hands it to the scheduler, and tests build
their own with fakes.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from modwatch.ai.analysis_strategy import AnalysisStrategy
from modwatch.chat.chat_buffer import ChatBuffer
from modwatch.chat.chat_ingestor import ChatIngestor
from modwatch.configuration.monitor_settings import MonitorSettings
from modwatch.feedback.feedback_store import FeedbackStore
from modwatch.moderation.action_capability import ActionCapability, EchoIdentityLookup, IdentityLookup
from modwatch.moderation.action_executor import ActionExecutor
from modwatch.moderation.decision_engine import DecisionEngine
from modwatch.moderation.pattern_detector import PatternDetector
from modwatch.moderation.target_resolver import TargetResolver
from modwatch.util.format_utils import utc_now


@dataclass
class MonitorContext:
    settings: MonitorSettings
    buffer: ChatBuffer
    ingestor: ChatIngestor
    resolver: TargetResolver
    detector: PatternDetector
    engine: DecisionEngine
    executor: ActionExecutor
    feedback_store: FeedbackStore
    strategy: AnalysisStrategy
    clock: Callable[[], datetime] = utc_now


def build_context(
    settings: MonitorSettings,
    strategy: AnalysisStrategy,
    capability: ActionCapability,
    identity_lookup: IdentityLookup | None = None,
    clock: Callable[[], datetime] = utc_now,
) -> MonitorContext:
    """Assemble every component from ``settings`` and the external collaborators.

    Args:
        settings: Validated monitor settings.
        strategy: Analysis strategy used by the detector.
        capability: Platform action capability used by the executor.
        identity_lookup: Username to platform id lookup; defaults to echoing the username.
        clock: Time source shared by all components.
    """
    buffer = ChatBuffer(settings.buffer_capacity)
    resolver = TargetResolver(buffer)
    feedback_store = FeedbackStore(
        settings.feedback_dir,
        retention_days=settings.max_feedback_retention_days,
        clock=clock,
    )
    return MonitorContext(
        settings=settings,
        buffer=buffer,
        ingestor=ChatIngestor(buffer),
        resolver=resolver,
        detector=PatternDetector(settings.rules, strategy, clock=clock),
        engine=DecisionEngine(settings.rules),
        executor=ActionExecutor(
            resolver,
            identity_lookup or EchoIdentityLookup(),
            capability,
            feedback_store,
            clock=clock,
        ),
        feedback_store=feedback_store,
        strategy=strategy,
        clock=clock,
    )
