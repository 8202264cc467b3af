"""
Carry out decisions through the action capability.

The executor canonicalizes the target against the chat buffer, looks up the
platform identity for moderation actions, invokes the matching tool and
records every attempt, successful or not, in the feedback store.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Tuple

from modwatch.datatypes.action_datatypes import (
    ACTION_TOOLS,
    ActionRecord,
    ActionType,
    Decision,
    Outcome,
)
from modwatch.datatypes.error_datatypes import ErrorKind, Failure
from modwatch.feedback.feedback_store import FeedbackStore
from modwatch.moderation.action_capability import ActionCapability, IdentityLookup
from modwatch.moderation.decision_engine import guess_timeout_duration
from modwatch.moderation.target_resolver import TargetResolver
from modwatch.util.format_utils import utc_now
from modwatch.util.logger import get_logger

logger = get_logger("action_executor")

RECENT_LOG_LINES = 20


class ActionExecutor:
    """Executes decisions one at a time and records the outcome."""

    def __init__(
        self,
        resolver: TargetResolver,
        identity_lookup: IdentityLookup,
        capability: ActionCapability,
        feedback_store: FeedbackStore,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._resolver = resolver
        self._identity_lookup = identity_lookup
        self._capability = capability
        self._feedback_store = feedback_store
        self._clock = clock

    async def execute(self, decision: Decision) -> ActionRecord:
        """Execute ``decision`` and persist the resulting record.

        Failures (unresolvable target, unknown user, platform errors) end up
        on the returned record rather than being raised.
        """
        timestamp = self._clock()
        target = decision.target
        failure: Failure | None = None
        result: Any = None

        if decision.target is not None:
            # Decision targets are pattern subjects, never descriptors.
            target = self._resolver.canonical_username(decision.target)
            if target is None:
                recent = "\n".join(self._resolver.recent_log(RECENT_LOG_LINES)) or "(no recent messages)"
                failure = Failure(
                    ErrorKind.TARGET_RESOLUTION,
                    f"Could not identify a user for '{decision.target}'. Recent chat:\n{recent}",
                )

        if failure is None:
            failure, result = await self._invoke(decision, target)

        record = ActionRecord(
            timestamp=timestamp,
            action=decision.action.value,
            target=target if target is not None else decision.target,
            reason=decision.reason,
            confidence=decision.confidence,
            outcome=Outcome.FAILURE if failure else Outcome.SUCCESS,
            error_detail=str(failure) if failure else None,
            category=decision.category.value,
            result=result,
        )
        if failure:
            logger.warning("[EXECUTOR] %s on %s failed: %s", decision.action, record.target or "channel", failure)
        else:
            logger.info("[EXECUTOR] %s on %s succeeded", decision.action, record.target or "channel")

        await self._feedback_store.record_action(record)
        return record

    async def execute_all(
        self,
        decisions: Iterable[Decision],
        on_attempt: Callable[[Decision, ActionRecord], None] | None = None,
    ) -> List[ActionRecord]:
        """Execute decisions sequentially in the given order.

        Args:
            decisions: Decisions, already ordered by the engine.
            on_attempt: Called after every attempt, whatever its outcome.
        """
        records: List[ActionRecord] = []
        for decision in decisions:
            record = await self.execute(decision)
            if on_attempt is not None:
                on_attempt(decision, record)
            records.append(record)
        return records

    async def _invoke(self, decision: Decision, target: str | None) -> Tuple[Failure | None, Any]:
        tool = ACTION_TOOLS[decision.action]
        parameters: Dict[str, Any]

        if decision.action in (ActionType.TIMEOUT, ActionType.BAN):
            try:
                user_id = await self._identity_lookup.lookup(target)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                return Failure(ErrorKind.TRANSPORT_UNAVAILABLE, f"Identity lookup failed: {exc}"), None
            if not user_id:
                return Failure(ErrorKind.TARGET_RESOLUTION, f"User not found: {target}"), None
            parameters = {"user_id": user_id, "username": target, "reason": decision.reason}
            if decision.action is ActionType.TIMEOUT:
                parameters["duration"] = decision.duration or guess_timeout_duration(decision.reason)
        elif decision.action is ActionType.WARN:
            text = decision.parameters.get("message") or decision.reason
            parameters = {"message": f"@{target} {text}"}
        elif decision.action is ActionType.MESSAGE:
            parameters = {"message": decision.parameters.get("message", "")}
        else:
            choices = decision.parameters.get("choices") or []
            if isinstance(choices, str):
                choices = [choice.strip() for choice in choices.split(",") if choice.strip()]
            parameters = {
                "title": decision.parameters.get("title", ""),
                "choices": list(choices),
                "duration": decision.duration,
            }

        logger.debug("[EXECUTOR] Invoking %s with %s", tool, parameters)
        try:
            action_result = await self._capability.invoke(tool.value, parameters)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error("[EXECUTOR] %s raised: %s", tool, exc)
            return Failure(ErrorKind.ACTION_EXECUTION, f"{tool}: {exc}"), None

        if not action_result.success:
            return Failure(ErrorKind.ACTION_EXECUTION, action_result.error or f"{tool} failed"), None
        return None, action_result.result
