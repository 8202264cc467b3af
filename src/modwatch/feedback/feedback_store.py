"""
Durable history of attempted actions and the feedback attached to them.

Records live in memory and in daily JSON Lines files inside the feedback
directory:

- ``actions_YYYY-MM-DD.jsonl``: one line per attempted action.
- ``feedback_YYYY-MM-DD.jsonl``: one line per accepted feedback entry.
- ``learning_insights.json``: per-action aggregates, rewritten on feedback.
- ``performance_report_YYYY-MM-DD.md``: written when monitoring stops.

All writes go through one ``asyncio.Lock`` per store and the blocking file
I/O runs in ``asyncio.to_thread``. Records older than the retention window
are purged lazily on the next write or statistics call.
"""

from __future__ import annotations

import asyncio
import json
import re
from collections import Counter, defaultdict
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Sequence

from modwatch.datatypes.action_datatypes import ActionRecord, Outcome
from modwatch.datatypes.error_datatypes import ErrorKind, Failure
from modwatch.datatypes.feedback_datatypes import FeedbackEntry, FeedbackResult, FeedbackSource
from modwatch.datatypes.monitor_datatypes import MonitorStatistics
from modwatch.util.format_utils import ensure_utc, utc_now
from modwatch.util.logger import get_logger

logger = get_logger("feedback_store")

ACTIONS_PREFIX = "actions_"
FEEDBACK_PREFIX = "feedback_"
REPORT_PREFIX = "performance_report_"
INSIGHTS_FILENAME = "learning_insights.json"

MATCH_TOLERANCE_SECONDS = 1.0
MIN_RATINGS_FOR_ADJUSTMENT = 3
ADJUSTMENT_PER_RATING_POINT = 0.05
NEUTRAL_RATING = 3

_DAILY_FILE_PATTERN = re.compile(
    rf"^(?:{ACTIONS_PREFIX}|{FEEDBACK_PREFIX}|{REPORT_PREFIX})(\d{{4}}-\d{{2}}-\d{{2}})\.(?:jsonl|md)$"
)


def is_successful(record: ActionRecord) -> bool:
    """Succeeded on the platform and not rated below neutral."""
    if record.outcome is not Outcome.SUCCESS:
        return False
    return record.feedback is None or record.feedback.rating >= NEUTRAL_RATING


def compute_statistics(records: Sequence[ActionRecord], now: datetime) -> MonitorStatistics:
    """Derive :class:`MonitorStatistics` from ``records``; no side effects."""
    if not records:
        return MonitorStatistics()

    today = ensure_utc(now).date()
    rated = [record.feedback.rating for record in records if record.feedback is not None]
    # Counter preserves first-seen order, so most_common breaks ties by earliest action.
    action_counts = Counter(record.action for record in records)

    return MonitorStatistics(
        actions_today=sum(1 for record in records if ensure_utc(record.timestamp).date() == today),
        success_rate=sum(1 for record in records if is_successful(record)) / len(records),
        average_confidence=sum(record.confidence for record in records) / len(records),
        most_common_action=action_counts.most_common(1)[0][0],
        feedback_count=len(rated),
        average_rating=sum(rated) / len(rated) if rated else 0.0,
        total_actions=len(records),
    )


def compute_adjustments(records: Iterable[ActionRecord]) -> Dict[str, float]:
    """Confidence floor adjustment per action learned from ratings.

    An action needs at least three rated records; the adjustment is
    ``(average rating - 3) * 0.05``.
    """
    ratings: Dict[str, List[int]] = defaultdict(list)
    for record in records:
        if record.feedback is not None:
            ratings[record.action].append(record.feedback.rating)

    return {
        action: (sum(values) / len(values) - NEUTRAL_RATING) * ADJUSTMENT_PER_RATING_POINT
        for action, values in ratings.items()
        if len(values) >= MIN_RATINGS_FOR_ADJUSTMENT
    }


def _file_date(path: Path) -> date | None:
    match = _DAILY_FILE_PATTERN.match(path.name)
    if not match:
        return None
    try:
        return date.fromisoformat(match.group(1))
    except ValueError:
        return None


class FeedbackStore:
    """Single writer of persisted action and feedback history.

    Attributes:
        directory: Folder holding the daily logs and derived artifacts.
        retention_days: Age after which records and daily files are purged.
    """

    def __init__(
        self,
        directory: Path,
        retention_days: int = 30,
        clock: Callable[[], datetime] = utc_now,
        match_tolerance_seconds: float = MATCH_TOLERANCE_SECONDS,
    ) -> None:
        self.directory = Path(directory)
        self.retention_days = retention_days
        self._clock = clock
        self._tolerance = match_tolerance_seconds
        self._records: List[ActionRecord] = []
        self._lock = asyncio.Lock()
        self._initialized = False

    @property
    def records(self) -> List[ActionRecord]:
        """Retained records, oldest first. The list is a copy."""
        return list(self._records)

    def recent(self, n: int = 50) -> List[ActionRecord]:
        return self._records[-n:] if n > 0 else []

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> bool:
        """Create the directory and load retained history from disk.

        Returns:
            True if the history was loaded, False if the directory could not
            be read (the store then starts empty).
        """
        if self._initialized:
            logger.debug("[FEEDBACK] Already initialized, skipping")
            return True

        async with self._lock:
            try:
                records = await asyncio.to_thread(self._load_history)
            except OSError as exc:
                logger.error("[FEEDBACK] Failed to load history from %s: %s", self.directory, exc)
                return False
            self._records = records
            self._initialized = True
            await self._purge_expired()

        logger.info("[FEEDBACK] Loaded %d action record(s) from %s", len(self._records), self.directory)
        return True

    def _load_history(self) -> List[ActionRecord]:
        self.directory.mkdir(parents=True, exist_ok=True)
        records: List[ActionRecord] = []
        for path in sorted(self.directory.glob(f"{ACTIONS_PREFIX}*.jsonl")):
            for data in self._read_lines(path):
                try:
                    records.append(ActionRecord.from_dict(data))
                except (ValueError, TypeError) as exc:
                    logger.warning("[FEEDBACK] Skipping bad action line in %s: %s", path.name, exc)
        records.sort(key=lambda record: record.timestamp)

        for path in sorted(self.directory.glob(f"{FEEDBACK_PREFIX}*.jsonl")):
            for data in self._read_lines(path):
                try:
                    entry = FeedbackEntry.from_dict(data)
                except (ValueError, TypeError) as exc:
                    logger.warning("[FEEDBACK] Skipping bad feedback line in %s: %s", path.name, exc)
                    continue
                record = self._nearest(records, entry.action_timestamp)
                if record is not None:
                    record.feedback = entry
        return records

    @staticmethod
    def _read_lines(path: Path) -> Iterable[Dict[str, Any]]:
        with path.open("r", encoding="utf-8") as handle:
            for line in handle:
                line = line.strip()
                if not line:
                    continue
                try:
                    data = json.loads(line)
                except json.JSONDecodeError:
                    logger.warning("[FEEDBACK] Skipping unparsable line in %s", path.name)
                    continue
                if isinstance(data, dict):
                    yield data

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def record_action(self, record: ActionRecord) -> None:
        """Append ``record`` to memory and to the daily actions log.

        Disk errors are logged; the in-memory record is kept regardless.
        """
        # Naive timestamps are taken as UTC so later comparisons never mix kinds.
        record.timestamp = ensure_utc(record.timestamp)
        async with self._lock:
            self._records.append(record)
            path = self.directory / f"{ACTIONS_PREFIX}{record.timestamp.date().isoformat()}.jsonl"
            try:
                await asyncio.to_thread(self._append_line, path, record.to_dict())
            except OSError as exc:
                logger.error("[FEEDBACK] Failed to persist action record: %s", exc)
            await self._purge_expired()

    async def add_feedback(
        self,
        action_timestamp: datetime,
        rating: int,
        comment: str | None = None,
        source: FeedbackSource | str = FeedbackSource.MANUAL,
    ) -> FeedbackResult:
        """Attach a rating to the record nearest ``action_timestamp``.

        Returns:
            A :class:`FeedbackResult` holding the entry, or a failure value
            when the input is invalid or no record lies within the tolerance.
        """
        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            return FeedbackResult(error=Failure(ErrorKind.INVALID_FEEDBACK, f"Rating must be 1-5, got {rating!r}"))
        try:
            source = FeedbackSource(source)
        except ValueError:
            return FeedbackResult(error=Failure(ErrorKind.INVALID_FEEDBACK, f"Unknown feedback source: {source!r}"))

        action_timestamp = ensure_utc(action_timestamp)
        async with self._lock:
            record = self._nearest(self._records, action_timestamp)
            if record is None:
                logger.warning("[FEEDBACK] No action found near %s", action_timestamp.isoformat())
                return FeedbackResult(
                    error=Failure(
                        ErrorKind.FEEDBACK_NOT_FOUND,
                        f"No action recorded within {self._tolerance:g}s of {action_timestamp.isoformat()}",
                    )
                )

            entry = FeedbackEntry(
                action_timestamp=record.timestamp,
                rating=rating,
                comment=comment,
                source=source,
                recorded_at=self._clock(),
            )
            if record.feedback is not None:
                logger.info("[FEEDBACK] Replacing earlier feedback for %s", record.timestamp.isoformat())
            record.feedback = entry

            path = self.directory / f"{FEEDBACK_PREFIX}{ensure_utc(entry.recorded_at).date().isoformat()}.jsonl"
            try:
                await asyncio.to_thread(self._append_line, path, entry.to_dict())
                await asyncio.to_thread(self._write_json, self.directory / INSIGHTS_FILENAME, self.learning_insights())
            except OSError as exc:
                logger.error("[FEEDBACK] Failed to persist feedback: %s", exc)
            await self._purge_expired()

        logger.info("[FEEDBACK] %s rated %d/5 by %s", record.action, rating, source)
        return FeedbackResult(entry=entry)

    async def write_report(self, text: str, now: datetime | None = None) -> Path | None:
        """Write the daily performance report; returns its path or None on error."""
        now = ensure_utc(now or self._clock())
        path = self.directory / f"{REPORT_PREFIX}{now.date().isoformat()}.md"
        async with self._lock:
            try:
                await asyncio.to_thread(self._write_text, path, text)
            except OSError as exc:
                logger.error("[FEEDBACK] Failed to write performance report: %s", exc)
                return None
        logger.info("[FEEDBACK] Performance report written to %s", path)
        return path

    async def write_learning_insights(self) -> Path | None:
        path = self.directory / INSIGHTS_FILENAME
        async with self._lock:
            try:
                await asyncio.to_thread(self._write_json, path, self.learning_insights())
            except OSError as exc:
                logger.error("[FEEDBACK] Failed to write learning insights: %s", exc)
                return None
        return path

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def statistics(self, window: timedelta | None = None, now: datetime | None = None) -> MonitorStatistics:
        """Recompute statistics over retained records.

        Args:
            window: Only consider records newer than ``now - window``.
            now: Reference time; defaults to the store clock.
        """
        now = ensure_utc(now or self._clock())
        async with self._lock:
            await self._purge_expired(now)
            records = self._records
            if window is not None:
                cutoff = now - window
                records = [record for record in records if record.timestamp >= cutoff]
            return compute_statistics(records, now)

    def confidence_adjustments(self) -> Dict[str, float]:
        return compute_adjustments(self._records)

    def learning_insights(self) -> Dict[str, Any]:
        """Per-action aggregates used for the insights artifact and reports."""
        grouped: Dict[str, List[ActionRecord]] = defaultdict(list)
        for record in self._records:
            grouped[record.action].append(record)
        adjustments = compute_adjustments(self._records)

        actions: Dict[str, Any] = {}
        for action, records in grouped.items():
            ratings = [record.feedback.rating for record in records if record.feedback is not None]
            actions[action] = {
                "count": len(records),
                "success_rate": sum(1 for record in records if is_successful(record)) / len(records),
                "average_confidence": sum(record.confidence for record in records) / len(records),
                "feedback_count": len(ratings),
                "average_rating": sum(ratings) / len(ratings) if ratings else None,
                "confidence_adjustment": adjustments.get(action, 0.0),
            }

        return {
            "generated_at": ensure_utc(self._clock()).isoformat(),
            "total_actions": len(self._records),
            "total_feedback": sum(1 for record in self._records if record.feedback is not None),
            "actions": actions,
        }

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _nearest(self, records: Sequence[ActionRecord], timestamp: datetime) -> ActionRecord | None:
        best: ActionRecord | None = None
        best_delta = self._tolerance
        for record in records:
            delta = abs((record.timestamp - timestamp).total_seconds())
            if delta <= best_delta:
                best, best_delta = record, delta
        return best

    async def _purge_expired(self, now: datetime | None = None) -> None:
        """Drop expired records and daily files. Caller holds the lock."""
        now = ensure_utc(now or self._clock())
        cutoff = now - timedelta(days=self.retention_days)
        before = len(self._records)
        self._records = [record for record in self._records if record.timestamp >= cutoff]
        try:
            removed_files = await asyncio.to_thread(self._remove_expired_files, cutoff.date())
        except OSError as exc:
            logger.error("[FEEDBACK] Failed to purge old files: %s", exc)
            removed_files = 0
        purged = before - len(self._records)
        if purged or removed_files:
            logger.info("[FEEDBACK] Purged %d record(s) and %d file(s) older than %s", purged, removed_files, cutoff.date())

    def _remove_expired_files(self, cutoff: date) -> int:
        if not self.directory.exists():
            return 0
        removed = 0
        for path in self.directory.iterdir():
            file_date = _file_date(path)
            if file_date is not None and file_date < cutoff:
                path.unlink(missing_ok=True)
                removed += 1
        return removed

    def _append_line(self, path: Path, data: Dict[str, Any]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(data, default=str) + "\n")

    def _write_json(self, path: Path, data: Dict[str, Any]) -> None:
        self._write_text(path, json.dumps(data, indent=2, default=str))

    @staticmethod
    def _write_text(path: Path, text: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
