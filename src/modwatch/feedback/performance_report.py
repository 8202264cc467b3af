"""Text renderings of monitor state for operators."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict

from modwatch.datatypes.monitor_datatypes import CycleResult, MonitorState, MonitorStatistics
from modwatch.util.format_utils import humanize_timestamp, percent


def format_cycle_summary(result: CycleResult) -> str:
    if result.skipped:
        return "Analysis skipped: another cycle is still running."

    lines = [
        "Forced Analysis Results:",
        f"- Patterns detected: {len(result.patterns)}",
        f"- Decisions made: {len(result.decisions)}",
        f"- Actions executed: {len(result.executed)}",
        "",
    ]
    if not result.executed:
        lines.append("No actions were needed at this time.")
        return "\n".join(lines)

    lines.append("Executed actions:")
    for record in result.executed:
        status = "ok" if record.succeeded else f"failed: {record.error_detail}"
        target = f" {record.target}" if record.target else ""
        lines.append(
            f"- {record.action}{target}: {record.reason} "
            f"(confidence: {round(record.confidence * 100)}%, {status})"
        )
    return "\n".join(lines)


def format_state_report(state: MonitorState) -> str:
    statistics = state.statistics
    last = humanize_timestamp(state.last_analysis) if state.last_analysis else "never"
    return "\n".join([
        "Autonomous Monitoring State",
        f"Status: {'Active' if state.is_active else 'Inactive'}",
        f"Last analysis: {last}",
        f"Recent actions: {len(state.recent_actions)}",
        "",
        "Today's statistics:",
        f"- Actions taken: {statistics.actions_today}",
        f"- Success rate: {percent(statistics.success_rate)}",
        f"- Average confidence: {percent(statistics.average_confidence)}",
        f"- Most common action: {statistics.most_common_action or 'None'}",
    ])


def format_performance_report(
    statistics: MonitorStatistics,
    insights: Dict[str, Any],
    generated_at: datetime,
) -> str:
    """Markdown performance report over the retained history.

    Args:
        statistics: Aggregates over all retained records.
        insights: Output of :meth:`FeedbackStore.learning_insights`.
        generated_at: Report timestamp.
    """
    lines = [
        f"# Autonomous Monitoring Performance Report ({generated_at.date().isoformat()})",
        "",
        f"Generated: {humanize_timestamp(generated_at)}",
        "",
        "## Summary",
        "",
        f"- Total actions: {statistics.total_actions}",
        f"- Actions today: {statistics.actions_today}",
        f"- Success rate: {percent(statistics.success_rate)}",
        f"- Average confidence: {percent(statistics.average_confidence)}",
        f"- Most common action: {statistics.most_common_action or 'None'}",
        f"- Feedback received: {statistics.feedback_count}",
    ]
    if statistics.feedback_count:
        lines.append(f"- Average rating: {statistics.average_rating:.2f}/5")

    actions = insights.get("actions") or {}
    lines += ["", "## By action", ""]
    if not actions:
        lines.append("No actions recorded.")
    else:
        lines.append("| Action | Count | Success | Avg confidence | Ratings | Avg rating | Floor adjustment |")
        lines.append("|---|---|---|---|---|---|---|")
        for action, data in sorted(actions.items()):
            rating = data.get("average_rating")
            lines.append(
                f"| {action} | {data['count']} | {percent(data['success_rate'])} | "
                f"{percent(data['average_confidence'])} | {data['feedback_count']} | "
                f"{f'{rating:.2f}' if rating is not None else '-'} | "
                f"{data['confidence_adjustment']:+.3f} |"
            )
    lines.append("")
    return "\n".join(lines)
