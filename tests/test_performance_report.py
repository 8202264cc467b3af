"""Tests for the operator report renderings."""

from conftest import BASE_TIME
from modwatch.datatypes.action_datatypes import ActionRecord, Outcome
from modwatch.datatypes.monitor_datatypes import CycleResult, MonitorState, MonitorStatistics
from modwatch.feedback.performance_report import (
    format_cycle_summary,
    format_performance_report,
    format_state_report,
)


def test_cycle_summary_skipped():
    assert format_cycle_summary(CycleResult(skipped=True)) == "Analysis skipped: another cycle is still running."


def test_cycle_summary_without_actions():
    summary = format_cycle_summary(CycleResult())

    assert summary.startswith("Forced Analysis Results:")
    assert summary.endswith("No actions were needed at this time.")


def test_cycle_summary_lists_executed_actions():
    executed = [
        ActionRecord(BASE_TIME, "timeout", "alice", "Toxic behavior", 0.9, Outcome.SUCCESS),
        ActionRecord(BASE_TIME, "message", None, "Chat quiet", 0.75, Outcome.FAILURE, error_detail="offline"),
    ]

    summary = format_cycle_summary(CycleResult(executed=executed))

    assert "- timeout alice: Toxic behavior (confidence: 90%, ok)" in summary
    assert "- message: Chat quiet (confidence: 75%, failed: offline)" in summary


def test_state_report():
    state = MonitorState(
        is_active=True,
        last_analysis=BASE_TIME,
        recent_actions=[],
        statistics=MonitorStatistics(actions_today=2, success_rate=0.5, average_confidence=0.8,
                                     most_common_action="warn"),
    )

    report = format_state_report(state)

    assert "Status: Active" in report
    assert "Last analysis: 2024-05-01 12:00:00 UTC" in report
    assert "- Success rate: 50.0%" in report
    assert "- Most common action: warn" in report


def test_performance_report_table():
    insights = {
        "actions": {
            "timeout": {
                "count": 4, "success_rate": 0.75, "average_confidence": 0.8,
                "feedback_count": 3, "average_rating": 4.0, "confidence_adjustment": 0.05,
            },
            "ban": {
                "count": 1, "success_rate": 1.0, "average_confidence": 0.95,
                "feedback_count": 0, "average_rating": None, "confidence_adjustment": 0.0,
            },
        }
    }
    statistics = MonitorStatistics(total_actions=5, feedback_count=3, average_rating=4.0)

    report = format_performance_report(statistics, insights, BASE_TIME)
    rows = [line for line in report.splitlines() if line.startswith("| ")]

    assert report.startswith("# Autonomous Monitoring Performance Report (2024-05-01)")
    assert "- Average rating: 4.00/5" in report
    assert rows[1] == "| ban | 1 | 100.0% | 95.0% | 0 | - | +0.000 |"
    assert rows[2] == "| timeout | 4 | 75.0% | 80.0% | 3 | 4.00 | +0.050 |"


def test_performance_report_without_actions():
    report = format_performance_report(MonitorStatistics(), {"actions": {}}, BASE_TIME)

    assert "No actions recorded." in report
    assert "Average rating" not in report
