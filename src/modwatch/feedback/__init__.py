"""
Action history and operator feedback.

- **feedback_store.py**: Daily JSONL logs, feedback matching, statistics, retention and learning insights.
- **performance_report.py**: Text renderings of cycle results, monitor state and the daily report.
"""
