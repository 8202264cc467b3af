"""
Data types shared across Modwatch.

- **chat_datatypes.py**: ChatMessage.
- **pattern_datatypes.py**: PatternCategory and Pattern signals.
- **action_datatypes.py**: ActionType, ToolName, Decision, ActionResult, ActionRecord.
- **feedback_datatypes.py**: FeedbackSource, FeedbackEntry, FeedbackResult.
- **monitor_datatypes.py**: MonitorStatistics, MonitorState, CycleResult.
- **error_datatypes.py**: ErrorKind, Failure values and ConfigurationError.
"""
