"""
Shared utilities for Modwatch.

- **logger.py**: Session-wide logging setup (prompt_toolkit console handler,
  rotating log file, uncaught exception hook).
- **format_utils.py**: Timestamp and JSON helpers used by reports, the
  console and persisted logs.
"""
