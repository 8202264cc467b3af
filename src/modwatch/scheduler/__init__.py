"""
Monitor lifecycle.

- **monitor_context.py**: Explicit wiring of every component from settings and collaborators.
- **monitor_scheduler.py**: Timer-driven cycles with single-flight exclusion and the operator surface.
"""
