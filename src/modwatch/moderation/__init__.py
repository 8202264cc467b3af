"""
Detection, decision making and execution of moderation actions.

- **target_resolver.py**: Maps usernames and descriptors ("toxic") to a buffered sender.
- **pattern_parsing.py**: Prompt construction and schema-validated parsing of strategy output.
- **pattern_detector.py**: Per-category analysis producing typed patterns.
- **decision_engine.py**: Rule thresholds, cooldowns, confidence floors and per-target arbitration.
- **action_capability.py**: Platform action and identity lookup contracts plus dry-run implementations.
- **action_executor.py**: Runs decisions and records every attempt.
"""
