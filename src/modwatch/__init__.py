"""
Modwatch - Autonomous Live-Stream Chat Monitor

Modwatch buffers incoming chat, periodically analyzes it with a pluggable
analysis strategy (a keyword heuristic or any OpenAI-compatible model), and
turns the findings into moderation and engagement actions.

Core Components:

- **Chat intake**: Bounded buffer fed through a single-consumer ingestion queue
- **Pattern detection**: Spam, toxicity, quiet-chat and poll-trigger signals
  from schema-validated strategy output
- **Decision engine**: Thresholds, cooldowns, feedback-adjusted confidence
  floors and one action per target per cycle
- **Execution**: Target resolution, identity lookup and a platform action
  capability, with every attempt recorded
- **Feedback**: Daily JSONL history, operator ratings, statistics and reports
- **Interactive Console**: Start/stop, forced analysis, feedback and debugging

Usage:
    from modwatch.main import main
    main()  # Starts the monitor with console interface
"""
