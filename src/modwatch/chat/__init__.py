"""
Chat intake for Modwatch.

- **chat_buffer.py**: Bounded, lock-guarded FIFO of recent messages with copy-on-read snapshots.
- **chat_ingestor.py**: Single-consumer queue between the chat transport and the buffer.
- **chat_analysis.py**: Topic/activity summary of a snapshot.
"""
