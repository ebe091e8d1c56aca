"""
The per-item processing pipeline.

- **feed_processor.py**: Drives every item through normalize, classify,
  dedup and dispatch, and aggregates the batch outcome.
- **dedup_guard.py**: Durable "already posted" check on top of SQLite.
- **processing_stats.py**: In-process counters reported by ``/stats``.
"""
