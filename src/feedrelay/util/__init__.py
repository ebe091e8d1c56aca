"""
Utility functions and helpers for feedrelay.

- **logger.py**: Centralized logging configuration with colored console output,
  rotating file handlers, and per-session log aggregation. Suppresses noise from
  verbose libraries (Discord internals, aiohttp, uvicorn access logs).

- **format_utils.py**: Text helpers shared by the normalizer, the classifier
  and the embed builder (HTML stripping, truncation, hashtag extraction,
  timestamp formatting).
"""
