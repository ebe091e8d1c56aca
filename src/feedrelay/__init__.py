"""
feedrelay: webhook ingestion and content-moderation relay.

Accepts feed-update notifications and operator submissions over HTTP,
authenticates, rate-limits, validates and normalizes them, classifies the
content for age-restricted topics, deduplicates against already posted items
and forwards what qualifies to a Discord channel.
"""

__version__ = "1.0.0"
