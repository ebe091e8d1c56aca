"""
Persistent record of posts that have been delivered.

Timestamps are stored as INTEGER unix seconds so comparisons are trivial and
no string parsing or timezone conversion is needed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import aiosqlite

from feedrelay.util.logger import get_logger

logger = get_logger("processed_posts_repo")


@dataclass
class ProcessedPostRecord:
    """A single row from the ``processed_posts`` table."""
    post_id: str
    source_type: str
    message_id: Optional[int]
    channel_id: Optional[int]
    requires_age_gate: bool
    processed_at: int   # unix seconds (UTC)


class ProcessedPostsRepo:
    """Low-level CRUD for the ``processed_posts`` table."""

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @staticmethod
    async def insert_if_absent(conn: aiosqlite.Connection, record: ProcessedPostRecord) -> bool:
        """Insert the row unless ``post_id`` is already present.

        Returns:
            True if a row was inserted, False if the post was already recorded.
        """
        cursor = await conn.execute(
            """
            INSERT OR IGNORE INTO processed_posts
                (post_id, source_type, message_id, channel_id, requires_age_gate, processed_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                record.post_id,
                record.source_type,
                record.message_id,
                record.channel_id,
                int(record.requires_age_gate),
                record.processed_at,
            ),
        )
        return cursor.rowcount > 0

    @staticmethod
    async def delete_older_than(conn: aiosqlite.Connection, cutoff: int) -> int:
        """Delete rows processed before ``cutoff`` (unix seconds); return the count."""
        cursor = await conn.execute("DELETE FROM processed_posts WHERE processed_at < ?", (cutoff,))
        return cursor.rowcount

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    async def exists(conn: aiosqlite.Connection, post_id: str) -> bool:
        cursor = await conn.execute("SELECT 1 FROM processed_posts WHERE post_id = ? LIMIT 1", (post_id,))
        return await cursor.fetchone() is not None

    @staticmethod
    async def count(conn: aiosqlite.Connection) -> int:
        cursor = await conn.execute("SELECT COUNT(*) FROM processed_posts")
        row = await cursor.fetchone()
        return int(row[0]) if row else 0

    @staticmethod
    async def count_since(conn: aiosqlite.Connection, since: int) -> int:
        """Number of posts processed at or after ``since`` (unix seconds)."""
        cursor = await conn.execute("SELECT COUNT(*) FROM processed_posts WHERE processed_at >= ?", (since,))
        row = await cursor.fetchone()
        return int(row[0]) if row else 0

    @staticmethod
    async def last_processed_at(conn: aiosqlite.Connection) -> Optional[int]:
        cursor = await conn.execute("SELECT MAX(processed_at) FROM processed_posts")
        row = await cursor.fetchone()
        return int(row[0]) if row and row[0] is not None else None
