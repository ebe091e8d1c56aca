"""
SQLite persistence for feedrelay.

- **db_connection.py**: One long-lived aiosqlite connection with serialised
  write transactions.
- **db_schema.py**: Table creation and schema version tracking.
"""
