"""
Low-level table access. Repositories take an open aiosqlite connection and
never manage transactions themselves.
"""
