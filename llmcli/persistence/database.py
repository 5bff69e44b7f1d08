"""SQLite database layer for the exchange log.

Manages the SQLite connection and schema creation. Uses aiosqlite so the
log write happens on the same event loop as the request.
"""

from __future__ import annotations

import logging
from pathlib import Path

import aiosqlite

logger = logging.getLogger(__name__)

# SQL schema for the log database
_SCHEMA = """
CREATE TABLE IF NOT EXISTS log (
    id        INTEGER PRIMARY KEY AUTOINCREMENT,
    provider  TEXT,
    system    TEXT,
    prompt    TEXT,
    response  TEXT,
    model     TEXT,
    data      TEXT,
    timestamp TEXT
);

CREATE INDEX IF NOT EXISTS idx_log_timestamp ON log(timestamp);
"""


def db_exists(db_path: str | Path) -> bool:
    """Return True if the log database file is present."""
    return Path(db_path).expanduser().is_file()


async def init_db(db_path: str | Path) -> aiosqlite.Connection:
    """Open the database, creating the file and tables if needed.

    Args:
        db_path: Path to the SQLite database file. Supports ~ expansion.

    Returns:
        An open aiosqlite connection ready for use.
    """
    resolved = Path(db_path).expanduser()
    resolved.parent.mkdir(parents=True, exist_ok=True)

    db = await aiosqlite.connect(str(resolved))
    await db.executescript(_SCHEMA)
    await db.commit()

    logger.info("Log database initialized at %s", resolved)
    return db


async def connect_db(db_path: str | Path) -> aiosqlite.Connection:
    """Open an existing log database without touching its schema."""
    return await aiosqlite.connect(str(Path(db_path).expanduser()))


async def close_db(db: aiosqlite.Connection) -> None:
    """Close the database connection."""
    await db.close()
