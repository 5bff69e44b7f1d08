"""Log store for saving and listing prompt/response exchanges."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

import aiosqlite
from rich.console import Console
from rich.markup import escape

from llmcli.persistence.database import close_db, connect_db, db_exists
from llmcli.schemas.log import LogRecord

logger = logging.getLogger(__name__)


class LogStore:
    """Exchange log backed by the ``log`` table.

    Operates on an aiosqlite connection opened by database.init_db() or
    database.connect_db().
    """

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def save(self, record: LogRecord) -> int:
        """Insert one exchange and return its row id."""
        cursor = await self._db.execute(
            """
            INSERT INTO log
                (provider, system, prompt, response, model, data, timestamp)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.provider,
                record.system,
                record.prompt,
                record.response,
                record.model,
                json.dumps(record.data),
                record.timestamp.isoformat(),
            ),
        )
        await self._db.commit()
        logger.debug("Logged exchange %s (model=%s)", cursor.lastrowid, record.model)
        return cursor.lastrowid

    async def recent(self, limit: int = 20) -> list[LogRecord]:
        """Return up to ``limit`` exchanges, newest first."""
        self._db.row_factory = aiosqlite.Row
        records: list[LogRecord] = []
        async with self._db.execute(
            "SELECT * FROM log ORDER BY id DESC LIMIT ?", (limit,),
        ) as cursor:
            async for row in cursor:
                records.append(_row_to_record(row))
        return records


def _row_to_record(row: aiosqlite.Row) -> LogRecord:
    try:
        data = json.loads(row["data"]) if row["data"] else {}
    except json.JSONDecodeError:
        data = {}
    return LogRecord(
        id=row["id"],
        provider=row["provider"] or "",
        system=row["system"] or "",
        prompt=row["prompt"] or "",
        response=row["response"] or "",
        model=row["model"] or "",
        data=data if isinstance(data, dict) else {},
        timestamp=datetime.fromisoformat(row["timestamp"]),
    )


class ExchangeLogger:
    """Persists each completed exchange, or does nothing when disabled.

    Called once per invocation with the final response, whether it was
    streamed or not. A missing database is reported, not created.
    """

    def __init__(
        self,
        db_path: str | Path,
        enabled: bool = True,
        console: Console | None = None,
    ) -> None:
        self._db_path = db_path
        self._enabled = enabled
        self._console = console or Console(stderr=True)

    async def __call__(
        self,
        prompt: str,
        model: str,
        system: str,
        response: str,
        data: dict[str, Any],
    ) -> int | None:
        if not self._enabled:
            return None
        if not db_exists(self._db_path):
            logger.warning("Log database not found at %s", self._db_path)
            self._console.print(
                "[yellow]Couldn't find log database. "
                "Run `llm init-db` to create it.[/yellow]"
            )
            return None

        record = LogRecord(
            system=system,
            prompt=prompt,
            response=response,
            model=model,
            data=data,
        )
        db: aiosqlite.Connection | None = None
        try:
            db = await connect_db(self._db_path)
            return await LogStore(db).save(record)
        except aiosqlite.Error as e:
            logger.warning("Could not log exchange to %s: %s", self._db_path, e)
            self._console.print(f"[yellow]Could not log exchange:[/yellow] {escape(str(e))}")
            return None
        finally:
            if db is not None:
                await close_db(db)
