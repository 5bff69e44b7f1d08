"""llmcli exchange log persistence.

Provides the SQLite-backed log store and the logging collaborator the
CLI hands each completed exchange to.
"""

from llmcli.persistence.database import close_db, connect_db, db_exists, init_db
from llmcli.persistence.log_store import ExchangeLogger, LogStore

__all__ = [
    "ExchangeLogger",
    "LogStore",
    "close_db",
    "connect_db",
    "db_exists",
    "init_db",
]
