"""SQLite ledger of feed items that were already announced."""

from __future__ import annotations

import sqlite3
from collections.abc import Callable, Iterator
from contextlib import AbstractContextManager, contextmanager
from pathlib import Path
from typing import Final

from src.config.logging_config import get_logger
from src.domain.exceptions import LedgerError

logger = get_logger(__name__)

GetConnectionCallable = Callable[[], AbstractContextManager[sqlite3.Connection]]


def sqlite_connection_factory(db_path: str) -> GetConnectionCallable:
    """Build a connection factory for a database file.

    Parent directories are created on first use. Connections are closed
    when the context exits.
    """

    @contextmanager
    def get_conn() -> Iterator[sqlite3.Connection]:
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(db_path)
        try:
            yield conn
        finally:
            conn.close()

    return get_conn


class SQLiteProcessedLedger:
    """Persistence layer for processed feed item ids."""

    _TABLE_NAME: Final[str] = "processed_posts"

    def __init__(self, get_conn: GetConnectionCallable) -> None:
        """Initialize the ledger and create its table if needed.

        Args:
            get_conn: Callable returning a context manager that yields a database connection.

        Raises:
            LedgerError: If the table cannot be created
        """
        self._get_conn = get_conn
        self._ensure_schema()

    @classmethod
    def from_path(cls, db_path: str) -> SQLiteProcessedLedger:
        return cls(sqlite_connection_factory(db_path))

    def exists(self, item_id: str) -> bool:
        """Check whether an item was already announced.

        Raises:
            LedgerError: On storage errors
        """
        try:
            with self._get_conn() as conn:
                row = conn.execute(
                    f"SELECT 1 FROM {self._TABLE_NAME} WHERE post_id = ?",
                    (item_id,),
                ).fetchone()
        except sqlite3.Error as error:
            raise LedgerError(f"Failed to query ledger: {error}") from error
        return row is not None

    def mark_processed(self, item_id: str) -> None:
        """Record an item as announced. Recording twice is a no-op.

        Raises:
            LedgerError: On storage errors
        """
        try:
            with self._get_conn() as conn:
                conn.execute(
                    f"INSERT OR IGNORE INTO {self._TABLE_NAME} (post_id) VALUES (?)",
                    (item_id,),
                )
                conn.commit()
        except sqlite3.Error as error:
            raise LedgerError(f"Failed to record item: {error}") from error
        logger.debug("ledger_item_recorded", item_id=item_id)

    def _ensure_schema(self) -> None:
        try:
            with self._get_conn() as conn:
                conn.execute(
                    f"CREATE TABLE IF NOT EXISTS {self._TABLE_NAME} "
                    "(post_id TEXT PRIMARY KEY)"
                )
                conn.commit()
        except sqlite3.Error as error:
            raise LedgerError(f"Failed to initialize ledger: {error}") from error
