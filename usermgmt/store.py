"""SQLite-backed key-value record store.

Each record is kept as one JSON document keyed by its primary key. The store
only knows about keys and documents; filtering happens client-side while
scanning, so every non-key lookup touches every record.
"""
from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional

from .errors import StoreClientError, StoreError, StoreServiceError

logger = logging.getLogger("usermgmt.store")

Item = Dict[str, Any]
Predicate = Callable[[Item], bool]

DEFAULT_TABLE_NAME = "users"
DEFAULT_BUSY_TIMEOUT = 5.0


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def resolve_database_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the record store."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / "users.sqlite3").resolve(strict=False)


def _translate_error(exc: sqlite3.Error) -> StoreError:
    message = str(exc) or exc.__class__.__name__
    lowered = message.lower()
    if isinstance(exc, sqlite3.OperationalError):
        if "locked" in lowered or "busy" in lowered:
            return StoreServiceError(f"Record store is busy: {message}", 503)
        if "readonly" in lowered or "read-only" in lowered:
            return StoreServiceError(f"Record store rejected the write: {message}", 403)
    return StoreClientError(f"Record store request failed: {message}")


class RecordStore:
    """Key-value table of JSON documents stored in SQLite."""

    def __init__(
        self,
        path: Path,
        *,
        table_name: str = DEFAULT_TABLE_NAME,
        busy_timeout: float = DEFAULT_BUSY_TIMEOUT,
    ) -> None:
        if not table_name.isidentifier():
            raise ValueError(f"Invalid table name: {table_name!r}")
        _ensure_directory(path)
        self._path = path
        self._table = table_name
        self._busy_timeout = busy_timeout

    @property
    def path(self) -> Path:
        return self._path

    @property
    def table_name(self) -> str:
        return self._table

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(self._path, timeout=self._busy_timeout, check_same_thread=False)
        except sqlite3.Error as exc:
            logger.error("Unable to open record store at %s: %s", self._path, exc)
            raise _translate_error(exc) from exc

        conn.row_factory = sqlite3.Row
        try:
            with conn:
                yield conn
        except sqlite3.Error as exc:
            logger.error("Record store operation on %s failed: %s", self._table, exc)
            raise _translate_error(exc) from exc
        finally:
            conn.close()

    def initialize(self) -> None:
        """Create the backing table if it does not already exist."""

        with self._connect() as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self._table} (
                    key TEXT PRIMARY KEY,
                    item TEXT NOT NULL
                )
                """
            )

    # ------------------------------------------------------------------
    # Key operations
    # ------------------------------------------------------------------
    def get_item(self, key: str) -> Optional[Item]:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT key, item FROM {self._table} WHERE key = ?",
                (key,),
            ).fetchone()
        if row is None:
            return None
        return self._decode(row)

    def put_item(self, key: str, item: Item) -> None:
        """Insert or replace the document stored under ``key``."""

        payload = self._encode(key, item)
        with self._connect() as conn:
            conn.execute(
                f"""
                INSERT INTO {self._table} (key, item) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET item = excluded.item
                """,
                (key, payload),
            )

    def delete_item(self, key: str) -> bool:
        """Remove ``key``; returns ``True`` when a document was deleted."""

        with self._connect() as conn:
            cursor = conn.execute(f"DELETE FROM {self._table} WHERE key = ?", (key,))
            return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Scans
    # ------------------------------------------------------------------
    def scan(self, predicate: Optional[Predicate] = None) -> List[Item]:
        """Return every document, optionally filtered by ``predicate``.

        Documents come back in insertion order. A failure part way through
        raises instead of returning the documents read so far.
        """

        with self._connect() as conn:
            rows = conn.execute(f"SELECT key, item FROM {self._table} ORDER BY rowid").fetchall()

        items: List[Item] = []
        for row in rows:
            item = self._decode(row)
            if predicate is None or predicate(item):
                items.append(item)
        return items

    def count(self, predicate: Optional[Predicate] = None) -> int:
        if predicate is not None:
            return len(self.scan(predicate))
        with self._connect() as conn:
            row = conn.execute(f"SELECT COUNT(*) AS total FROM {self._table}").fetchone()
        return int(row["total"])

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _encode(self, key: str, item: Item) -> str:
        try:
            return json.dumps(item, sort_keys=True)
        except (TypeError, ValueError) as exc:
            raise StoreClientError(f"Item {key!r} could not be serialised: {exc}") from exc

    def _decode(self, row: sqlite3.Row) -> Item:
        try:
            item = json.loads(row["item"])
        except ValueError as exc:
            raise StoreClientError(f"Stored item {row['key']!r} is not valid JSON") from exc
        if not isinstance(item, dict):
            raise StoreClientError(f"Stored item {row['key']!r} is not a JSON object")
        return item


__all__ = [
    "DEFAULT_BUSY_TIMEOUT",
    "DEFAULT_TABLE_NAME",
    "Item",
    "Predicate",
    "RecordStore",
    "resolve_database_path",
]
