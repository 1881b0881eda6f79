"""SQLite-based record store for pages and blocks.

One database file holds every owner's pages and blocks. Owner scoping is
applied to every statement here, the same way row-level policies would be
applied by a hosted store: a collection opened for owner A can neither see
nor write owner B's rows.

Deleting a page cascades to its descendant pages and to the blocks of all
of them through ``ON DELETE CASCADE`` foreign keys; the engine does not rely
on this store to report what the cascade removed.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterator, TypeVar
from uuid import uuid4

import tenacity

from ..errors import NotFoundError, QuireError, StoreError
from ..models import BlockType
from ..settings import db_path as default_db_path
from ..settings import settings
from .base import RecordCollection, RecordStore, Row

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Schema version for migrations
# v1: pages and blocks tables
SCHEMA_VERSION = 1

_BLOCK_TYPES_SQL = ", ".join(f"'{t.value}'" for t in BlockType)

_SCHEMA = f"""
    -- Schema version tracking
    CREATE TABLE IF NOT EXISTS schema_version (
        version INTEGER PRIMARY KEY
    );

    -- Pages: one forest per owner
    CREATE TABLE IF NOT EXISTS pages (
        id TEXT PRIMARY KEY,
        owner_id TEXT NOT NULL,
        title TEXT NOT NULL DEFAULT 'Untitled',
        icon TEXT,
        cover_image TEXT,
        parent_id TEXT REFERENCES pages(id) ON DELETE CASCADE,
        is_favorite INTEGER NOT NULL DEFAULT 0,
        position INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    );

    -- Blocks: ordered content of one page
    CREATE TABLE IF NOT EXISTS blocks (
        id TEXT PRIMARY KEY,
        page_id TEXT NOT NULL REFERENCES pages(id) ON DELETE CASCADE,
        type TEXT NOT NULL DEFAULT 'paragraph' CHECK (type IN ({_BLOCK_TYPES_SQL})),
        content TEXT NOT NULL DEFAULT '',
        checked INTEGER NOT NULL DEFAULT 0,
        position INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_pages_owner_id ON pages(owner_id);
    CREATE INDEX IF NOT EXISTS idx_pages_parent_id ON pages(parent_id);
    CREATE INDEX IF NOT EXISTS idx_blocks_page_id ON blocks(page_id);
    CREATE INDEX IF NOT EXISTS idx_blocks_position ON blocks(page_id, position);
"""


def _now_iso() -> str:
    """Get current UTC timestamp in ISO format."""
    return datetime.now(timezone.utc).isoformat()


def _new_id(prefix: str) -> str:
    """Generate a new unique ID with prefix."""
    return f"{prefix}-{uuid4().hex[:12]}"


def _is_transient(exc: BaseException) -> bool:
    """Lock contention is worth retrying; everything else is not."""
    if not isinstance(exc, sqlite3.OperationalError):
        return False
    message = str(exc).lower()
    return "locked" in message or "busy" in message


def _init_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(_SCHEMA)
    row = conn.execute("SELECT version FROM schema_version LIMIT 1").fetchone()
    if row is None:
        conn.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
    elif row[0] > SCHEMA_VERSION:
        logger.warning(
            "Database schema v%d is newer than this build (v%d)", row[0], SCHEMA_VERSION
        )


class SqliteStore(RecordStore):
    """Owner-scoped page/block storage in a single SQLite file."""

    def __init__(
        self,
        db_path: Path | str | None = None,
        *,
        retry_attempts: int | None = None,
        busy_timeout: float | None = None,
    ) -> None:
        self.db_path = Path(db_path) if db_path is not None else default_db_path()
        self.retry_attempts = retry_attempts or settings.store_retry_attempts
        self.busy_timeout = settings.store_busy_timeout if busy_timeout is None else busy_timeout
        # Thread-local storage for connections
        self._local = threading.local()
        self._connections: list[sqlite3.Connection] = []
        self._lock = threading.Lock()

    # -------------------------------------------------------------------------
    # Connection management
    # -------------------------------------------------------------------------

    def _get_connection(self) -> sqlite3.Connection:
        """Get this thread's connection, creating the schema on first use."""
        conn = getattr(self._local, "conn", None)
        if conn is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(
                str(self.db_path),
                timeout=self.busy_timeout,
                check_same_thread=False,
            )
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys = ON")
            conn.execute("PRAGMA journal_mode = WAL")
            _init_schema(conn)
            conn.commit()
            self._local.conn = conn
            with self._lock:
                self._connections.append(conn)
            logger.debug("Opened %s", self.db_path)
        return conn

    def close(self) -> None:
        """Close every connection this store opened."""
        with self._lock:
            connections, self._connections = self._connections, []
        for conn in connections:
            conn.close()
        self._local = threading.local()

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database transactions."""
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    def _retrying(self) -> tenacity.Retrying:
        return tenacity.Retrying(
            stop=tenacity.stop_after_attempt(self.retry_attempts),
            wait=tenacity.wait_exponential(multiplier=0.05, min=0.05, max=1),
            retry=tenacity.retry_if_exception(_is_transient),
            before_sleep=lambda retry_state: logger.debug(
                "Retrying store call (attempt %d) after error: %s",
                retry_state.attempt_number,
                retry_state.outcome.exception() if retry_state.outcome else "unknown",
            ),
            reraise=True,
        )

    def run(self, operation: str, table: str, func: Callable[[sqlite3.Connection], T]) -> T:
        """Run ``func`` in a transaction, retrying lock contention.

        sqlite3 errors surface as StoreError; domain errors raised by
        ``func`` (NotFoundError, StoreError) pass through unchanged.
        """

        def _execute() -> T:
            with self._transaction() as conn:
                return func(conn)

        try:
            return self._retrying()(_execute)
        except QuireError:
            raise
        except sqlite3.Error as exc:
            logger.error("Store %s on %s failed: %s", operation, table, exc)
            raise StoreError(
                f"{operation} on {table} failed: {exc}",
                operation=operation,
                table=table,
                recoverable=_is_transient(exc),
            ) from exc

    # -------------------------------------------------------------------------
    # Collections
    # -------------------------------------------------------------------------

    def pages(self, owner_id: str | None) -> PageRecords:
        return PageRecords(self, owner_id)

    def blocks(self, owner_id: str | None) -> BlockRecords:
        return BlockRecords(self, owner_id)


class _SqliteCollection(RecordCollection):
    """Shared select/insert/update/delete logic for one scoped table."""

    table: str = ""
    id_prefix: str = ""
    columns: tuple[str, ...] = ()
    insertable: frozenset[str] = frozenset()
    writable: frozenset[str] = frozenset()
    bool_columns: frozenset[str] = frozenset()

    def __init__(self, store: SqliteStore, owner_id: str | None) -> None:
        self._store = store
        self.owner_id = owner_id

    def _scope(self) -> tuple[str, list[Any]]:
        """WHERE fragment limiting rows to the owner."""
        raise NotImplementedError

    def _check_write(self, conn: sqlite3.Connection, row: Row, operation: str) -> None:
        """Reject writes that would reach outside the owner's rows."""

    def _denied(self, operation: str, reason: str) -> StoreError:
        logger.warning("Denied %s on %s for owner %s: %s", operation, self.table, self.owner_id, reason)
        return StoreError(
            f"{operation} on {self.table} denied: {reason}",
            operation=operation,
            table=self.table,
        )

    def _to_db(self, key: str, value: Any) -> Any:
        if key in self.bool_columns:
            return 1 if value else 0
        if isinstance(value, Enum):
            return value.value
        return value

    def _row(self, row: sqlite3.Row) -> Row:
        data = {key: row[key] for key in self.columns}
        for key in self.bool_columns:
            data[key] = bool(data[key])
        return data

    def _fetch(self, conn: sqlite3.Connection, row_id: str) -> Row | None:
        scope, params = self._scope()
        cursor = conn.execute(
            f"SELECT {', '.join(self.columns)} FROM {self.table} WHERE id = ? AND {scope}",
            [row_id, *params],
        )
        row = cursor.fetchone()
        return self._row(row) if row else None

    def select(self, filters: dict[str, Any] | None = None, order_by: str = "position") -> list[Row]:
        if order_by not in self.columns:
            raise ValueError(f"Cannot order {self.table} by {order_by!r}")

        scope, params = self._scope()
        conditions = [scope]
        for key, value in (filters or {}).items():
            if key not in self.columns:
                raise ValueError(f"Unknown {self.table} column: {key!r}")
            if value is None:
                conditions.append(f"{key} IS NULL")
            else:
                conditions.append(f"{key} = ?")
                params.append(self._to_db(key, value))

        # rowid breaks position ties in insertion order
        sql = (
            f"SELECT {', '.join(self.columns)} FROM {self.table} "
            f"WHERE {' AND '.join(conditions)} ORDER BY {order_by} ASC, rowid ASC"
        )
        return self._store.run(
            "select", self.table,
            lambda conn: [self._row(row) for row in conn.execute(sql, params)],
        )

    def insert(self, row: Row) -> Row:
        unknown = set(row) - self.insertable
        if unknown:
            raise ValueError(f"Cannot insert {self.table} columns: {sorted(unknown)}")

        def _insert(conn: sqlite3.Connection) -> Row:
            self._check_write(conn, row, "insert")
            now = _now_iso()
            record = self._prepare_insert(row)
            record.update({"id": _new_id(self.id_prefix), "created_at": now, "updated_at": now})
            keys = list(record)
            conn.execute(
                f"INSERT INTO {self.table} ({', '.join(keys)}) VALUES ({', '.join('?' for _ in keys)})",
                [self._to_db(k, record[k]) for k in keys],
            )
            stored = self._fetch(conn, record["id"])
            if stored is None:
                raise self._denied("insert", "row not visible to owner after insert")
            return stored

        return self._store.run("insert", self.table, _insert)

    def _prepare_insert(self, row: Row) -> Row:
        return dict(row)

    def update(self, row_id: str, partial: Row) -> Row:
        unknown = set(partial) - self.writable
        if unknown:
            raise ValueError(f"Cannot update {self.table} columns: {sorted(unknown)}")

        def _update(conn: sqlite3.Connection) -> Row:
            self._check_write(conn, partial, "update")
            # SAFETY: column names come from self.writable only.
            assignments = ["updated_at = ?"]
            params: list[Any] = [_now_iso()]
            for key, value in partial.items():
                assignments.append(f"{key} = ?")
                params.append(self._to_db(key, value))

            scope, scope_params = self._scope()
            cursor = conn.execute(
                f"UPDATE {self.table} SET {', '.join(assignments)} WHERE id = ? AND {scope}",
                [*params, row_id, *scope_params],
            )
            if cursor.rowcount == 0:
                raise NotFoundError(
                    f"{self.table[:-1].capitalize()} not found: {row_id}",
                    resource_type=self.table[:-1],
                    resource_id=row_id,
                )
            stored = self._fetch(conn, row_id)
            assert stored is not None
            return stored

        return self._store.run("update", self.table, _update)

    def delete_by_id(self, row_id: str) -> bool:
        scope, params = self._scope()

        def _delete(conn: sqlite3.Connection) -> bool:
            cursor = conn.execute(
                f"DELETE FROM {self.table} WHERE id = ? AND {scope}",
                [row_id, *params],
            )
            return cursor.rowcount > 0

        return self._store.run("delete", self.table, _delete)


class PageRecords(_SqliteCollection):
    table = "pages"
    id_prefix = "page"
    columns = (
        "id", "owner_id", "title", "icon", "cover_image", "parent_id",
        "is_favorite", "position", "created_at", "updated_at",
    )
    writable = frozenset({"title", "icon", "cover_image", "parent_id", "is_favorite", "position"})
    insertable = writable | {"owner_id"}
    bool_columns = frozenset({"is_favorite"})

    def _scope(self) -> tuple[str, list[Any]]:
        if not self.owner_id:
            return "0", []
        return "owner_id = ?", [self.owner_id]

    def _check_write(self, conn: sqlite3.Connection, row: Row, operation: str) -> None:
        if not self.owner_id:
            raise self._denied(operation, "no owner")
        if row.get("owner_id") not in (None, self.owner_id):
            raise self._denied(operation, "owner mismatch")
        parent_id = row.get("parent_id")
        if parent_id is not None:
            found = conn.execute(
                "SELECT 1 FROM pages WHERE id = ? AND owner_id = ?",
                (parent_id, self.owner_id),
            ).fetchone()
            if not found:
                raise self._denied(operation, f"parent page {parent_id} not owned")

    def _prepare_insert(self, row: Row) -> Row:
        record = dict(row)
        record["owner_id"] = self.owner_id
        record.setdefault("title", "Untitled")
        return record


class BlockRecords(_SqliteCollection):
    table = "blocks"
    id_prefix = "block"
    columns = (
        "id", "page_id", "type", "content", "checked", "position",
        "created_at", "updated_at",
    )
    writable = frozenset({"type", "content", "checked", "position"})
    insertable = writable | {"page_id"}
    bool_columns = frozenset({"checked"})

    def _scope(self) -> tuple[str, list[Any]]:
        if not self.owner_id:
            return "0", []
        return "page_id IN (SELECT id FROM pages WHERE owner_id = ?)", [self.owner_id]

    def _check_write(self, conn: sqlite3.Connection, row: Row, operation: str) -> None:
        if not self.owner_id:
            raise self._denied(operation, "no owner")
        if operation == "insert":
            found = conn.execute(
                "SELECT 1 FROM pages WHERE id = ? AND owner_id = ?",
                (row.get("page_id"), self.owner_id),
            ).fetchone()
            if not found:
                raise self._denied(operation, f"page {row.get('page_id')} not owned")
