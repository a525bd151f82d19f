"""SQLite store implementation.

One database holds every content family, the behavior log, favorites,
subscriptions and their sync history. ``SqliteStore`` owns the connection;
the adapter classes expose it through the collaborator protocols.
"""

import json
import sqlite3
import threading
import time
import uuid
from collections.abc import Generator, Iterable
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

import structlog

from src.store.errors import StoreConnectionError, SubscriptionNotFoundError
from src.store.metrics import StoreMetrics, TransactionContext
from src.store.migrations import CURRENT_VERSION, MigrationManager
from src.store.models import (
    BehaviorAction,
    ContentItem,
    ContentType,
    FavoriteRecord,
    Subscription,
    SubscriptionHistory,
    SyncStatus,
    UserBehaviorRecord,
)
from src.store.predicates import LIST_FIELDS, OrderBy, Predicate
from src.store.sql import compile_order, compile_where, to_db_timestamp


logger = structlog.get_logger()

_CONTENT_COLUMNS: tuple[str, ...] = tuple(ContentItem.model_fields)

_SUBSCRIPTION_LIST_FIELDS = ("keywords", "tags", "authors", "uploaders", "owners")


def _content_row(item: ContentItem) -> dict[str, Any]:
    row: dict[str, Any] = {}
    for name in _CONTENT_COLUMNS:
        value = getattr(item, name)
        if name in LIST_FIELDS:
            value = json.dumps(value, ensure_ascii=False)
        elif isinstance(value, ContentType):
            value = value.value
        elif isinstance(value, datetime):
            value = to_db_timestamp(value)
        elif isinstance(value, bool):
            value = int(value)
        row[name] = value
    return row


def _row_to_item(row: sqlite3.Row) -> ContentItem:
    return ContentItem(**{name: row[name] for name in _CONTENT_COLUMNS})


def _row_to_subscription(row: sqlite3.Row) -> Subscription:
    data = dict(row)
    for name in _SUBSCRIPTION_LIST_FIELDS:
        data[name] = json.loads(data[name])
    return Subscription(**data)


def _row_to_history(row: sqlite3.Row) -> SubscriptionHistory:
    return SubscriptionHistory(**dict(row))


class SqliteStore:
    """SQLite store for content, behavior, favorites and subscriptions.

    Uses WAL mode and applies schema migrations on connect. The connection
    is shared across worker threads, so every statement runs under a lock.
    """

    def __init__(self, db_path: Path | str, run_id: str | None = None) -> None:
        """Initialize the store.

        Args:
            db_path: Path to SQLite database file, or ":memory:".
            run_id: Optional run ID for logging context.
        """
        self._db_path = Path(db_path) if isinstance(db_path, str) else db_path
        self._run_id = run_id or str(uuid.uuid4())
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()
        self._metrics = StoreMetrics.get_instance()
        self._log = logger.bind(
            component="store",
            run_id=self._run_id,
            db_path=str(self._db_path),
        )

    @property
    def db_path(self) -> Path:
        """Get the database path."""
        return self._db_path

    @property
    def is_connected(self) -> bool:
        """Check if connected to database."""
        return self._conn is not None

    def connect(self) -> None:
        """Open the database connection and apply migrations."""
        if self._conn is not None:
            return

        in_memory = str(self._db_path) == ":memory:"
        if not in_memory:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)

        self._log.info("connecting_to_database")

        self._conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        if not in_memory:
            self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA synchronous=NORMAL")
        self._conn.execute("PRAGMA foreign_keys=ON")

        migration_mgr = MigrationManager(self._conn)
        old_version = migration_mgr.get_current_version()
        applied = migration_mgr.apply_migrations()

        self._log.info(
            "database_connected",
            old_version=old_version,
            new_version=CURRENT_VERSION,
            migrations_applied=applied,
        )

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            self._log.info("database_closed")

    def __enter__(self) -> "SqliteStore":
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Context manager exit."""
        self.close()

    def _ensure_connected(self) -> sqlite3.Connection:
        """Ensure database is connected.

        Returns:
            The database connection.

        Raises:
            StoreConnectionError: If not connected.
        """
        if self._conn is None:
            raise StoreConnectionError("Database not connected. Call connect() first.")
        return self._conn

    def query(self, sql: str, params: Iterable[Any] = ()) -> list[sqlite3.Row]:
        """Run a read statement and return all rows."""
        conn = self._ensure_connected()
        with self._lock:
            self._metrics.record_query()
            return conn.execute(sql, tuple(params)).fetchall()

    @contextmanager
    def transaction(
        self, operation: str
    ) -> Generator[tuple[sqlite3.Connection, TransactionContext]]:
        """Run statements in one transaction with timing and logging.

        Args:
            operation: Name of the operation for logging.

        Yields:
            The connection and the transaction context.
        """
        conn = self._ensure_connected()
        tx_id = str(uuid.uuid4())[:8]
        start_ns = time.perf_counter_ns()
        ctx = TransactionContext(
            tx_id=tx_id, start_time_ns=start_ns, operation=operation
        )

        with self._lock:
            self._log.debug("transaction_started", tx_id=tx_id, op=operation)
            try:
                yield conn, ctx
                conn.commit()
            except Exception:
                conn.rollback()
                self._metrics.record_tx_failure(operation)
                self._log.error(
                    "transaction_failed",
                    tx_id=tx_id,
                    op=operation,
                    duration_ms=round(
                        (time.perf_counter_ns() - start_ns) / 1_000_000, 2
                    ),
                )
                raise

        duration_ms = (time.perf_counter_ns() - start_ns) / 1_000_000
        self._metrics.record_tx(operation, duration_ms)
        self._log.debug(
            "transaction_complete",
            tx_id=tx_id,
            op=operation,
            affected_rows=ctx.affected_rows,
            duration_ms=round(duration_ms, 2),
        )

    # ===== Content =====

    def upsert_items(self, items: Iterable[ContentItem]) -> int:
        """Insert or replace content items.

        Args:
            items: Items to write; identity is (type, id).

        Returns:
            Number of rows written.
        """
        columns = ", ".join(_CONTENT_COLUMNS)
        placeholders = ", ".join(f":{c}" for c in _CONTENT_COLUMNS)
        updates = ", ".join(
            f"{c} = excluded.{c}" for c in _CONTENT_COLUMNS if c not in ("type", "id")
        )
        sql = (
            f"INSERT INTO content_items ({columns}) VALUES ({placeholders}) "  # noqa: S608
            f"ON CONFLICT(type, id) DO UPDATE SET {updates}"
        )
        written = 0
        with self.transaction("upsert_items") as (conn, ctx):
            for item in items:
                conn.execute(sql, _content_row(item))
                written += 1
            ctx.add_affected_rows(written)
        self._metrics.record_upsert(written)
        return written

    def content_store(self, content_type: ContentType) -> "SqliteContentStore":
        """Return the adapter for one content family."""
        return SqliteContentStore(self, content_type)

    # ===== Behavior & favorites =====

    def append_behavior(self, record: UserBehaviorRecord) -> None:
        """Append a behavior-log entry."""
        with self.transaction("append_behavior") as (conn, ctx):
            conn.execute(
                """
                INSERT INTO behavior_log
                    (user_id, action_type, content_type, content_id,
                     created_at, metadata)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    record.user_id,
                    record.action_type.value,
                    record.content_type.value,
                    record.content_id,
                    to_db_timestamp(record.created_at),
                    json.dumps(record.metadata, ensure_ascii=False),
                ),
            )
            ctx.add_affected_rows(1)

    def find_actions(
        self,
        user_id: str,
        actions: frozenset[BehaviorAction],
        since: datetime,
        limit: int,
    ) -> list[UserBehaviorRecord]:
        """Return a user's actions of the given kinds since a moment."""
        if not actions:
            return []
        marks = ", ".join("?" for _ in actions)
        rows = self.query(
            f"""
            SELECT user_id, action_type, content_type, content_id,
                   created_at, metadata
            FROM behavior_log
            WHERE user_id = ? AND action_type IN ({marks}) AND created_at >= ?
            ORDER BY created_at DESC, seq DESC
            LIMIT ?
            """,  # noqa: S608
            [
                user_id,
                *sorted(a.value for a in actions),
                to_db_timestamp(since),
                limit,
            ],
        )
        return [
            UserBehaviorRecord(
                user_id=r["user_id"],
                action_type=r["action_type"],
                content_type=r["content_type"],
                content_id=r["content_id"],
                created_at=r["created_at"],
                metadata=json.loads(r["metadata"]),
            )
            for r in rows
        ]

    def add_favorite(self, favorite: FavoriteRecord) -> None:
        """Save an item for a user (idempotent)."""
        with self.transaction("add_favorite") as (conn, ctx):
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO favorites
                    (user_id, content_type, content_id, created_at)
                VALUES (?, ?, ?, ?)
                """,
                (
                    favorite.user_id,
                    favorite.content_type.value,
                    favorite.content_id,
                    to_db_timestamp(favorite.created_at),
                ),
            )
            ctx.add_affected_rows(cursor.rowcount)

    def find_favorites(
        self,
        user_id: str,
        content_type: ContentType | None = None,
        limit: int | None = None,
    ) -> list[FavoriteRecord]:
        """Return a user's favorites, newest first."""
        sql = "SELECT * FROM favorites WHERE user_id = ?"
        params: list[Any] = [user_id]
        if content_type is not None:
            sql += " AND content_type = ?"
            params.append(content_type.value)
        sql += " ORDER BY created_at DESC"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        return [FavoriteRecord(**dict(r)) for r in self.query(sql, params)]

    def subscriptions(self) -> "SqliteSubscriptionStore":
        """Return the subscription store adapter."""
        return SqliteSubscriptionStore(self)

    # ===== Stats =====

    def get_stats(self) -> dict[str, int]:
        """Get row counts for all tables.

        Returns:
            Dictionary mapping table name to row count.
        """
        stats: dict[str, int] = {}
        for table in (
            "content_items",
            "behavior_log",
            "favorites",
            "subscriptions",
            "subscription_history",
        ):
            rows = self.query(f"SELECT COUNT(*) FROM {table}")  # noqa: S608
            stats[table] = rows[0][0]
        return stats

    def get_schema_version(self) -> int:
        """Get current schema version."""
        conn = self._ensure_connected()
        with self._lock:
            return MigrationManager(conn).get_current_version()


class SqliteContentStore:
    """Content store adapter for one family of a ``SqliteStore``."""

    def __init__(self, store: SqliteStore, content_type: ContentType) -> None:
        """Initialize the adapter.

        Args:
            store: Connected SQLite store.
            content_type: Family served by this adapter.
        """
        self._store = store
        self._content_type = content_type

    @property
    def content_type(self) -> ContentType:
        """Family served by this adapter."""
        return self._content_type

    def find_many(
        self,
        where: Predicate | None = None,
        order_by: OrderBy | None = None,
        skip: int = 0,
        take: int | None = None,
    ) -> list[ContentItem]:
        """Return matching items after ordering and slicing."""
        clause, params = compile_where(where)
        sql = (
            "SELECT * FROM content_items WHERE type = ? "  # noqa: S608
            f"AND ({clause}) ORDER BY {compile_order(order_by)} LIMIT ? OFFSET ?"
        )
        limit = -1 if take is None else take
        rows = self._store.query(
            sql, [self._content_type.value, *params, limit, skip]
        )
        return [_row_to_item(r) for r in rows]

    def count(self, where: Predicate | None = None) -> int:
        """Return the number of matching items."""
        clause, params = compile_where(where)
        rows = self._store.query(
            f"SELECT COUNT(*) FROM content_items WHERE type = ? AND ({clause})",  # noqa: S608
            [self._content_type.value, *params],
        )
        return rows[0][0]

    def find_by_ids(self, ids: list[str]) -> list[ContentItem]:
        """Return the items with the given ids."""
        if not ids:
            return []
        marks = ", ".join("?" for _ in ids)
        rows = self._store.query(
            f"SELECT * FROM content_items WHERE type = ? AND id IN ({marks}) "  # noqa: S608
            "ORDER BY rowid",
            [self._content_type.value, *ids],
        )
        return [_row_to_item(r) for r in rows]

    def upsert(self, item: ContentItem) -> ContentItem:
        """Insert or replace one item of this family.

        Raises:
            ValueError: If the item belongs to another family.
        """
        if item.type != self._content_type:
            msg = f"{item.type.value} item in {self._content_type.value} store"
            raise ValueError(msg)
        self._store.upsert_items([item])
        return item


class SqliteSubscriptionStore:
    """Subscription store adapter over a ``SqliteStore``."""

    def __init__(self, store: SqliteStore) -> None:
        """Initialize the adapter.

        Args:
            store: Connected SQLite store.
        """
        self._store = store

    @staticmethod
    def _params(subscription: Subscription) -> dict[str, Any]:
        data = subscription.model_dump()
        for name in _SUBSCRIPTION_LIST_FIELDS:
            data[name] = json.dumps(data[name], ensure_ascii=False)
        data["content_type"] = subscription.content_type.value
        data["is_active"] = int(subscription.is_active)
        data["notify_enabled"] = int(subscription.notify_enabled)
        for name in ("last_sync_at", "last_checked", "created_at", "updated_at"):
            data[name] = to_db_timestamp(data[name])
        return data

    def create(self, subscription: Subscription) -> Subscription:
        """Persist a new subscription."""
        with self._store.transaction("create_subscription") as (conn, ctx):
            conn.execute(
                """
                INSERT INTO subscriptions
                    (id, user_id, content_type, keywords, tags, authors,
                     uploaders, owners, is_active, notify_enabled,
                     last_sync_at, last_checked, total_matched, new_count,
                     created_at, updated_at)
                VALUES
                    (:id, :user_id, :content_type, :keywords, :tags, :authors,
                     :uploaders, :owners, :is_active, :notify_enabled,
                     :last_sync_at, :last_checked, :total_matched, :new_count,
                     :created_at, :updated_at)
                """,
                self._params(subscription),
            )
            ctx.add_affected_rows(1)
        return subscription

    def get(self, subscription_id: str) -> Subscription | None:
        """Look up a subscription by id."""
        rows = self._store.query(
            "SELECT * FROM subscriptions WHERE id = ?", [subscription_id]
        )
        return _row_to_subscription(rows[0]) if rows else None

    def _write(self, conn: sqlite3.Connection, subscription: Subscription) -> int:
        cursor = conn.execute(
            """
            UPDATE subscriptions SET
                user_id = :user_id, content_type = :content_type,
                keywords = :keywords, tags = :tags, authors = :authors,
                uploaders = :uploaders, owners = :owners,
                is_active = :is_active, notify_enabled = :notify_enabled,
                last_sync_at = :last_sync_at, last_checked = :last_checked,
                total_matched = :total_matched, new_count = :new_count,
                updated_at = :updated_at
            WHERE id = :id
            """,
            self._params(subscription),
        )
        return cursor.rowcount

    def update(self, subscription: Subscription) -> Subscription:
        """Replace a stored subscription.

        Raises:
            SubscriptionNotFoundError: If no row has the subscription's id.
        """
        with self._store.transaction("update_subscription") as (conn, ctx):
            changed = self._write(conn, subscription)
            if changed == 0:
                raise SubscriptionNotFoundError(subscription.id)
            ctx.add_affected_rows(changed)
        return subscription

    def delete(self, subscription_id: str) -> None:
        """Remove a subscription; history rows cascade."""
        with self._store.transaction("delete_subscription") as (conn, ctx):
            cursor = conn.execute(
                "DELETE FROM subscriptions WHERE id = ?", (subscription_id,)
            )
            ctx.add_affected_rows(cursor.rowcount)

    def list_for_user(
        self,
        user_id: str,
        content_type: ContentType | None = None,
        active_only: bool = False,
        skip: int = 0,
        take: int | None = None,
    ) -> list[Subscription]:
        """Return a user's subscriptions, newest first."""
        sql = "SELECT * FROM subscriptions WHERE user_id = ?"
        params: list[Any] = [user_id]
        if content_type is not None:
            sql += " AND content_type = ?"
            params.append(content_type.value)
        if active_only:
            sql += " AND is_active = 1"
        sql += " ORDER BY created_at DESC, rowid DESC LIMIT ? OFFSET ?"
        params.extend([-1 if take is None else take, skip])
        return [_row_to_subscription(r) for r in self._store.query(sql, params)]

    def count_for_user(
        self, user_id: str, content_type: ContentType | None = None
    ) -> int:
        """Count a user's subscriptions."""
        sql = "SELECT COUNT(*) FROM subscriptions WHERE user_id = ?"
        params: list[Any] = [user_id]
        if content_type is not None:
            sql += " AND content_type = ?"
            params.append(content_type.value)
        return self._store.query(sql, params)[0][0]

    def list_active(self) -> list[Subscription]:
        """Return every active subscription, oldest first."""
        rows = self._store.query(
            "SELECT * FROM subscriptions WHERE is_active = 1 "
            "ORDER BY created_at, rowid"
        )
        return [_row_to_subscription(r) for r in rows]

    @staticmethod
    def _insert_history(conn: sqlite3.Connection, entry: SubscriptionHistory) -> None:
        conn.execute(
            """
            INSERT INTO subscription_history
                (id, subscription_id, sync_type, matched_count, new_count,
                 status, duration_ms, error_message, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                entry.id,
                entry.subscription_id,
                entry.sync_type.value,
                entry.matched_count,
                entry.new_count,
                entry.status.value,
                entry.duration_ms,
                entry.error_message,
                to_db_timestamp(entry.created_at),
            ),
        )

    def append_history(self, entry: SubscriptionHistory) -> None:
        """Append a sync history row on its own."""
        with self._store.transaction("append_history") as (conn, ctx):
            self._insert_history(conn, entry)
            ctx.add_affected_rows(1)
        StoreMetrics.get_instance().record_history_row()

    def record_sync_success(
        self,
        entry: SubscriptionHistory,
        synced_at: datetime,
    ) -> Subscription:
        """Append a success row and update counters in one transaction.

        Raises:
            ValueError: If the entry is not a success row.
            SubscriptionNotFoundError: If the subscription no longer exists.
        """
        if entry.status != SyncStatus.SUCCESS:
            msg = "record_sync_success requires a success history entry"
            raise ValueError(msg)

        with self._store.transaction("record_sync_success") as (conn, ctx):
            row = conn.execute(
                "SELECT * FROM subscriptions WHERE id = ?",
                (entry.subscription_id,),
            ).fetchone()
            if row is None:
                raise SubscriptionNotFoundError(entry.subscription_id)
            updated = _row_to_subscription(row).model_copy(
                update={
                    "last_sync_at": synced_at,
                    "last_checked": synced_at,
                    "total_matched": entry.matched_count,
                    "new_count": entry.new_count,
                }
            )
            self._insert_history(conn, entry)
            self._write(conn, updated)
            ctx.add_affected_rows(2)

        StoreMetrics.get_instance().record_history_row()
        return updated

    def list_history(self, subscription_id: str) -> list[SubscriptionHistory]:
        """Return history rows for a subscription, oldest first."""
        rows = self._store.query(
            "SELECT * FROM subscription_history WHERE subscription_id = ? "
            "ORDER BY created_at, rowid",
            [subscription_id],
        )
        return [_row_to_history(r) for r in rows]
