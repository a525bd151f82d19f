"""SQLite schema migrations for the content store."""

import sqlite3
from dataclasses import dataclass
from datetime import UTC, datetime

import structlog

from src.store.errors import MigrationError


logger = structlog.get_logger()

# Current schema version
CURRENT_VERSION = 2


@dataclass(frozen=True)
class Migration:
    """A database migration.

    Attributes:
        version: Target version after applying this migration.
        description: Human-readable description.
        up_sql: SQL to apply the migration.
    """

    version: int
    description: str
    up_sql: str


MIGRATIONS: list[Migration] = [
    Migration(
        version=1,
        description="Content items, behavior log, and favorites",
        up_sql="""
-- One table for every family; list fields are stored as JSON arrays
CREATE TABLE IF NOT EXISTS content_items (
    type TEXT NOT NULL,
    id TEXT NOT NULL,
    title TEXT NOT NULL DEFAULT '',
    summary TEXT NOT NULL DEFAULT '',
    published_at TEXT,
    tags TEXT NOT NULL DEFAULT '[]',
    authors TEXT NOT NULL DEFAULT '[]',
    company TEXT,
    status TEXT,
    is_pinned INTEGER NOT NULL DEFAULT 0,
    pinned_at TEXT,
    view_count INTEGER NOT NULL DEFAULT 0,
    favorite_count INTEGER NOT NULL DEFAULT 0,
    share_count INTEGER NOT NULL DEFAULT 0,
    comment_count INTEGER NOT NULL DEFAULT 0,
    like_count INTEGER NOT NULL DEFAULT 0,
    citation_count INTEGER NOT NULL DEFAULT 0,
    play_count INTEGER NOT NULL DEFAULT 0,
    stars_count INTEGER NOT NULL DEFAULT 0,
    forks_count INTEGER NOT NULL DEFAULT 0,
    downloads INTEGER NOT NULL DEFAULT 0,
    likes INTEGER NOT NULL DEFAULT 0,
    heat REAL NOT NULL DEFAULT 0,
    PRIMARY KEY (type, id)
);
CREATE INDEX IF NOT EXISTS idx_content_type_published
    ON content_items(type, published_at);
CREATE INDEX IF NOT EXISTS idx_content_pinned ON content_items(is_pinned);

CREATE TABLE IF NOT EXISTS behavior_log (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    action_type TEXT NOT NULL,
    content_type TEXT NOT NULL,
    content_id TEXT NOT NULL,
    created_at TEXT NOT NULL,
    metadata TEXT NOT NULL DEFAULT '{}'
);
CREATE INDEX IF NOT EXISTS idx_behavior_user_created
    ON behavior_log(user_id, created_at);

CREATE TABLE IF NOT EXISTS favorites (
    user_id TEXT NOT NULL,
    content_type TEXT NOT NULL,
    content_id TEXT NOT NULL,
    created_at TEXT NOT NULL,
    PRIMARY KEY (user_id, content_type, content_id)
);
""",
    ),
    Migration(
        version=2,
        description="Subscriptions and sync history",
        up_sql="""
CREATE TABLE IF NOT EXISTS subscriptions (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    content_type TEXT NOT NULL,
    keywords TEXT NOT NULL DEFAULT '[]',
    tags TEXT NOT NULL DEFAULT '[]',
    authors TEXT NOT NULL DEFAULT '[]',
    uploaders TEXT NOT NULL DEFAULT '[]',
    owners TEXT NOT NULL DEFAULT '[]',
    is_active INTEGER NOT NULL DEFAULT 1,
    notify_enabled INTEGER NOT NULL DEFAULT 1,
    last_sync_at TEXT,
    last_checked TEXT,
    total_matched INTEGER NOT NULL DEFAULT 0,
    new_count INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_subscriptions_user
    ON subscriptions(user_id, content_type);

CREATE TABLE IF NOT EXISTS subscription_history (
    id TEXT PRIMARY KEY,
    subscription_id TEXT NOT NULL
        REFERENCES subscriptions(id) ON DELETE CASCADE,
    sync_type TEXT NOT NULL,
    matched_count INTEGER NOT NULL,
    new_count INTEGER NOT NULL,
    status TEXT NOT NULL,
    duration_ms REAL NOT NULL,
    error_message TEXT,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_history_subscription
    ON subscription_history(subscription_id, created_at);
""",
    ),
]


def pending_migrations(current_version: int) -> list[Migration]:
    """Migrations above ``current_version``, oldest first."""
    return [m for m in MIGRATIONS if m.version > current_version]


class MigrationManager:
    """Brings a connection's schema up to ``CURRENT_VERSION``.

    Each migration runs as one script and records its version row; a
    failing script is rolled back and surfaces as ``MigrationError``.
    """

    VERSION_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL,
    description TEXT
);
"""

    def __init__(self, connection: sqlite3.Connection) -> None:
        """Wrap an open connection."""
        self._conn = connection
        self._log = logger.bind(component="store", subcomponent="migrations")

    def get_current_version(self) -> int:
        """Highest applied version; 0 for a fresh database."""
        self._conn.execute(self.VERSION_TABLE_SQL)
        self._conn.commit()
        row = self._conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
        return row[0] or 0

    def apply_migrations(self) -> list[int]:
        """Apply every pending migration.

        Returns:
            Versions applied, oldest first.

        Raises:
            MigrationError: If the database is newer than this code, or a
                migration script fails.
        """
        current = self.get_current_version()
        if current > CURRENT_VERSION:
            raise MigrationError(
                current, f"database schema is newer than supported {CURRENT_VERSION}"
            )

        applied: list[int] = []
        for migration in pending_migrations(current):
            try:
                self._conn.executescript(migration.up_sql)
                self._conn.execute(
                    "INSERT INTO schema_version (version, applied_at, description) "
                    "VALUES (?, ?, ?)",
                    (
                        migration.version,
                        datetime.now(UTC).isoformat(),
                        migration.description,
                    ),
                )
                self._conn.commit()
            except sqlite3.Error as e:
                self._conn.rollback()
                self._log.error(
                    "migration_failed", version=migration.version, error=str(e)
                )
                raise MigrationError(migration.version, str(e)) from e
            applied.append(migration.version)
            self._log.info(
                "migration_applied",
                version=migration.version,
                description=migration.description,
            )
        return applied
