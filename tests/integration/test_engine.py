"""End-to-end tests for the engine and CLI over SQLite."""

import json
from collections.abc import Generator
from pathlib import Path

import pytest
from click.testing import CliRunner

from src.cli.main import cli
from src.engine import ContentEngine
from src.feed.metrics import FeedMetrics
from src.store.metrics import StoreMetrics
from src.store.models import (
    BehaviorAction,
    ContentType,
    SyncStatus,
    SyncType,
    UserBehaviorRecord,
)
from src.store.sqlite import SqliteStore
from src.subscription.metrics import SyncMetrics
from tests.helpers.factories import make_family, make_item
from tests.helpers.time import FIXED_NOW, hours_ago


@pytest.fixture(autouse=True)
def fresh_metrics() -> Generator[None]:
    """Reset metrics singletons around each test."""
    for metrics in (FeedMetrics, StoreMetrics, SyncMetrics):
        metrics.reset()
    yield
    for metrics in (FeedMetrics, StoreMetrics, SyncMetrics):
        metrics.reset()


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    """Database seeded with every family plus pinned news."""
    path = tmp_path / "feedrank.sqlite"
    items = [item for ct in ContentType for item in make_family(ct, 8)]
    items.append(
        make_item(
            ContentType.PAPER,
            "llm",
            title="Large language model agents",
            published_at=hours_ago(3),
        )
    )
    items.append(make_item(ContentType.NEWS, "top", is_pinned=True, pinned_at=FIXED_NOW))
    with SqliteStore(path) as store:
        store.upsert_items(items)
    return path


@pytest.fixture
def store(db_path: Path) -> Generator[SqliteStore]:
    """Connected store over the seeded database."""
    with SqliteStore(db_path) as store:
        yield store


class TestEngineOverSqlite:
    """Tests for ContentEngine.from_sqlite."""

    def test_subscription_lifecycle(self, store: SqliteStore) -> None:
        """Test create, sync and content lookup against SQLite."""
        with ContentEngine.from_sqlite(store, now=FIXED_NOW, auto_sync=False) as engine:
            sub = engine.subscriptions.create(
                "user-1", "paper", keywords=["language model"]
            )
            result = engine.sync_subscription(sub.id)
            content = engine.get_subscribed_content("user-1", ContentType.PAPER)

        assert result.matched_count == 1
        assert result.new_count == 1
        assert [i.id for i in content.items] == ["llm"]

        history = store.subscriptions().list_history(sub.id)
        assert [(h.sync_type, h.status) for h in history] == [
            (SyncType.MANUAL, SyncStatus.SUCCESS)
        ]
        stored = store.subscriptions().get(sub.id)
        assert stored is not None
        assert stored.total_matched == 1

    def test_auto_sync_on_create(self, store: SqliteStore) -> None:
        """Test the background sync has run once the engine is closed."""
        with ContentEngine.from_sqlite(store, now=FIXED_NOW) as engine:
            sub = engine.subscriptions.create("user-1", "paper", keywords=["agents"])

        history = store.subscriptions().list_history(sub.id)
        assert [h.sync_type for h in history] == [SyncType.AUTO]

    def test_personalized_feed(self, store: SqliteStore) -> None:
        """Test a user with history gets a bounded page of unique items."""
        store.append_behavior(
            UserBehaviorRecord(
                user_id="u1",
                action_type=BehaviorAction.VIEW,
                content_type=ContentType.REPO,
                content_id="r0",
                created_at=hours_ago(2),
            )
        )
        with ContentEngine.from_sqlite(store, now=FIXED_NOW, auto_sync=False) as engine:
            page = engine.compose_feed("recommend", take=10, user_id="u1")

        keys = [i.key for i in page.items]
        assert 0 < len(keys) <= 10
        assert len(set(keys)) == len(keys)

    def test_discovery_all(self, store: SqliteStore) -> None:
        """Test the mixed page totals every mixed family."""
        with ContentEngine.from_sqlite(store, now=FIXED_NOW, auto_sync=False) as engine:
            page = engine.compose_discovery("all", "latest", take=6)

        assert len(page.items) == 6
        assert page.total == 6 * 8 + 1 + 1
        assert [p.content_id for p in page.pinned_items] == ["top"]


class TestCli:
    """Tests for the click commands."""

    @pytest.fixture
    def runner(self, monkeypatch: pytest.MonkeyPatch) -> CliRunner:
        """Runner with text logs and no config file."""
        monkeypatch.delenv("FEEDRANK_CONFIG_PATH", raising=False)
        monkeypatch.setenv("FEEDRANK_LOG_JSON", "false")
        return CliRunner()

    def test_db_stats(self, runner: CliRunner, db_path: Path) -> None:
        """Test stats report seeded row counts."""
        result = runner.invoke(cli, ["--db", str(db_path), "db-stats", "--json"])

        assert result.exit_code == 0, result.output
        payload = json.loads(result.output)
        assert payload["tables"]["content_items"] == 7 * 8 + 2

    def test_feed_direct_tab(self, runner: CliRunner, db_path: Path) -> None:
        """Test the feed command prints a page."""
        result = runner.invoke(
            cli, ["--db", str(db_path), "feed", "--tab", "huggingface", "--take", "3"]
        )

        assert result.exit_code == 0, result.output
        payload = json.loads(result.output)
        assert payload["total"] == 8
        assert [i["id"] for i in payload["items"]] == ["m0", "m1", "m2"]

    def test_discover(self, runner: CliRunner, db_path: Path) -> None:
        """Test the discover command prints the pinned overlay."""
        result = runner.invoke(
            cli, ["--db", str(db_path), "discover", "--type", "news", "--take", "2"]
        )

        assert result.exit_code == 0, result.output
        payload = json.loads(result.output)
        assert [p["content_id"] for p in payload["pinned_items"]] == ["top"]

    def test_sync_missing_subscription(self, runner: CliRunner, db_path: Path) -> None:
        """Test syncing an unknown id exits 1."""
        result = runner.invoke(
            cli, ["--db", str(db_path), "sync-subscriptions", "--id", "ghost"]
        )
        assert result.exit_code == 1

    def test_sync_all_empty(self, runner: CliRunner, db_path: Path) -> None:
        """Test a pass with no subscriptions succeeds."""
        result = runner.invoke(cli, ["--db", str(db_path), "sync-subscriptions"])

        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["total"] == 0

    def test_load_items(self, runner: CliRunner, tmp_path: Path) -> None:
        """Test loading a JSON array of items."""
        items_path = tmp_path / "items.json"
        items_path.write_text(
            json.dumps(
                [
                    {"id": "a", "type": "paper", "title": "A", "tags": "x,y"},
                    {"id": "b", "type": "repo", "title": "B"},
                ]
            ),
            encoding="utf-8",
        )
        db = tmp_path / "load.sqlite"

        result = runner.invoke(cli, ["--db", str(db), "load-items", str(items_path)])

        assert result.exit_code == 0, result.output
        assert "Loaded 2 items" in result.output
        with SqliteStore(db) as store:
            item = store.content_store(ContentType.PAPER).find_by_ids(["a"])[0]
        assert item.tags == ["x", "y"]

    def test_load_items_invalid(self, runner: CliRunner, tmp_path: Path) -> None:
        """Test a malformed items file exits 1."""
        items_path = tmp_path / "items.json"
        items_path.write_text('[{"type": "paper"}]', encoding="utf-8")

        result = runner.invoke(
            cli, ["--db", str(tmp_path / "x.sqlite"), "load-items", str(items_path)]
        )
        assert result.exit_code == 1

    def test_validate_config(self, runner: CliRunner, tmp_path: Path) -> None:
        """Test a valid and an invalid configuration file."""
        good = tmp_path / "good.yaml"
        good.write_text("feed:\n  hot_ratio: 0.3\n", encoding="utf-8")
        bad = tmp_path / "bad.yaml"
        bad.write_text("feed:\n  unknown_knob: 1\n", encoding="utf-8")

        ok = runner.invoke(cli, ["--config", str(good), "validate-config"])
        assert ok.exit_code == 0, ok.output
        assert "Configuration is valid!" in ok.output

        failed = runner.invoke(cli, ["--config", str(bad), "validate-config"])
        assert failed.exit_code == 1
