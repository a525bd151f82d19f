"""CLI commands for the feed ranking engine."""

import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import click
import structlog
from pydantic import TypeAdapter, ValidationError

from src.config.loader import ConfigValidationError, load_engine_config
from src.config.schemas.engine import EngineConfig
from src.discovery.models import DiscoveryType, SortType
from src.engine.engine import ContentEngine
from src.feed.models import FeedTab
from src.observability.logging import configure_logging
from src.settings.app import get_settings
from src.store.errors import StoreError, SubscriptionNotFoundError
from src.store.models import ContentItem
from src.store.sqlite import SqliteStore


logger = structlog.get_logger()


@dataclass
class CliContext:
    """Options shared by every command."""

    db_path: Path
    config_path: Path | None
    max_workers: int


def _echo_json(payload: Any) -> None:
    click.echo(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def _load_config(config_path: Path | None) -> EngineConfig:
    """Load engine config, exiting with formatted errors on failure."""
    try:
        return load_engine_config(config_path).config
    except ConfigValidationError as e:
        click.echo("Configuration validation failed:", err=True)
        click.echo(e.format(), err=True)
        sys.exit(1)


def _open_engine(ctx: CliContext, auto_sync: bool = False) -> tuple[SqliteStore, ContentEngine]:
    config = _load_config(ctx.config_path)
    store = SqliteStore(db_path=ctx.db_path)
    store.connect()
    engine = ContentEngine.from_sqlite(
        store, config=config, max_workers=ctx.max_workers, auto_sync=auto_sync
    )
    return store, engine


@click.group()
@click.version_option(version="0.1.0")
@click.option(
    "--db",
    "db_path",
    type=click.Path(path_type=Path),
    default=None,
    help="Path to SQLite database (default: FEEDRANK_DB_PATH).",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Path to engine YAML configuration (default: FEEDRANK_CONFIG_PATH).",
)
@click.option("--json-logs/--text-logs", default=None, help="Log output format.")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(
    ctx: click.Context,
    db_path: Path | None,
    config_path: Path | None,
    json_logs: bool | None,
    verbose: bool,
) -> None:
    """Feed ranking and subscription engine CLI."""
    settings = get_settings()
    level = logging.DEBUG if verbose else settings.log_level
    configure_logging(
        level=level,
        json_format=settings.log_json if json_logs is None else json_logs,
    )
    ctx.obj = CliContext(
        db_path=db_path or settings.db_path,
        config_path=config_path or settings.config_path,
        max_workers=settings.max_workers,
    )


@cli.command("sync-subscriptions")
@click.option(
    "--id",
    "subscription_id",
    default=None,
    help="Sync a single subscription instead of every active one.",
)
@click.pass_obj
def sync_subscriptions(ctx: CliContext, subscription_id: str | None) -> None:
    """Re-evaluate subscriptions and refresh their counters.

    Without --id every active subscription is synced in turn; failures are
    counted and the command exits 1 if any sync failed.
    """
    store, engine = _open_engine(ctx)
    try:
        if subscription_id:
            try:
                result = engine.sync_subscription(subscription_id)
            except SubscriptionNotFoundError as e:
                click.echo(f"Error: {e}", err=True)
                sys.exit(1)
            except (StoreError, ValidationError) as e:
                click.echo(f"Sync failed: {e}", err=True)
                sys.exit(1)
            _echo_json(result.model_dump(mode="json"))
            return

        report = engine.subscriptions.sync_all_active()
        _echo_json(report.model_dump(mode="json"))
        if report.failed:
            sys.exit(1)
    finally:
        engine.close()
        store.close()


@cli.command()
@click.option(
    "--tab",
    type=click.Choice([t.value for t in FeedTab]),
    default=FeedTab.RECOMMEND.value,
    show_default=True,
)
@click.option("--skip", type=int, default=0, show_default=True)
@click.option("--take", type=int, default=20, show_default=True)
@click.option("--user", "user_id", default=None, help="Personalize for this user.")
@click.pass_obj
def feed(ctx: CliContext, tab: str, skip: int, take: int, user_id: str | None) -> None:
    """Compose a feed page and print it as JSON."""
    store, engine = _open_engine(ctx)
    try:
        try:
            page = engine.compose_feed(tab, skip=skip, take=take, user_id=user_id)
        except StoreError as e:
            click.echo(f"Feed failed: {e}", err=True)
            sys.exit(1)
        _echo_json(page.model_dump(mode="json"))
    finally:
        engine.close()
        store.close()


@cli.command()
@click.option(
    "--type",
    "content_type",
    type=click.Choice([t.value for t in DiscoveryType]),
    default=DiscoveryType.ALL.value,
    show_default=True,
)
@click.option(
    "--sort",
    "sort_type",
    type=click.Choice([s.value for s in SortType]),
    default=SortType.HOT.value,
    show_default=True,
)
@click.option("--skip", type=int, default=0, show_default=True)
@click.option("--take", type=int, default=20, show_default=True)
@click.pass_obj
def discover(
    ctx: CliContext, content_type: str, sort_type: str, skip: int, take: int
) -> None:
    """Compose a discovery page and print it as JSON."""
    store, engine = _open_engine(ctx)
    try:
        page = engine.compose_discovery(content_type, sort_type, skip, take)
        _echo_json(page.model_dump(mode="json"))
    finally:
        engine.close()
        store.close()


@cli.command("load-items")
@click.argument("items_path", type=click.Path(exists=True, path_type=Path))
@click.pass_obj
def load_items(ctx: CliContext, items_path: Path) -> None:
    """Upsert content items from a JSON array file."""
    try:
        raw = json.loads(items_path.read_text(encoding="utf-8"))
        items = TypeAdapter(list[ContentItem]).validate_python(raw)
    except (json.JSONDecodeError, ValidationError) as e:
        click.echo(f"Invalid items file: {e}", err=True)
        sys.exit(1)

    with SqliteStore(db_path=ctx.db_path) as store:
        written = store.upsert_items(items)
    logger.info("items_loaded", path=str(items_path), items=written)
    click.echo(f"Loaded {written} items into {ctx.db_path}")


@cli.command("validate-config")
@click.pass_obj
def validate_config(ctx: CliContext) -> None:
    """Validate the engine configuration file."""
    if ctx.config_path is None:
        click.echo("No configuration file given; built-in defaults apply.")
        return
    try:
        loaded = load_engine_config(ctx.config_path)
    except ConfigValidationError as e:
        click.echo("Configuration validation failed:", err=True)
        click.echo(e.format(), err=True)
        sys.exit(1)
    click.echo("Configuration is valid!")
    click.echo(f"  Checksum: {loaded.checksum}")


@cli.command("db-stats")
@click.option(
    "--json",
    "json_output",
    is_flag=True,
    help="Output as JSON.",
)
@click.pass_obj
def db_stats(ctx: CliContext, json_output: bool) -> None:
    """Display database statistics.

    Shows row counts for all tables and the schema version.
    """
    with SqliteStore(db_path=ctx.db_path) as store:
        stats = store.get_stats()
        schema_version = store.get_schema_version()

    if json_output:
        _echo_json({"schema_version": schema_version, "tables": stats})
        return

    click.echo("Database Statistics")
    click.echo("=" * 40)
    click.echo(f"  Schema Version: {schema_version}")
    click.echo("")
    click.echo("Table Row Counts:")
    for table, count in stats.items():
        click.echo(f"  {table}: {count}")


def main() -> None:
    """Entry point for the feedrank command."""
    cli()


if __name__ == "__main__":
    main()
