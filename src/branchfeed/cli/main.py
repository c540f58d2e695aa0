"""CLI commands for the branching-story core."""

import json
import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import NoReturn

import click
import structlog

from branchfeed import __version__
from branchfeed.config import ConfigValidationError, RankingConfig, load_ranking_config
from branchfeed.observability import bind_request_context, configure_logging
from branchfeed.paths import (
    PathTracker,
    StaleTreeError,
    TrackerError,
    decode_path,
    encode_path,
)
from branchfeed.ranking import RankingEngine, RankingError, RankingResult
from branchfeed.settings import AppSettings, get_settings
from branchfeed.signals import RestSignalSource, SignalSource, StoreSignalSource
from branchfeed.store import BranchStore, MemoryProgressStore, StoryNotFoundError
from branchfeed.tree import PathValidationError, compute_path_statistics


logger = structlog.get_logger()

COMPONENT_CLI = "cli"


@dataclass
class CliContext:
    """Shared state for all commands."""

    settings: AppSettings
    request_id: str


def _echo_json(payload: object) -> None:
    click.echo(json.dumps(payload, indent=2, sort_keys=True))


def _fail(message: str) -> NoReturn:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def _load_config(settings: AppSettings) -> RankingConfig:
    try:
        return load_ranking_config(settings.ranking_config_path)
    except ConfigValidationError as e:
        click.echo("Ranking configuration validation failed:", err=True)
        for error in e.errors:
            location = error["loc"] or "<root>"
            click.echo(f"  - {location}: {error['msg']}", err=True)
        sys.exit(1)


@contextmanager
def _open_store(db_path: Path) -> Iterator[BranchStore]:
    with BranchStore(db_path=db_path) as store:
        yield store


@contextmanager
def _signal_source(
    settings: AppSettings, backend: str, db_path: Path
) -> Iterator[SignalSource]:
    if backend == "rest":
        if not settings.has_rest_backend():
            _fail("REST backend requires SUPABASE_URL and SUPABASE_KEY")
        with RestSignalSource(
            base_url=settings.rest_url or "",
            api_key=settings.rest_api_key or "",
            timeout=settings.rest_timeout_seconds,
        ) as source:
            yield source
        return

    with _open_store(db_path) as store:
        yield StoreSignalSource(store)


def _result_payload(result: RankingResult) -> dict[str, object]:
    return {
        "product": result.product.value,
        "reader_id": result.reader_id,
        "pools_used": [p.label for p in result.pools_used],
        "pools_failed": [p.label for p in result.pools_failed],
        "candidates": [
            {
                "entity_id": c.entity_id,
                "score": round(c.score, 4),
                "pool": c.pool.label,
                "reason": c.reason.value,
                "detail": c.detail,
                "metadata": c.metadata,
            }
            for c in result.candidates
        ],
    }


db_option = click.option(
    "--db",
    "db_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Path to SQLite database (defaults to BRANCHFEED_DB_PATH).",
)

backend_option = click.option(
    "--backend",
    type=click.Choice(["sqlite", "rest"]),
    default="sqlite",
    show_default=True,
    help="Signal source backend.",
)


@click.group()
@click.version_option(version=__version__)
@click.option("--log-level", default=None, help="Override BRANCHFEED_LOG_LEVEL.")
@click.option(
    "--json-logs/--console-logs",
    default=None,
    help="Log format (defaults to BRANCHFEED_LOG_JSON).",
)
@click.pass_context
def cli(ctx: click.Context, log_level: str | None, json_logs: bool | None) -> None:
    """Branching-story platform core CLI."""
    settings = get_settings()
    level_name = (log_level or settings.log_level).upper()
    configure_logging(
        level=logging.getLevelNamesMapping().get(level_name, logging.INFO),
        output=sys.stderr,
        json_format=settings.log_json if json_logs is None else json_logs,
    )
    request_id = str(uuid.uuid4())[:8]
    bind_request_context(request_id)
    ctx.obj = CliContext(settings=settings, request_id=request_id)


@cli.command("init-db")
@db_option
@click.pass_obj
def init_db(obj: CliContext, db_path: Path | None) -> None:
    """Create the database and apply migrations."""
    path = db_path or obj.settings.db_path
    with _open_store(path) as store:
        _echo_json(
            {
                "db_path": str(path),
                "schema_version": store.get_schema_version(),
                "tables": store.get_stats(),
            }
        )


@cli.command()
@db_option
@click.option("--reader", "reader_id", required=True, help="Reader identifier.")
@click.option("--story", "story_id", required=True, help="Story identifier.")
@click.option("--path", "url_token", default=None, help="Path token from a shared URL.")
@click.option(
    "--choose",
    "choices",
    multiple=True,
    help="Choice to make after initialization (repeatable, A or B).",
)
@click.pass_obj
def navigate(
    obj: CliContext,
    db_path: Path | None,
    reader_id: str,
    story_id: str,
    url_token: str | None,
    choices: tuple[str, ...],
) -> None:
    """Open a story for a reader, optionally making choices."""
    bind_request_context(obj.request_id, reader_id=reader_id)
    log = logger.bind(component=COMPONENT_CLI, command="navigate")

    with _open_store(db_path or obj.settings.db_path) as store:
        try:
            tree = store.load_tree(story_id)
        except StoryNotFoundError as e:
            _fail(str(e))

        tracker = PathTracker(
            reader_id,
            tree,
            store,
            fallback_store=MemoryProgressStore(),
            persist_attempts=obj.settings.persist_attempts,
        )
        snapshot = tracker.initialize(url_token)
        for choice in choices:
            try:
                snapshot = tracker.make_choice(choice.strip().upper())
            except (PathValidationError, StaleTreeError, TrackerError) as e:
                log.warning("navigate_choice_rejected", choice=choice, error=str(e))
                _fail(str(e))

        payload = snapshot.model_dump(mode="json")
        payload["share_url"] = tracker.share_url(obj.settings.share_base_url)
        _echo_json(payload)


@cli.command()
@db_option
@backend_option
@click.option("--reader", "reader_id", default=None, help="Reader identifier (omit for anonymous).")
@click.option("--limit", type=click.IntRange(min=0), default=None, help="Maximum results.")
@click.option("--exclude", "exclude_id", default=None, help="Story to leave out.")
@click.pass_obj
def recommend(  # noqa: PLR0913
    obj: CliContext,
    db_path: Path | None,
    backend: str,
    reader_id: str | None,
    limit: int | None,
    exclude_id: str | None,
) -> None:
    """Recommend stories for a reader."""
    config = _load_config(obj.settings)
    with _signal_source(obj.settings, backend, db_path or obj.settings.db_path) as source:
        engine = RankingEngine(
            source, config=config, max_workers=obj.settings.ranking_max_workers
        )
        try:
            result = engine.recommend_stories(reader_id, limit=limit, exclude_id=exclude_id)
        except RankingError as e:
            _fail(str(e))
    _echo_json(_result_payload(result))


@cli.command()
@db_option
@backend_option
@click.option("--reader", "reader_id", required=True, help="Reader identifier.")
@click.option("--limit", type=click.IntRange(min=0), default=None, help="Maximum results.")
@click.pass_obj
def suggest(
    obj: CliContext,
    db_path: Path | None,
    backend: str,
    reader_id: str,
    limit: int | None,
) -> None:
    """Suggest accounts for a reader to follow."""
    config = _load_config(obj.settings)
    with _signal_source(obj.settings, backend, db_path or obj.settings.db_path) as source:
        engine = RankingEngine(
            source, config=config, max_workers=obj.settings.ranking_max_workers
        )
        try:
            result = engine.suggest_follows(reader_id, limit=limit)
        except RankingError as e:
            _fail(str(e))
    _echo_json(_result_payload(result))


@cli.command()
@db_option
@click.option("--story", "story_id", required=True, help="Story identifier.")
@click.pass_obj
def paths(obj: CliContext, db_path: Path | None, story_id: str) -> None:
    """Show how many readers ended on each complete path."""
    with _open_store(db_path or obj.settings.db_path) as store:
        try:
            tree = store.load_tree(story_id)
        except StoryNotFoundError as e:
            _fail(str(e))
        stats = compute_path_statistics(tree, store.list_progress_paths(story_id))

    _echo_json(
        {
            "story_id": story_id,
            "node_count": tree.node_count,
            "paths": [
                {
                    "path": encode_path(info.path),
                    "path_string": info.path_string,
                    "user_count": info.user_count,
                    "percentage": info.percentage,
                }
                for info in stats
            ],
        }
    )


@cli.command("decode-path")
@click.argument("token")
@click.option("--max-depth", type=click.IntRange(min=0), default=None, help="Truncate to this depth.")
def decode_path_command(token: str, max_depth: int | None) -> None:
    """Decode a shared path token (lenient)."""
    path = decode_path(token, max_depth)
    _echo_json({"path": [t.value for t in path], "token": encode_path(path)})


if __name__ == "__main__":
    cli()
