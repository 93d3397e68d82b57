"""
Command-line interface for PneumaFlow.

Provides commands for ingesting CPAP CSV exports, querying the meso and
micro tiers, and inspecting nightly aggregates and configuration.
"""

import json
import logging
import signal
import sys
import threading

from datetime import datetime
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version
from pathlib import Path
from typing import Any

import click

from pydantic import BaseModel, ValidationError

from pneumaflow.config import (
    Settings,
    get_config_path,
    load_config,
    load_settings,
    save_config,
    set_config_value,
)
from pneumaflow.constants import MESO_DEFAULT_BUCKET_SECONDS, MICRO_DEFAULT_POINTS
from pneumaflow.database import AggregateRepository, Database
from pneumaflow.errors import QueryError
from pneumaflow.ingest import StreamingIngestor
from pneumaflow.ingest.csv_reader import parse_timestamp
from pneumaflow.logging_config import setup_logging
from pneumaflow.models.aggregate import NightlyAggregateRecord
from pneumaflow.query import TieredQueryEngine
from pneumaflow.storage import ColumnarStore, SealedSession

logger = logging.getLogger(__name__)

try:
    __version__ = get_version("pneumaflow")
except PackageNotFoundError:
    __version__ = "dev"


def _settings(
    db: str | None, data_dir: str | None, sample_rate: str | None = None
) -> Settings:
    try:
        return load_settings(
            database_path=db, data_dir=data_dir, sample_rate=sample_rate
        )
    except ValidationError as e:
        raise click.ClickException(f"Invalid configuration: {e}") from e


def _store(settings: Settings) -> ColumnarStore:
    return ColumnarStore(settings.data_dir, compression=settings.compression)


def _echo_json(payload: Any) -> None:
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(mode="json", by_alias=True)
    elif isinstance(payload, list):
        payload = [
            item.model_dump(mode="json", by_alias=True)
            if isinstance(item, BaseModel)
            else item
            for item in payload
        ]
    click.echo(json.dumps(payload, indent=2))


def _parse_time(value: str) -> int:
    """Accept epoch milliseconds or an ISO-8601 timestamp."""
    if value.lstrip("-").isdigit():
        return int(value)
    try:
        return parse_timestamp(value)
    except ValueError as e:
        raise click.BadParameter(str(e)) from e


def _parse_config_value(raw: str) -> Any:
    lowered = raw.lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    for cast in (int, float):
        try:
            return cast(raw)
        except ValueError:
            continue
    return raw


def _query_failed(e: QueryError) -> click.ClickException:
    return click.ClickException(f"{e.kind}: {e}")


db_option = click.option("--db", type=click.Path(), help="Database path")
data_dir_option = click.option(
    "--data-dir", type=click.Path(file_okay=False), help="Columnar data directory"
)


@click.group()
@click.version_option(__version__, prog_name="pneumaflow")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
def cli(verbose: bool) -> None:
    """PneumaFlow: tiered CPAP sensor storage and query engine"""
    setup_logging(verbose=verbose)


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@db_option
@data_dir_option
@click.option(
    "--sample-rate",
    help=(
        "Sampling rate in Hz used for usage minutes, or 'auto' to derive it "
        "from timestamp spacing (default: ingest.sample_rate config, else auto; "
        "auto falls back to 25 Hz for sessions with under two samples)"
    ),
)
def ingest(
    path: str, db: str | None, data_dir: str | None, sample_rate: str | None
) -> None:
    """Ingest a CPAP CSV export."""
    settings = _settings(db, data_dir, sample_rate)
    cancel = threading.Event()

    def request_cancel(signum: int, frame: Any) -> None:
        click.echo("Cancelling after the current row...", err=True)
        cancel.set()

    previous_handler = signal.signal(signal.SIGINT, request_cancel)
    try:
        with Database(settings.database_path) as database:
            ingestor = StreamingIngestor(
                _store(settings), AggregateRepository(database), settings
            )
            report = ingestor.ingest_file(Path(path), cancel_event=cancel)
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    _echo_json(report)
    if report.errors and report.nights_imported == 0:
        sys.exit(1)


@cli.command()
@click.argument("session_id")
@click.option(
    "--bucket",
    type=int,
    default=MESO_DEFAULT_BUCKET_SECONDS,
    show_default=True,
    help="Bucket width in seconds (1-300)",
)
@data_dir_option
def meso(session_id: str, bucket: int, data_dir: str | None) -> None:
    """Show bucketed aggregates for a session."""
    settings = _settings(None, data_dir)
    engine = TieredQueryEngine(_store(settings), settings)
    try:
        buckets = engine.meso(session_id, bucket_seconds=bucket)
    except QueryError as e:
        raise _query_failed(e) from e
    _echo_json(buckets)


@cli.command()
@click.argument("session_id")
@click.option("--start", required=True, help="Range start (epoch ms or ISO-8601)")
@click.option("--end", required=True, help="Range end (epoch ms or ISO-8601)")
@click.option(
    "--points",
    type=int,
    default=MICRO_DEFAULT_POINTS,
    show_default=True,
    help="Maximum points to return",
)
@data_dir_option
def micro(
    session_id: str, start: str, end: str, points: int, data_dir: str | None
) -> None:
    """Show raw (or downsampled) samples for a time range."""
    settings = _settings(None, data_dir)
    engine = TieredQueryEngine(_store(settings), settings)
    try:
        result = engine.micro(
            session_id, _parse_time(start), _parse_time(end), target_points=points
        )
    except QueryError as e:
        raise _query_failed(e) from e
    _echo_json(result)


@cli.command()
@click.argument("session_id")
@data_dir_option
def summary(session_id: str, data_dir: str | None) -> None:
    """Show whole-session statistics from raw samples."""
    settings = _settings(None, data_dir)
    engine = TieredQueryEngine(_store(settings), settings)
    try:
        result = engine.summary(session_id)
    except QueryError as e:
        raise _query_failed(e) from e
    _echo_json(result)


@cli.command()
@click.option(
    "--from",
    "from_date",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    help="Start date (YYYY-MM-DD)",
)
@click.option(
    "--to",
    "to_date",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    help="End date (YYYY-MM-DD)",
)
@db_option
def nights(from_date: datetime | None, to_date: datetime | None, db: str | None) -> None:
    """List nightly aggregates."""
    settings = _settings(db, None)
    with Database(settings.database_path) as database:
        rows = AggregateRepository(database).list_range(
            from_date.date() if from_date else None,
            to_date.date() if to_date else None,
        )
        records = [
            NightlyAggregateRecord.model_validate(row, from_attributes=True)
            for row in rows
        ]
    _echo_json(records)


@cli.command()
@db_option
def bounds(db: str | None) -> None:
    """Show the first and last dates with data."""
    settings = _settings(db, None)
    with Database(settings.database_path) as database:
        data_bounds = AggregateRepository(database).data_bounds()

    if data_bounds is None:
        click.echo("No nights imported")
        return
    _echo_json(data_bounds)


@cli.command()
@data_dir_option
def sessions(data_dir: str | None) -> None:
    """List columnar sessions and their state."""
    settings = _settings(None, data_dir)
    states = _store(settings).list_sessions()
    if not states:
        click.echo("No sessions found")
        return

    click.echo(f"\n{'Session':<24} {'State':<8} {'Parts':>6} {'Rows':>12}")
    click.echo("=" * 53)
    for state in states:
        if isinstance(state, SealedSession):
            click.echo(
                f"{state.session_id:<24} {'sealed':<8} {len(state.parts):>6} "
                f"{state.row_count:>12,}"
            )
        else:
            click.echo(
                f"{state.session_id:<24} {'open':<8} {len(state.parts):>6} {'-':>12}"
            )


@cli.group()
def config() -> None:
    """Configuration management commands."""
    pass


@config.command("show")
def show_config_cmd() -> None:
    """Show all configuration settings."""
    config_path = get_config_path()
    if not config_path.exists():
        click.echo(f"No config file: {config_path}")
        return

    click.echo(f"Config file: {config_path}\n")
    config_data = load_config()
    if not config_data:
        click.echo("Configuration is empty.")
        return

    click.echo("Settings:")
    for section, values in config_data.items():
        click.echo(f"  [{section}]")
        if isinstance(values, dict):
            for key, value in values.items():
                click.echo(f"    {key} = {value!r}")


@config.command("set")
@click.argument("key")
@click.argument("value")
def set_config_cmd(key: str, value: str) -> None:
    """Set a configuration value (KEY in section.name form)."""
    previous = load_config()
    parsed = _parse_config_value(value)

    try:
        set_config_value(key, parsed)
        load_settings()
    except ValueError as e:
        # ValidationError is a ValueError; restore the last good file
        save_config(previous)
        raise click.ClickException(str(e)) from e

    click.echo(f"✓ {key} = {parsed!r}")
    click.echo(f"  Config: {get_config_path()}")


if __name__ == "__main__":
    cli()
