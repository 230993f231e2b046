"""CLI for release-sync.

Operator CLI exercising the same seeding and reconciliation code paths as the
HTTP endpoints, plus a dry-run view of generated periods.
"""

import asyncio
import json
import os
from datetime import UTC, datetime

import typer
import uvicorn
from loguru import logger
from rich.console import Console
from rich.json import JSON
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from release_sync.config.settings import settings
from release_sync.core.logger import setup_logger
from release_sync.periods.calendar_math import date_only_key, parse_timestamp
from release_sync.periods.generators import Granularity, build_periods
from release_sync.releases.errors import AllGroupsUnavailableError, ReleaseStoreError
from release_sync.releases.reconciler import reconcile_feature
from release_sync.releases.seeder import seed_all
from release_sync.services.store_factory import build_release_store

# Initialize Rich console for output
console = Console()

# Initialize Typer app
app = typer.Typer(
    name="release-sync",
    help="Release catalog seeding and feature assignment",
    add_completion=False,
)

DEFAULT_HOST = os.getenv("SERVER_HOST", "127.0.0.1")


def _parse_day(value: str | None, option: str) -> datetime | None:
    try:
        return parse_timestamp(value)
    except ValueError as e:
        raise typer.BadParameter(f"{option} must be an ISO date (YYYY-MM-DD): {value}") from e


@app.callback()
def main(debug: bool = typer.Option(False, "--debug", help="Enable debug logging")) -> None:
    setup_logger(
        level="DEBUG" if debug else settings.effective_log_level,
        json_logs=settings.log_json,
        log_file=settings.log_file,
    )


@app.command()
def server(
    host: str = typer.Option(DEFAULT_HOST, "--host", "-h", help="Host to bind to"),
    port: int = typer.Option(settings.port, "--port", "-p", help="Port to bind to"),
    reload: bool = typer.Option(False, "--reload", help="Enable auto-reload"),
) -> None:
    """Run the FastAPI server."""
    logger.info(f"Starting FastAPI server on {host}:{port} (reload={reload})")
    uvicorn.run("release_sync.main:app", host=host, port=port, reload=reload)


@app.command()
def seed(
    now: str = typer.Option(None, "--now", help="Seed as if today were this date (YYYY-MM-DD)"),
) -> None:
    """Create missing releases in every configured release group."""

    async def _run():
        async with build_release_store(settings) as store:
            return await seed_all(store, settings.release_config(), now=_parse_day(now, "--now"))

    try:
        report = asyncio.run(_run())
    except AllGroupsUnavailableError as e:
        console.print(Panel(Text("No release groups available", style="bold red"), subtitle=e.message, border_style="red"))
        console.print(JSON(json.dumps(e.groups)))
        raise typer.Exit(code=1) from e

    style = {"success": "green", "partial_success": "yellow"}.get(report.status, "red")
    console.print(Panel(Text(f"Seeding {report.status}", style=f"bold {style}"), border_style=style))
    console.print(JSON(json.dumps(report.to_dict())))


@app.command()
def reconcile(feature_id: str = typer.Argument(..., help="Productboard feature id")) -> None:
    """Assign one feature to the matching release of every granularity."""

    async def _run():
        async with build_release_store(settings) as store:
            feature = await store.get_feature(feature_id)
            return await reconcile_feature(store, feature, settings.release_config())

    try:
        result = asyncio.run(_run())
    except ReleaseStoreError as e:
        console.print(f"[red]Could not load feature {feature_id}: {e.message}[/red]")
        raise typer.Exit(code=1) from e

    console.print(JSON(json.dumps(result.to_dict())))


@app.command()
def periods(
    granularity: Granularity = typer.Argument(..., help="weekly, monthly, quarterly or yearly"),
    start: str = typer.Option(None, "--start", help="Range start (YYYY-MM-DD), defaults to today"),
    end: str = typer.Option(None, "--end", help="Range end (YYYY-MM-DD), defaults to start"),
    anchor: int = typer.Option(None, "--anchor", help="Quarter anchor month (1-12)"),
) -> None:
    """Print the periods a seeding run would generate (no API calls)."""
    range_start = _parse_day(start, "--start") or datetime.now(UTC)
    range_end = _parse_day(end, "--end") or range_start
    anchor_month = anchor if anchor is not None else settings.quarter_start_month

    table = Table(title=f"{granularity} periods")
    table.add_column("Name")
    table.add_column("Start")
    table.add_column("End")
    for period in build_periods(granularity, range_start, range_end, anchor_month):
        table.add_row(period.name, date_only_key(period.start), date_only_key(period.end))
    console.print(table)


if __name__ == "__main__":
    app()
