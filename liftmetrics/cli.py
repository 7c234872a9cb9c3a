"""LiftMetrics CLI.

Commands:
- init: Create the store schema
- sync: Run the ingestion pipeline (revision check, download, load, metrics)
- metrics: Recompute derived tables from the current records
- status: Row counts per table and the cached revision
- lifter: Show one athlete's meets and averages
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import typer
from rich.console import Console
from rich.table import Table
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from liftmetrics.config import get_config
from liftmetrics.core.logging import configure_logging
from liftmetrics.db.connection import create_engine_for, get_session, init_db
from liftmetrics.db.queries import get_lifter_details, get_lifter_stats, get_table_counts
from liftmetrics.errors import LiftMetricsError
from liftmetrics.ingestion.revision import find_local_csv, revision_from_filename
from liftmetrics.pipeline.metrics import MetricsPipeline
from liftmetrics.pipeline.orchestrator import IngestionOrchestrator

app = typer.Typer(
    name="liftmetrics",
    help="LiftMetrics - OpenIPF ingestion and lifter metrics",
    no_args_is_help=True,
)

console = Console()


@app.callback()
def main_callback():
    """Configure logging before any command runs."""
    config = get_config()
    configure_logging(config.log_level, config.log_format)


def _run_with_engine(action: Callable[[AsyncEngine], Awaitable[None]]) -> None:
    """Run ``action`` against a fresh engine; pipeline errors exit with code 1."""
    config = get_config()

    async def _run():
        engine = create_engine_for(config.db.url, echo=config.db.echo)
        try:
            await action(engine)
        finally:
            await engine.dispose()

    try:
        asyncio.run(_run())
    except (LiftMetricsError, SQLAlchemyError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


def _fmt(value: float | None, suffix: str = "") -> str:
    if value is None:
        return "-"
    return f"{value:.1f}{suffix}"


@app.command()
def init(
    drop: bool = typer.Option(False, "--drop", help="Drop existing tables"),
):
    """Initialize database schema."""
    config = get_config()
    console.print(f"[bold]Initializing database:[/bold] {config.db.url}")

    async def _init(engine: AsyncEngine):
        if drop:
            console.print("[yellow]Dropping existing tables...[/yellow]")
        await init_db(engine, drop=drop)

    _run_with_engine(_init)
    console.print("[bold green]✓[/bold green] Database initialized")


@app.command()
def sync(
    force: bool = typer.Option(False, "--force", help="Skip the revision check and always download"),
):
    """Run the ingestion pipeline.

    Downloads the archive only when the remote revision differs from the
    cached CSV, then reloads records and recomputes every derived table.
    """
    config = get_config()
    console.print("[bold]Starting OpenIPF sync[/bold]")
    console.print(f"Data directory: {config.paths.data_dir}")

    async def _sync(engine: AsyncEngine):
        result = await IngestionOrchestrator(config, engine=engine).run(force=force)

        status_style = "green" if result.success else "red"
        console.print(f"Status: [{status_style}]{result.status.value}[/{status_style}]")
        console.print(result.message)

        if result.metrics is not None:
            table = Table(title="Metrics")
            table.add_column("Calculator", style="cyan")
            table.add_column("Rows", justify="right", style="green")
            for name, rows in result.metrics.rows_by_calculator.items():
                table.add_row(name, str(rows))
            console.print(table)

        console.print(f"Duration: {result.duration_seconds:.1f}s")

    _run_with_engine(_sync)


@app.command()
def metrics():
    """Recompute derived tables from the current records."""
    config = get_config()
    console.print("[bold]Recomputing metrics[/bold]")

    async def _metrics(engine: AsyncEngine):
        result = await MetricsPipeline(timeout=config.timeouts.metrics_seconds).run(engine)
        for name, rows in result.rows_by_calculator.items():
            console.print(f"  [green]✓[/green] {name}: {rows} rows")
        console.print(f"Duration: {result.duration_seconds:.1f}s")

    _run_with_engine(_metrics)


@app.command()
def status():
    """Show row counts per table and the cached dataset revision."""
    config = get_config()

    local_csv = find_local_csv(config.paths.data_dir, config.source.dataset_prefix)
    if local_csv is None:
        console.print("[yellow]No local CSV cached[/yellow]")
    else:
        try:
            revision = revision_from_filename(local_csv)
        except LiftMetricsError:
            revision = "unknown"
        console.print(f"[bold]Local dataset:[/bold] {local_csv.name} (revision {revision})")

    async def _status(engine: AsyncEngine):
        async with get_session(engine) as session:
            counts = await get_table_counts(session, timeout=config.timeouts.query_seconds)

        table = Table(title="Tables")
        table.add_column("Table", style="cyan")
        table.add_column("Rows", justify="right", style="green")
        for name, count in counts.items():
            table.add_row(name, str(count))
        console.print(table)

    _run_with_engine(_status)


@app.command()
def lifter(
    name: str = typer.Argument(..., help="Athlete name as it appears in the dataset"),
    limit: int = typer.Option(10, "--limit", "-n", help="Show the most recent N meets"),
):
    """Show an athlete's recent meets and lifetime averages."""
    config = get_config()

    async def _lifter(engine: AsyncEngine):
        async with get_session(engine) as session:
            details = await get_lifter_details(session, name, timeout=config.timeouts.query_seconds)
            stats = await get_lifter_stats(session, name, timeout=config.timeouts.query_seconds)

        console.print(f"[bold]{name}[/bold] - {len(details)} meets")

        table = Table(title="Recent meets")
        table.add_column("Date", style="cyan")
        table.add_column("Meet")
        table.add_column("Good lifts", justify="right", style="green")
        table.add_column("Squat %", justify="right")
        table.add_column("Bench %", justify="right")
        table.add_column("Deadlift %", justify="right")

        for meet in details[:limit]:
            table.add_row(
                meet.date,
                meet.meet_name,
                f"{meet.total_successful_attempts}/9",
                " / ".join(_fmt(p) for p in (meet.squat1_perc, meet.squat2_perc, meet.squat3_perc)),
                " / ".join(_fmt(p) for p in (meet.bench1_perc, meet.bench2_perc, meet.bench3_perc)),
                " / ".join(_fmt(p) for p in (meet.deadlift1_perc, meet.deadlift2_perc, meet.deadlift3_perc)),
            )
        console.print(table)

        console.print("\n[bold]Averages[/bold]")
        console.print(
            f"Successful attempts: squat {_fmt(stats.avg_squat_success)}, "
            f"bench {_fmt(stats.avg_bench_success)}, "
            f"deadlift {_fmt(stats.avg_deadlift_success)}"
        )
        console.print(
            f"Squat jumps: {_fmt(stats.avg_squat1_to2_kg, ' kg')} then {_fmt(stats.avg_squat2_to3_kg, ' kg')}"
        )
        console.print(
            f"Bench jumps: {_fmt(stats.avg_bench1_to2_kg, ' kg')} then {_fmt(stats.avg_bench2_to3_kg, ' kg')}"
        )
        console.print(
            f"Deadlift jumps: {_fmt(stats.avg_deadlift1_to2_kg, ' kg')} then {_fmt(stats.avg_deadlift2_to3_kg, ' kg')}"
        )

    _run_with_engine(_lifter)


def main():
    """Entry point for CLI."""
    app()


if __name__ == "__main__":
    main()
