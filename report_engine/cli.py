"""
Report engine CLI - Command line interface for running report cycles.

Usage:
    report-engine --help                 Show all commands
    report-engine run-cycle              Execute due schedules once
    report-engine execute 42             Run schedule 42 now (keeps its next_run)
    report-engine next-run monthly       Show when a schedule would run next
    report-engine serve                  Start the API server with the scheduler
    report-engine migrate                Run database migrations
"""

import asyncio
from datetime import datetime

import typer

app = typer.Typer(
    name="report-engine",
    help="Scheduled report execution engine",
    no_args_is_help=True,
)


def _print_success(message: str) -> None:
    """Print a success message."""
    typer.echo(f"  ✅ {message}")


def _print_warning(message: str) -> None:
    """Print a warning message."""
    typer.echo(f"  ⚠️ {message}")


def _print_error(message: str) -> None:
    """Print an error message to stderr."""
    typer.echo(f"❌ {message}", err=True)


def _build_scheduler():
    from report_engine.core.exceptions import GeneratorLoadError
    from report_engine.core.scheduler import build_report_scheduler

    try:
        return build_report_scheduler()
    except GeneratorLoadError as e:
        _print_error(str(e))
        _print_error("Set REPORT_GENERATOR to a 'package.module:attribute' path")
        raise typer.Exit(1) from e


async def _dispose_engine() -> None:
    from report_engine.core.database import engine

    await engine.dispose()


@app.command()
def run_cycle():
    """Execute every due schedule once (same guard and batch size as the timer)."""
    from report_engine.core.logging import setup_logging

    setup_logging()
    scheduler = _build_scheduler()

    async def _run():
        try:
            return await scheduler.tick()
        finally:
            await _dispose_engine()

    summary = asyncio.run(_run())

    if summary.error:
        _print_error(f"Cycle aborted: {summary.error}")
        raise typer.Exit(1)

    typer.echo(f"\nDue schedules: {summary.found}")
    for result in summary.results:
        if result.success:
            _print_success(f"#{result.schedule_id}: {result.message} ({result.execution_time_ms} ms)")
        else:
            _print_warning(f"#{result.schedule_id}: {result.message}: {result.error}")
    for schedule_id in summary.quarantined:
        _print_warning(f"#{schedule_id}: skipped, failure ceiling reached")

    if summary.failed:
        raise typer.Exit(1)


@app.command()
def execute(
    schedule_id: int = typer.Argument(..., help="ID of the report schedule to run"),
):
    """Run one schedule now, bypassing the failure ceiling.

    Records last_run only; the schedule's next_run is left unchanged.
    """
    from report_engine.core.logging import setup_logging

    setup_logging()
    scheduler = _build_scheduler()

    async def _run():
        try:
            return await scheduler.runner.executor.execute(schedule_id, advance_schedule=False)
        finally:
            await _dispose_engine()

    result = asyncio.run(_run())

    if not result.success:
        _print_error(f"{result.message}: {result.error}")
        raise typer.Exit(1)

    _print_success(
        f"{result.message} ({result.file_size} bytes, {result.execution_time_ms} ms)"
    )
    for side_effect in result.failed_side_effects:
        _print_warning(f"{side_effect.name} write failed: {side_effect.error}")


@app.command()
def next_run(
    frequency: str = typer.Argument(..., help="daily, weekly or monthly"),
    after: datetime | None = typer.Option(
        None, "--after", "-a", help="Reference time (UTC), defaults to now"
    ),
):
    """Show when a schedule with this frequency would run next."""
    from report_engine.core.datetime_utils import to_naive_utc
    from report_engine.services.next_run import calculate_next_run

    reference = to_naive_utc(after) if after else None
    typer.echo(calculate_next_run(frequency, reference).isoformat())


@app.command()
def migrate():
    """Run database migrations (alembic upgrade head)."""
    import subprocess

    result = subprocess.run(["alembic", "upgrade", "head"], check=False)
    raise typer.Exit(result.returncode)


@app.command()
def serve(
    reload: bool = typer.Option(False, "--reload", "-r", help="Enable hot reload"),
    port: int = typer.Option(8000, "--port", "-p", help="Port to run on"),
):
    """Start the API server (runs the report scheduler in-process)."""
    import subprocess

    cmd = ["uvicorn", "report_engine.main:app", "--host", "0.0.0.0", "--port", str(port)]
    if reload:
        cmd.append("--reload")

    subprocess.run(cmd, check=False)


if __name__ == "__main__":
    app()
