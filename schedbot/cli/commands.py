"""schedbot CLI - Typer-based command-line interface."""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from schedbot import __version__

app = typer.Typer(
    name="schedbot",
    help="schedbot - scheduled agent task processor",
    no_args_is_help=True,
)

console = Console()


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"schedbot v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=_version_callback, is_eager=True
    ),
) -> None:
    """schedbot - scheduled agent task processor."""


def _load():
    from schedbot.core.config.loader import load_config
    from schedbot.memory.store import ScheduleStore

    config = load_config()
    return config, ScheduleStore(config.database.path)


def _fmt(value) -> str:
    if value is None:
        return "-"
    if hasattr(value, "strftime"):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    return str(value)


# ════════════════════════════════════════════════════════════
# run / worker / tick - processing
# ════════════════════════════════════════════════════════════


@app.command()
def run(
    port: int = typer.Option(8000, "--port", "-p", help="Port number"),
    host: str = typer.Option("0.0.0.0", "--host", "-h", help="Host address"),
    reload: bool = typer.Option(False, "--reload", help="Enable auto-reload"),
) -> None:
    """Start the API server (uvicorn) with the in-process ticker."""
    import uvicorn

    console.print(f"[green]Starting schedbot API on {host}:{port}[/green]")
    uvicorn.run("schedbot.api.app:app", host=host, port=port, reload=reload)


@app.command()
def worker() -> None:
    """Run the ticker without the HTTP server."""
    from schedbot.core.cron.processor import build_processor
    from schedbot.core.cron.ticker import ScheduleTicker

    config, store = _load()
    ticker = ScheduleTicker(build_processor(config, store), config.scheduler.tick_cron)

    async def _serve() -> None:
        await ticker.start()
        try:
            await asyncio.Event().wait()
        finally:
            await ticker.stop()

    console.print(f"[green]schedbot worker running ({config.scheduler.tick_cron})[/green]")
    try:
        asyncio.run(_serve())
    except KeyboardInterrupt:
        console.print("\nBye!")


@app.command()
def tick() -> None:
    """Run a single processor pass now."""
    from schedbot.core.cron.processor import build_processor
    from schedbot.core.cron.ticker import ScheduleTicker

    config, store = _load()
    ticker = ScheduleTicker(build_processor(config, store), config.scheduler.tick_cron)
    summary = asyncio.run(ticker.tick())

    table = Table(title="Tick")
    table.add_column("Pass", style="cyan")
    table.add_column("Processed", style="green")
    table.add_column("Errors", style="red")
    table.add_row("schedules", str(summary.schedules.processed), str(summary.schedules.errors))
    table.add_row("approved", str(summary.approved.processed), str(summary.approved.errors))
    console.print(table)
    if summary.recovered:
        console.print(f"[yellow]Recovered {summary.recovered} stale execution(s)[/yellow]")


# ════════════════════════════════════════════════════════════
# status - config + DB info
# ════════════════════════════════════════════════════════════


@app.command()
def status() -> None:
    """Show configuration and queue status."""
    config, store = _load()

    schedules = store.list_schedules()
    pending = store.list_executions(status="pending_approval", limit=1000)
    running = store.list_executions(status="running", limit=1000)
    dlq = store.get_dlq_stats()

    table = Table(title="schedbot status")
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Version", __version__)
    table.add_row("DB Path", config.database.path)
    table.add_row("Default Provider", config.executor.default_provider)
    table.add_row("Ticker", config.scheduler.tick_cron if config.scheduler.enabled else "disabled")
    table.add_row("Schedules", f"{sum(s.is_enabled for s in schedules)}/{len(schedules)} enabled")
    table.add_row("Pending Approval", str(len(pending)))
    table.add_row("Running", str(len(running)))
    table.add_row("DLQ Pending", str(dlq["by_status"].get("pending", 0)))

    console.print(table)


# ════════════════════════════════════════════════════════════
# schedules
# ════════════════════════════════════════════════════════════

schedules_app = typer.Typer(help="Inspect agent schedules")
app.add_typer(schedules_app, name="schedules")


@schedules_app.command("list")
def schedules_list(
    enabled_only: bool = typer.Option(False, "--enabled", help="Only enabled schedules"),
) -> None:
    """List schedules with their next run."""
    _, store = _load()
    schedules = store.list_schedules(enabled_only=enabled_only)

    if not schedules:
        console.print("[dim]No schedules found.[/dim]")
        return

    table = Table(title="Schedules")
    table.add_column("ID", style="cyan")
    table.add_column("Name", style="white")
    table.add_column("Cron", style="yellow")
    table.add_column("TZ", style="blue")
    table.add_column("Next Run (UTC)", style="green")
    table.add_column("Approval")
    table.add_column("Enabled")

    for s in schedules:
        table.add_row(
            s.id,
            s.name,
            s.cron_expression,
            s.timezone or "UTC",
            _fmt(s.next_run_at),
            "yes" if s.requires_approval else "no",
            str(s.is_enabled),
        )

    console.print(table)


# ════════════════════════════════════════════════════════════
# executions
# ════════════════════════════════════════════════════════════

executions_app = typer.Typer(help="Inspect and approve executions")
app.add_typer(executions_app, name="executions")


@executions_app.command("list")
def executions_list(
    status_filter: str | None = typer.Option(None, "--status", "-s", help="Filter by status"),
    limit: int = typer.Option(20, "--limit", "-n", help="Max rows"),
) -> None:
    """List recent executions."""
    _, store = _load()
    try:
        executions = store.list_executions(status=status_filter, limit=limit)
    except ValueError:
        console.print(f"[red]Unknown status: {status_filter}[/red]")
        raise typer.Exit(code=1)

    if not executions:
        console.print("[dim]No executions found.[/dim]")
        return

    table = Table(title="Executions")
    table.add_column("ID", style="cyan")
    table.add_column("Schedule", style="blue")
    table.add_column("Status", style="yellow")
    table.add_column("Scheduled For", style="white")
    table.add_column("Duration", style="green")
    table.add_column("Error", style="red")

    for ex in executions:
        table.add_row(
            ex.id,
            ex.schedule_id,
            ex.status.value,
            _fmt(ex.scheduled_for),
            f"{ex.duration_ms}ms" if ex.duration_ms is not None else "-",
            (ex.error_message or "")[:60],
        )

    console.print(table)


@executions_app.command("approve")
def executions_approve(
    execution_id: str = typer.Argument(help="Execution ID to approve"),
    approved_by: str = typer.Option(..., "--by", help="Approver profile ID"),
) -> None:
    """Approve a pending execution; it runs on the next tick."""
    _, store = _load()

    execution = store.get_execution(execution_id)
    if execution is None:
        console.print(f"[red]Execution {execution_id} not found.[/red]")
        raise typer.Exit(code=1)
    if not store.approve_execution(execution_id, approved_by):
        console.print(
            f"[red]Execution {execution_id} cannot be approved "
            f"(status {execution.status.value}).[/red]"
        )
        raise typer.Exit(code=1)

    console.print(f"[green]Execution {execution_id} approved by {approved_by}.[/green]")


# ════════════════════════════════════════════════════════════
# dlq - dead-letter review
# ════════════════════════════════════════════════════════════

dlq_app = typer.Typer(help="Review failed executions")
app.add_typer(dlq_app, name="dlq")


@dlq_app.command("list")
def dlq_list(
    status_filter: str | None = typer.Option("pending", "--status", "-s", help="pending / resolved"),
    limit: int = typer.Option(20, "--limit", "-n", help="Max rows"),
) -> None:
    """List dead-letter entries."""
    _, store = _load()
    items = store.list_dlq(status=status_filter, limit=limit)

    if not items:
        console.print("[dim]DLQ is empty.[/dim]")
        return

    table = Table(title="Dead-letter queue")
    table.add_column("ID", style="cyan")
    table.add_column("Execution", style="blue")
    table.add_column("Type", style="yellow")
    table.add_column("Review", style="magenta")
    table.add_column("Error", style="red")

    for item in items:
        table.add_row(
            item.id,
            item.execution_id,
            item.error_type,
            "yes" if item.requires_manual_review else "no",
            item.error_message[:60],
        )

    console.print(table)


@dlq_app.command("resolve")
def dlq_resolve(
    dlq_id: str = typer.Argument(help="DLQ entry ID"),
    action: str = typer.Option("dismissed", "--action", "-a", help="Resolution action"),
    reviewed_by: str | None = typer.Option(None, "--by", help="Reviewer profile ID"),
    notes: str | None = typer.Option(None, "--notes", help="Free-form notes"),
) -> None:
    """Close a pending DLQ entry."""
    _, store = _load()

    if not store.resolve_dlq_item(dlq_id, action, reviewed_by, notes):
        console.print(f"[red]DLQ entry {dlq_id} not found or already resolved.[/red]")
        raise typer.Exit(code=1)

    console.print(f"[green]DLQ entry {dlq_id} resolved ({action}).[/green]")
