"""Typer CLI entrypoint for vacancy-harvester."""

from __future__ import annotations

import signal
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime
from threading import Event
from typing import Callable, Iterator, Optional, Sequence

import typer
from rich import box
from rich.console import Console
from rich.table import Table
from typer import BadParameter

from .config import ConfigRepository, HarvestConfig
from .engine import ConfigurationError, FetchOutcome, FirstPageError, RunReport, StoreError
from .logging_conf import available_logs, configure_logging, default_log_dir, tail_log
from .orchestrator import BackfillResult, Orchestrator
from .scheduler import APSchedulerAdapter

app = typer.Typer(
    help="vacancy-harvester command line tool",
    no_args_is_help=True,
    rich_markup_mode=None,
)
config_app = typer.Typer(name="config", help="Inspect configuration", no_args_is_help=True)
log_app = typer.Typer(name="log", help="Inspect log files", no_args_is_help=True)
app.add_typer(config_app, name="config")
app.add_typer(log_app, name="log")

console = Console()


@dataclass
class AppState:
    repository: ConfigRepository
    orchestrator_factory: Callable[[HarvestConfig], Orchestrator]
    scheduler_factory: Callable[[], APSchedulerAdapter]


def build_state(verbose: bool) -> AppState:
    repository = ConfigRepository()
    configure_logging(verbose=verbose, log_dir=repository.locator.logs_dir)
    return AppState(
        repository=repository,
        orchestrator_factory=Orchestrator,
        scheduler_factory=APSchedulerAdapter,
    )


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state(verbose=False)
        ctx.obj = state
    return state


def _parse_date_option(value: str, option_name: str) -> date:
    text = (value or "").strip()
    try:
        return datetime.strptime(text, "%Y-%m-%d").date()
    except ValueError as exc:
        raise BadParameter(f"{option_name} must be a date in YYYY-MM-DD format.") from exc


def _load_run_config(state: AppState) -> HarvestConfig:
    try:
        return state.repository.load_for_run()
    except ConfigurationError as exc:
        console.print(f"Error: {exc}", style="red")
        raise typer.Exit(code=1) from exc


@contextmanager
def _cancellation() -> Iterator[Event]:
    """Turn SIGINT/SIGTERM into a graceful drain of the current run."""

    event = Event()

    def _handler(signum, _frame) -> None:
        console.print(f"Received signal {signum}, finishing in-flight work…", style="yellow")
        event.set()

    previous = {}
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            previous[sig] = signal.signal(sig, _handler)
        except ValueError:
            # Not in the main thread; cancellation then relies on the caller.
            pass
    try:
        yield event
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


def _render_report(report: RunReport) -> Table:
    table = Table(title=f"Run {report.date_from} → {report.date_to}", box=box.SIMPLE_HEAD)
    table.add_column("Metric", style="cyan")
    table.add_column("Count", style="green", justify="right")
    for outcome in FetchOutcome:
        table.add_row(outcome.value, str(report.counts[outcome]))
    table.add_row("already_known", str(report.skipped_known))
    table.add_row("pages", f"{report.pages_processed}/{report.pages_total}")
    if report.pages_failed:
        table.add_row("pages_failed", str(report.pages_failed))
    table.add_row("elapsed", f"{report.elapsed:.1f}s")
    if report.cancelled:
        table.add_row("cancelled", "yes")
    return table


def _render_backfill(results: Sequence[BackfillResult]) -> Table:
    table = Table(title=f"Backfill · {len(results)} day(s)", box=box.SIMPLE_HEAD)
    table.add_column("From", style="cyan", no_wrap=True)
    table.add_column("To", style="cyan", no_wrap=True)
    table.add_column("Stored", style="green", justify="right")
    table.add_column("Failed", style="red", justify="right")
    table.add_column("Status", overflow="fold")
    for result in results:
        report = result.report
        table.add_row(
            result.date_from.isoformat(),
            result.date_to.isoformat(),
            str(report.stored) if report else "-",
            str(report.failed) if report else "-",
            "ok" if result.ok else f"error: {result.error}",
        )
    return table


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging."),
) -> None:
    ctx.obj = build_state(verbose)


@app.command("run", help="Ingest vacancies published within a date range.")
def run(
    ctx: typer.Context,
    date_from: str = typer.Option(..., "--from", help="Start date in YYYY-MM-DD format.", show_default=False),
    date_to: str = typer.Option(..., "--to", help="End date in YYYY-MM-DD format.", show_default=False),
    quiet: bool = typer.Option(False, "--quiet", help="Print only the stored count."),
) -> None:
    state = _get_state(ctx)
    start = _parse_date_option(date_from, "--from")
    end = _parse_date_option(date_to, "--to")
    if end < start:
        raise BadParameter("--to must not be earlier than --from.")
    config = _load_run_config(state)
    orchestrator = state.orchestrator_factory(config)
    with _cancellation() as cancel_event:
        try:
            report = orchestrator.run(start, end, cancel_event)
        except (FirstPageError, StoreError) as exc:
            console.print(f"Job failed: {exc}", style="red")
            raise typer.Exit(code=1) from exc
    if not quiet:
        console.print(_render_report(report))
    console.print(f"Number of successfully saved vacancies: {report.stored}")


@app.command("backfill", help="Ingest one-day windows for the last N days.")
def backfill(
    ctx: typer.Context,
    days: Optional[int] = typer.Option(None, "--days", min=1, help="Number of days (default from config)."),
) -> None:
    state = _get_state(ctx)
    config = _load_run_config(state)
    orchestrator = state.orchestrator_factory(config)
    with _cancellation() as cancel_event:
        results = orchestrator.backfill(days or config.schedule.backfill_days, cancel_event=cancel_event)
    console.print(_render_backfill(results))
    stored = sum(result.report.stored for result in results if result.report)
    console.print(f"Number of successfully saved vacancies: {stored}")


@app.command("schedule", help="Run the daily harvest until interrupted.")
def schedule(
    ctx: typer.Context,
    cron: Optional[str] = typer.Option(None, "--cron", help="Crontab expression overriding the config."),
    skip_backfill: bool = typer.Option(False, "--skip-backfill", help="Do not backfill before scheduling."),
) -> None:
    state = _get_state(ctx)
    config = _load_run_config(state)
    schedule_cfg = config.schedule
    if cron:
        try:
            schedule_cfg = schedule_cfg.model_validate({**schedule_cfg.model_dump(), "cron": cron})
        except ValueError as exc:
            raise BadParameter(f"--cron is invalid: {exc}") from exc
    orchestrator = state.orchestrator_factory(config)
    with _cancellation() as cancel_event:
        if not skip_backfill and schedule_cfg.backfill_days > 0:
            console.print(f"Backfilling the past {schedule_cfg.backfill_days} days…", style="cyan")
            console.print(_render_backfill(orchestrator.backfill(schedule_cfg.backfill_days, cancel_event=cancel_event)))
        if cancel_event.is_set():
            return
        adapter = state.scheduler_factory()
        adapter.schedule_daily(schedule_cfg, lambda: orchestrator.run_daily(cancel_event))
        adapter.start()
        console.print(f"Daily job scheduled ({schedule_cfg.cron}); press Ctrl+C to stop.", style="green")
        try:
            while not cancel_event.wait(1.0):
                pass
        finally:
            adapter.shutdown()
    console.print("Scheduler stopped.", style="dim")


@config_app.command("show", help="Print the effective configuration.")
def config_show(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    try:
        config = state.repository.load()
    except ConfigurationError as exc:
        console.print(f"Error: {exc}", style="red")
        raise typer.Exit(code=1) from exc
    table = Table(title=str(state.repository.locator.config_path()), box=box.SIMPLE_HEAD)
    table.add_column("Setting", style="cyan", no_wrap=True)
    table.add_column("Value", style="green", overflow="fold")
    for section, values in config.model_dump(mode="json").items():
        if isinstance(values, dict):
            for name, value in values.items():
                if name == "mongo_uri":
                    value = "set" if value else "missing"
                table.add_row(f"{section}.{name}", str(value))
        else:
            table.add_row(section, str(values))
    table.add_row("api.bearer_token", "set" if config.api.bearer_token else "missing")
    console.print(table)


@log_app.command("list", help="List available log files.")
def log_list() -> None:
    logs = list(available_logs())
    if not logs:
        console.print("No log files yet.", style="dim")
        return
    table = Table(box=box.SIMPLE_HEAD)
    table.add_column("File", style="green")
    for path in logs:
        table.add_row(path.name)
    console.print(table)


@log_app.command("show", help="Show the tail of a log file.")
def log_show(
    name: str = typer.Argument("harvester", help="Log name, e.g. harvester or error."),
    lines: int = typer.Option(100, "--lines", min=1, help="Number of trailing lines."),
) -> None:
    path = default_log_dir() / f"{name.removesuffix('.log')}.log"
    tail = tail_log(path, lines)
    if not tail:
        console.print("No log entries yet.", style="dim")
        return
    console.print(f"{path.name} · last {len(tail)} lines", style="cyan")
    console.print("".join(tail), markup=False, highlight=False)


def cli() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    cli()
