"""CLI interface for scanjobs."""

import asyncio
import logging
import os
from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from scanjobs.consts import (
    BATCH_CONCURRENCY,
    DEFAULT_DATA_DIR,
    LONG_POLL_INTERVAL,
    LONG_POLL_MAX_WAIT,
    SHORT_POLL_INTERVAL,
    SHORT_POLL_MAX_WAIT,
)
from scanjobs.errors import ScanServiceError, StorageError
from scanjobs.models.model_issue import Severity
from scanjobs.models.model_job import ScanJob, ScanJobStatus, ScanRequest
from scanjobs.models.model_remote import JobProgress
from scanjobs.scanner.client import ScannerClient
from scanjobs.scanner.orchestrator import ScanOrchestrator
from scanjobs.scanner.poller import JobPoller
from scanjobs.storage.file_store import FileJobStore

app = typer.Typer(
    name="scanjobs",
    help="scanjobs - Submit, track and reconcile remote accessibility scans",
)

console = Console()
logger = logging.getLogger(__name__)

DATA_DIR_OPTION = typer.Option(
    None, "--data-dir", help="Job store directory (default: $SCANNER_DATA_DIR or ./data)"
)
VERBOSE_OPTION = typer.Option(False, "--verbose", "-v", help="Show INFO logs")

_STATUS_STYLES = {
    ScanJobStatus.SUBMITTED: "blue",
    ScanJobStatus.POLLING: "cyan",
    ScanJobStatus.COMPLETED: "green",
    ScanJobStatus.FAILED: "red",
    ScanJobStatus.CANCELED: "yellow",
}

_SEVERITY_STYLES = {
    Severity.CRITICAL: "red",
    Severity.SERIOUS: "orange1",
    Severity.MODERATE: "yellow",
    Severity.MINOR: "dim",
}


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def _get_store(data_dir: Path | None) -> FileJobStore:
    """Resolve the store root: --data-dir > SCANNER_DATA_DIR > default."""
    if data_dir is None:
        env_dir = os.getenv("SCANNER_DATA_DIR", "").strip()
        data_dir = Path(env_dir) if env_dir else DEFAULT_DATA_DIR
    return FileJobStore(data_dir)


def _build_client() -> ScannerClient:
    return ScannerClient()


def _get_score_color(score: float) -> str:
    """Get color for score display."""
    if score >= 90:
        return "green"
    elif score >= 70:
        return "yellow"
    else:
        return "red"


def _truncate(text: str, max_len: int = 60) -> str:
    """Truncate text with ellipsis."""
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


def _status_text(job: ScanJob) -> str:
    style = _STATUS_STYLES[job.status]
    return f"[{style}]{job.status.value}[/{style}]"


def _print_job(job: ScanJob) -> None:
    table = Table(title=f"Scan {job.scan_id}")
    table.add_column("Field", style="cyan")
    table.add_column("Value")

    table.add_row("URL", job.url)
    table.add_row("Job ID", job.job_id or "-")
    table.add_row("Type", job.scan_type.value)
    table.add_row("Tier", job.tier.value)
    table.add_row("Status", _status_text(job))
    table.add_row("Progress", f"{job.progress}%")
    table.add_row("Message", job.message)
    table.add_row("Submitted", job.submitted_at.strftime("%Y-%m-%d %H:%M:%S"))
    if job.completed_at:
        table.add_row("Finished", job.completed_at.strftime("%Y-%m-%d %H:%M:%S"))
    if job.error_message:
        kind = job.failure_kind.value if job.failure_kind else "unknown"
        table.add_row("Error", f"[red]{job.error_message}[/red] ({kind})")

    if job.result:
        color = _get_score_color(job.result.accessibility_score)
        table.add_row("Score", f"[{color}]{job.result.accessibility_score}[/{color}]")
        table.add_row("Issues", f"{job.result.total_issues} ({job.result.critical_issues} critical)")
        table.add_row("WCAG", job.result.wcag_level)
        table.add_row("Engines", ", ".join(job.result.engines_used))
        if job.result.common_issues:
            table.add_row("Common issues", ", ".join(job.result.common_issues))

    console.print(table)


def _print_issues(job: ScanJob, limit: int) -> None:
    if not job.issues:
        return
    table = Table(title=f"Issues ({len(job.issues)})")
    table.add_column("Severity", style="bold")
    table.add_column("Code", style="cyan")
    table.add_column("Message")
    table.add_column("Selector", style="dim")
    table.add_column("Confidence", justify="center")

    for issue in job.issues[:limit]:
        style = _SEVERITY_STYLES[issue.severity]
        table.add_row(
            f"[{style}]{issue.severity.value}[/{style}]",
            issue.code,
            _truncate(issue.message),
            _truncate(issue.selector, 40),
            issue.confidence,
        )

    console.print(table)
    if len(job.issues) > limit:
        console.print(f"[dim]... and {len(job.issues) - limit} more (use --limit)[/dim]")


@app.command()
def scan(
    url: str = typer.Argument(..., help="Page to scan"),
    scan_type: str = typer.Option("single_page", "--type", "-t", help="single_page or multi_page"),
    tier: str = typer.Option("starter", "--tier", help="Customer tier (starter, essential, professional)"),
    max_pages: int = typer.Option(None, "--max-pages", help="Page cap for multi_page scans"),
    max_wait: float = typer.Option(LONG_POLL_MAX_WAIT, "--max-wait", help="Polling budget (seconds)"),
    interval: float = typer.Option(LONG_POLL_INTERVAL, "--interval", help="First poll interval (seconds)"),
    limit: int = typer.Option(20, "--limit", "-l", help="Number of issues to show"),
    data_dir: Path = DATA_DIR_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Submit a scan and wait for its result."""
    _configure_logging(verbose)
    store = _get_store(data_dir)
    options = {"max_pages": max_pages} if max_pages else {}

    async def run() -> ScanJob:
        async with _build_client() as client:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
                console=console,
            ) as progress:
                task = progress.add_task("Submitting...", total=100)

                def on_progress(job: ScanJob) -> None:
                    progress.update(task, completed=job.progress, description=_truncate(job.message, 50))

                poller = JobPoller(client, store, on_progress=on_progress)
                orchestrator = ScanOrchestrator(client, store, poller=poller)
                return await orchestrator.run_scan(
                    url,
                    scan_type,
                    tier,
                    options,
                    max_wait=max_wait,
                    poll_interval=interval,
                )

    try:
        job = asyncio.run(run())
    except StorageError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    console.print()
    _print_job(job)
    _print_issues(job, limit)

    if job.status != ScanJobStatus.COMPLETED:
        raise typer.Exit(1)


@app.command()
def batch(
    urls: list[str] = typer.Argument(..., help="Pages to scan"),
    scan_type: str = typer.Option("single_page", "--type", "-t", help="single_page or multi_page"),
    tier: str = typer.Option("starter", "--tier", help="Customer tier"),
    concurrency: int = typer.Option(BATCH_CONCURRENCY, "--concurrency", help="Max concurrent scans"),
    data_dir: Path = DATA_DIR_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Scan several pages concurrently."""
    _configure_logging(verbose)
    store = _get_store(data_dir)
    try:
        requests = [ScanRequest(url=u, scan_type=scan_type, tier=tier) for u in urls]
    except ValidationError:
        console.print(f"[red]Error:[/red] Invalid scan type '{scan_type}'. Must be: single_page, multi_page")
        raise typer.Exit(1)

    console.print(f"\n[bold]Scanning {len(requests)} pages...[/bold]\n")

    async def run():
        async with _build_client() as client:
            orchestrator = ScanOrchestrator(client, store)
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
                console=console,
            ) as progress:
                task = progress.add_task("Scanning...", total=len(requests))

                def on_progress(current: int, total: int):
                    progress.update(task, completed=current)

                return await orchestrator.run_batch(
                    requests, concurrency=concurrency, progress_callback=on_progress
                )

    try:
        result = asyncio.run(run())
    except StorageError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    console.print(f"\n[bold green]Batch complete![/bold green]")
    summary_table = Table(title="Batch Summary")
    summary_table.add_column("Metric", style="cyan")
    summary_table.add_column("Count", justify="right", style="magenta")
    summary_table.add_row("Total", str(result.total))
    summary_table.add_row("Completed", str(result.completed))
    summary_table.add_row("Failed", str(result.failed))
    summary_table.add_row("Canceled", str(result.canceled))
    summary_table.add_row("Duration", f"{result.duration_seconds:.1f}s")
    console.print(summary_table)

    if result.failures:
        console.print(f"\n[yellow]Failed scans ({len(result.failures)}):[/yellow]")
        urls = {job.scan_id: job.url for job in result.jobs}
        for scan_id, error in list(result.failures.items())[:5]:
            console.print(f"  [dim]{urls[scan_id]} ({scan_id}):[/dim] {error[:80]}")
        if len(result.failures) > 5:
            console.print(f"  [dim]... and {len(result.failures) - 5} more[/dim]")
        raise typer.Exit(1)


@app.command()
def submit(
    url: str = typer.Argument(..., help="Page to scan"),
    scan_type: str = typer.Option("single_page", "--type", "-t", help="single_page or multi_page"),
    tier: str = typer.Option("starter", "--tier", help="Customer tier"),
    data_dir: Path = DATA_DIR_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Submit a scan without waiting for it."""
    _configure_logging(verbose)
    store = _get_store(data_dir)

    async def run() -> ScanJob:
        async with _build_client() as client:
            return await ScanOrchestrator(client, store).submit_scan(url, scan_type, tier)

    try:
        job = asyncio.run(run())
    except ScanServiceError as e:
        console.print(f"[red]Submission failed ({e.kind.value}):[/red] {e.message}")
        raise typer.Exit(1)
    except StorageError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    console.print(f"[green]Submitted[/green] {url}")
    console.print(f"  Scan ID: [cyan]{job.scan_id}[/cyan]")
    console.print(f"  Job ID:  {job.job_id}")
    if job.estimated_completion_time:
        console.print(f"  Estimated completion: {job.estimated_completion_time}")
    console.print(f"\n[dim]Run 'scanjobs status {job.scan_id}' to check progress[/dim]")


@app.command()
def status(
    scan_id: str = typer.Argument(..., help="Local scan id"),
    wait: bool = typer.Option(False, "--wait", "-w", help="Poll until the scan finishes"),
    max_wait: float = typer.Option(SHORT_POLL_MAX_WAIT, "--max-wait", help="Polling budget (seconds)"),
    detail: bool = typer.Option(False, "--detail", "-d", help="Show the scanner's current step"),
    data_dir: Path = DATA_DIR_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Check the status of a tracked scan."""
    _configure_logging(verbose)
    store = _get_store(data_dir)

    async def run() -> tuple[ScanJob, JobProgress | None]:
        async with _build_client() as client:
            orchestrator = ScanOrchestrator(client, store)
            if wait:
                job = await orchestrator.wait_for(
                    scan_id, max_wait=max_wait, poll_interval=SHORT_POLL_INTERVAL
                )
            else:
                job = await orchestrator.poll_status(scan_id)
            if not detail or job.is_terminal:
                return job, None
            try:
                return job, await client.fetch_progress(job.job_id)
            except ScanServiceError as e:
                logger.warning(f"No detailed progress for job {job.job_id}: {e.message}")
                return job, None

    try:
        job, remote_progress = asyncio.run(run())
    except ScanServiceError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)
    except StorageError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    console.print(f"{_status_text(job)} {job.progress}% - {job.message}")
    if remote_progress:
        console.print(
            f"[dim]Scanner step:[/dim] {remote_progress.current_step} "
            f"({remote_progress.detailed_status}, {remote_progress.progress}%)"
        )
    if job.result:
        color = _get_score_color(job.result.accessibility_score)
        console.print(
            f"Score: [{color}]{job.result.accessibility_score}[/{color}] "
            f"({job.result.total_issues} issues, {job.result.critical_issues} critical)"
        )


@app.command()
def cancel(
    scan_id: str = typer.Argument(..., help="Local scan id"),
    data_dir: Path = DATA_DIR_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Cancel a tracked scan."""
    _configure_logging(verbose)
    store = _get_store(data_dir)

    async def run() -> ScanJob:
        async with _build_client() as client:
            return await ScanOrchestrator(client, store).cancel_scan(scan_id)

    try:
        job = asyncio.run(run())
    except ScanServiceError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)
    except StorageError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    if job.status == ScanJobStatus.CANCELED:
        console.print(f"[yellow]Canceled[/yellow] scan {scan_id}")
    else:
        console.print(f"Scan {scan_id} already {_status_text(job)}")


@app.command()
def show(
    scan_id: str = typer.Argument(..., help="Local scan id"),
    limit: int = typer.Option(20, "--limit", "-l", help="Number of issues to show"),
    events: bool = typer.Option(False, "--events", help="Show the event trail"),
    data_dir: Path = DATA_DIR_OPTION,
) -> None:
    """Show a stored scan and its issues."""
    store = _get_store(data_dir)
    job = store.get(scan_id)
    if job is None:
        console.print(f"[red]Error:[/red] Scan '{scan_id}' not found")
        raise typer.Exit(1)

    _print_job(job)
    _print_issues(job, limit)

    if events:
        table = Table(title="Events")
        table.add_column("Time", style="dim")
        table.add_column("Event", style="cyan")
        table.add_column("Details")
        for event in store.events(scan_id):
            details = ", ".join(f"{k}={v}" for k, v in event.metadata.items() if v is not None)
            table.add_row(
                event.timestamp.strftime("%H:%M:%S"), event.event_type, _truncate(details, 80)
            )
        console.print(table)


@app.command("list")
def list_scans(
    status_filter: str = typer.Option(None, "--status", "-s", help="Filter by status"),
    limit: int = typer.Option(20, "--limit", "-l", help="Number of results"),
    data_dir: Path = DATA_DIR_OPTION,
) -> None:
    """List tracked scans, newest first."""
    store = _get_store(data_dir)
    jobs = list(reversed(store.list_jobs()))

    if status_filter:
        try:
            wanted = ScanJobStatus(status_filter.lower())
        except ValueError:
            console.print(f"[red]Error:[/red] Invalid status '{status_filter}'")
            raise typer.Exit(1)
        jobs = [j for j in jobs if j.status == wanted]

    if not jobs:
        console.print("[yellow]No scans found.[/yellow]")
        return

    table = Table(title=f"Scans ({len(jobs)})")
    table.add_column("Scan ID", style="cyan")
    table.add_column("URL")
    table.add_column("Status")
    table.add_column("Progress", justify="right")
    table.add_column("Score", justify="right")
    table.add_column("Submitted", style="dim")

    for job in jobs[:limit]:
        if job.result:
            color = _get_score_color(job.result.accessibility_score)
            score = f"[{color}]{job.result.accessibility_score}[/{color}]"
        else:
            score = "-"
        table.add_row(
            job.scan_id,
            _truncate(job.url, 50),
            _status_text(job),
            f"{job.progress}%",
            score,
            job.submitted_at.strftime("%Y-%m-%d %H:%M"),
        )

    console.print(table)


@app.command()
def health(verbose: bool = VERBOSE_OPTION) -> None:
    """Check that the scanner service is reachable."""
    _configure_logging(verbose)

    async def run() -> tuple[str, dict]:
        async with _build_client() as client:
            return client.base_url, await client.health_check()

    try:
        base_url, payload = asyncio.run(run())
    except ScanServiceError as e:
        console.print(f"[red]Unhealthy:[/red] {e.message}")
        raise typer.Exit(1)

    console.print(f"[green]Healthy:[/green] {base_url}")
    for key, value in payload.items():
        console.print(f"  [dim]{key}:[/dim] {value}")


if __name__ == "__main__":
    app()
