"""Command-line interface for FixTrace."""

import logging
from dataclasses import replace
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn

from fixtrace import __version__
from fixtrace.config import TrackerConfig, load_config
from fixtrace.errors import CatalogError, StoreError
from fixtrace.output.console import print_history, print_ledger, print_scan_result
from fixtrace.output.json_output import history_to_json, output_json
from fixtrace.signatures.catalog import builtin_catalog, builtin_registry, load_catalog
from fixtrace.tracker.engine import IssueTracker
from fixtrace.tracker.store import JsonFileStore

app = typer.Typer(
    name="fixtrace",
    help="Issue lifecycle tracking and backend-fix detection",
    add_completion=False,
    no_args_is_help=True,
)
console = Console()
err_console = Console(stderr=True)

FLAG_ON = {"on", "true", "yes", "1"}
FLAG_OFF = {"off", "false", "no", "0"}


def _configure_logging(level: str) -> None:
    package_logger = logging.getLogger("fixtrace")
    package_logger.setLevel(getattr(logging, level.upper(), logging.WARNING))
    if not any(isinstance(h, RichHandler) for h in package_logger.handlers):
        package_logger.addHandler(RichHandler(console=err_console, show_path=False))


def _build_tracker(config: TrackerConfig, catalog: Path | None) -> IssueTracker:
    store = JsonFileStore(config.store_path)
    if catalog is None:
        return IssueTracker(store, builtin_registry(store), builtin_catalog(), config=config)
    try:
        issues, registry = load_catalog(catalog, store)
    except CatalogError as e:
        console.print(f"[red]Invalid catalog: {escape(str(e))}[/red]")
        raise typer.Exit(2) from e
    return IssueTracker(store, registry, issues, config=config)


def _config(ctx: typer.Context) -> TrackerConfig:
    return ctx.obj


@app.command()
def scan(
    ctx: typer.Context,
    catalog: Path | None = typer.Option(
        None,
        "--catalog",
        "-c",
        help="JSON issue catalog (default: built-in catalog)",
        exists=True,
        dir_okay=False,
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output result as JSON to console",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Show detector states and fingerprints",
    ),
) -> None:
    """Run detectors, classify findings and record a snapshot.

    Findings whose remediation detector is now true are moved to
    backend-fixed and never reported again until an administrative reset.

    Examples:
        fixtrace scan
        fixtrace scan --json
        fixtrace scan --catalog issues.json --verbose
    """
    tracker = _build_tracker(_config(ctx), catalog)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        transient=True,
        console=err_console,
    ) as progress:
        progress.add_task(f"Running {len(tracker.registry)} detector(s)...", total=None)
        result = tracker.scan()

    if json_output:
        output_json(result)
    else:
        print_scan_result(result, verbose=verbose)

    # Exit with error code if any critical/high findings remain active
    if not result.is_clean:
        raise typer.Exit(1)


@app.command()
def history(
    ctx: typer.Context,
    json_output: bool = typer.Option(False, "--json", "-j", help="Output history as JSON"),
) -> None:
    """Show the retained scan snapshots, newest first."""
    tracker = _build_tracker(_config(ctx), None)
    snapshots = tracker.history()
    if json_output:
        console.print_json(history_to_json(snapshots))
    else:
        print_history(snapshots)


@app.command()
def ledger(
    ctx: typer.Context,
    audit: bool = typer.Option(False, "--audit", "-a", help="Also show the audit trail"),
) -> None:
    """Show permanently resolved fingerprints."""
    tracker = _build_tracker(_config(ctx), None)
    for warning in tracker.ledger.load():
        console.print(f"[yellow]{warning.kind.value}: {warning.message}[/yellow]")
    print_ledger(tracker.ledger.fingerprints(), tracker.ledger.audit_trail(), show_audit=audit)


@app.command()
def resolve(
    ctx: typer.Context,
    fingerprint: str = typer.Argument(..., help="Fingerprint to mark permanently resolved"),
    note: str | None = typer.Option(None, "--note", "-n", help="Note for the audit trail"),
) -> None:
    """Mark a finding permanently resolved in the ledger."""
    tracker = _build_tracker(_config(ctx), None)
    try:
        added = tracker.mark_resolved(fingerprint, note=note)
    except StoreError as e:
        console.print(f"[red]Could not update ledger: {e}[/red]")
        raise typer.Exit(1) from e
    if added:
        console.print(f"[green]Resolved:[/green] {escape(fingerprint)}")
    else:
        console.print(f"[dim]Already resolved: {escape(fingerprint)}[/dim]")


@app.command()
def flag(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="Flag key, e.g. mfa_enforcement_implemented"),
    state: str = typer.Argument(..., help="on or off"),
) -> None:
    """Set or clear a host flag read by the built-in detectors."""
    if state.lower() not in FLAG_ON | FLAG_OFF:
        console.print(f"[red]State must be one of: {', '.join(sorted(FLAG_ON | FLAG_OFF))}[/red]")
        raise typer.Exit(2)
    enabled = state.lower() in FLAG_ON
    store = JsonFileStore(_config(ctx).store_path)
    try:
        if enabled:
            store.set(key, "true")
        else:
            store.remove(key)
    except StoreError as e:
        console.print(f"[red]Could not update flag: {e}[/red]")
        raise typer.Exit(1) from e
    console.print(f"{escape(key)} = {'[green]true[/green]' if enabled else '[dim]unset[/dim]'}")


@app.command("clear-history")
def clear_history(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not prompt for confirmation"),
) -> None:
    """Drop snapshot history. The ledger and detector caches are kept."""
    if not yes:
        typer.confirm("Clear all scan history?", abort=True)
    tracker = _build_tracker(_config(ctx), None)
    try:
        tracker.clear_history()
    except StoreError as e:
        console.print(f"[red]Could not clear history: {e}[/red]")
        raise typer.Exit(1) from e
    console.print("[green]Scan history cleared[/green] [dim](ledger preserved)[/dim]")


@app.command()
def reset(
    ctx: typer.Context,
    reason: str = typer.Option(..., "--reason", "-r", help="Why the ledger is being cleared"),
    catalog: Path | None = typer.Option(
        None,
        "--catalog",
        "-c",
        help="JSON issue catalog whose detector caches to clear",
        exists=True,
        dir_okay=False,
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not prompt for confirmation"),
) -> None:
    """ADMINISTRATIVE: clear the resolution ledger and all detector caches.

    Every previously resolved finding becomes eligible to be reported again.
    """
    if not yes:
        typer.confirm(
            "This clears the resolution ledger and all detector caches. Continue?", abort=True
        )
    tracker = _build_tracker(_config(ctx), catalog)
    try:
        removed = tracker.administrative_reset(reason)
    except (StoreError, ValueError) as e:
        console.print(f"[red]Reset failed: {e}[/red]")
        raise typer.Exit(1) from e
    console.print(
        f"[bold red]Administrative reset:[/bold red] {removed} ledger entr"
        f"{'y' if removed == 1 else 'ies'} and {len(tracker.registry)} detector cache(s) cleared"
    )


@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"FixTrace v{__version__}")


@app.callback()
def main(
    ctx: typer.Context,
    store: Path | None = typer.Option(
        None,
        "--store",
        "-s",
        help="State file (default: $FIXTRACE_STORE or .fixtrace/state.json)",
    ),
    namespace: str | None = typer.Option(
        None,
        "--namespace",
        help="Key namespace inside the store (default: $FIXTRACE_NAMESPACE or fixtrace)",
    ),
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        help="Logging level (default: $FIXTRACE_LOG_LEVEL or WARNING)",
    ),
) -> None:
    """FixTrace - Issue lifecycle tracking and backend-fix detection.

    Track findings across scans, detect fixes applied in the backend and keep
    resolved issues from resurfacing.
    """
    try:
        config = load_config()
        overrides = {}
        if store is not None:
            overrides["store_path"] = store
        if namespace is not None:
            overrides["namespace"] = namespace
        if log_level is not None:
            overrides["log_level"] = log_level.upper()
        config = replace(config, **overrides)
    except ValueError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        raise typer.Exit(2) from e

    _configure_logging(config.log_level)
    ctx.obj = config


if __name__ == "__main__":
    app()
