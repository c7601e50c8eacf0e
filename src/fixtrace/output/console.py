"""Rich console output for scan results, history and the ledger."""

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from fixtrace.tracker.ledger import AuditEntry
from fixtrace.tracker.results import (
    SEVERITY_ORDER,
    LifecycleStatus,
    ScanResult,
    Severity,
    Snapshot,
)

console = Console()

SEVERITY_COLORS = {
    Severity.CRITICAL: "red bold",
    Severity.HIGH: "red",
    Severity.MEDIUM: "yellow",
    Severity.LOW: "blue",
}

SEVERITY_ICONS = {
    Severity.CRITICAL: "[red]!![/red]",
    Severity.HIGH: "[red]![/red]",
    Severity.MEDIUM: "[yellow]*[/yellow]",
    Severity.LOW: "[blue]-[/blue]",
}

STATUS_STYLES = {
    LifecycleStatus.NEW: "bold magenta",
    LifecycleStatus.EXISTING: "dim",
    LifecycleStatus.REAPPEARED: "bold yellow",
    LifecycleStatus.RESOLVED: "green",
    LifecycleStatus.BACKEND_FIXED: "green bold",
}


def print_scan_result(result: ScanResult, verbose: bool = False) -> None:
    """Print one scan result to the console.

    Args:
        result: Scan result
        verbose: Also show detector states and fingerprints
    """
    console.print()
    if result.is_clean:
        status = "[green]NO CRITICAL/HIGH ISSUES[/green]"
    else:
        status = "[red]ACTIVE ISSUES[/red]"
    console.print(status)
    console.print(f"[bold]Scan {result.scan_id}[/bold] [dim]({result.timestamp})[/dim]")

    if result.active_findings:
        table = Table(box=box.SIMPLE, show_header=True, header_style="bold", padding=(0, 1))
        table.add_column("", width=3)
        table.add_column("Severity", width=9)
        table.add_column("Status", width=11)
        table.add_column("Finding", no_wrap=False)
        table.add_column("Source", style="cyan")
        if verbose:
            table.add_column("Fingerprint", style="dim", no_wrap=False)

        for finding in sorted(
            result.active_findings, key=lambda f: SEVERITY_ORDER.index(f.severity)
        ):
            style = SEVERITY_COLORS[finding.severity]
            status_style = STATUS_STYLES[finding.lifecycle_status]
            row = [
                SEVERITY_ICONS[finding.severity],
                f"[{style}]{finding.severity.value.upper()}[/{style}]",
                f"[{status_style}]{finding.lifecycle_status.value}[/{status_style}]",
                escape(finding.message),
                escape(finding.source),
            ]
            if verbose:
                row.append(escape(finding.fingerprint))
            table.add_row(*row)
        console.print(table)
    else:
        console.print("  [dim]No active findings[/dim]")

    if result.backend_fixed_findings:
        console.print()
        console.print("[bold green]Backend fixes detected:[/bold green]")
        for finding in result.backend_fixed_findings:
            fixed_by = escape(finding.fixed_by or "")
            console.print(
                f"  [green]+[/green] {escape(finding.message)} [dim](by {fixed_by})[/dim]"
            )

    if result.resolved_findings:
        console.print()
        console.print("[bold]No longer reported:[/bold]")
        for finding in result.resolved_findings:
            console.print(f"  [green]-[/green] {escape(finding.message)}")

    if verbose:
        _print_detectors(result)

    _print_warnings(result)
    console.print()
    _print_summary(result)


def _print_detectors(result: ScanResult) -> None:
    """Print detector states."""
    if not result.detector_results:
        return
    console.print()
    table = Table(box=box.SIMPLE, show_header=True, header_style="bold")
    table.add_column("Detector")
    table.add_column("State")
    table.add_column("Patterns", style="dim", no_wrap=False)
    for detector in result.detector_results:
        state = "[green]true[/green]" if detector.implemented else "[dim]false[/dim]"
        if detector.from_cache:
            state += " [yellow](cached)[/yellow]"
        table.add_row(
            escape(detector.name), state, escape(", ".join(detector.match_patterns))
        )
    console.print(table)


def _print_warnings(result: ScanResult) -> None:
    """Print scan warnings."""
    if not result.warnings:
        return
    console.print()
    console.print(f"[yellow]{len(result.warnings)} warning(s):[/yellow]")
    for warning in result.warnings:
        where = warning.detector or warning.key or ""
        suffix = f" [dim]({escape(where)})[/dim]" if where else ""
        console.print(f"  [yellow]{warning.kind.value}[/yellow]: {escape(warning.message)}{suffix}")


def _print_summary(result: ScanResult) -> None:
    """Print summary counts."""
    console.print(
        f"[bold]{len(result.active_findings)} active:[/bold] "
        f"[magenta]{result.new_count} new[/magenta], "
        f"[yellow]{result.reappeared_count} reappeared[/yellow], "
        f"{result.existing_count} existing"
    )
    console.print(
        f"  [green]{len(result.backend_fixed_findings)} backend-fixed[/green], "
        f"[green]{result.resolved_count} resolved[/green], "
        f"{result.true_detector_count} detector(s) true"
    )

    severity_counts = {sev: 0 for sev in Severity}
    for finding in result.active_findings:
        severity_counts[finding.severity] += 1
    parts = []
    for sev in SEVERITY_ORDER:
        count = severity_counts[sev]
        if count > 0:
            style = SEVERITY_COLORS[sev]
            parts.append(f"[{style}]{count} {sev.value}[/{style}]")
    if parts:
        console.print("  " + ", ".join(parts))


def print_history(snapshots: list[Snapshot]) -> None:
    """Print retained snapshots, newest first."""
    if not snapshots:
        console.print("[dim]No scan history[/dim]")
        return

    table = Table(box=box.SIMPLE, show_header=True, header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("Scan")
    table.add_column("Timestamp", style="dim")
    table.add_column("Active", justify="right")
    table.add_column("Detectors true", justify="right")
    table.add_column("Backend fixes by", no_wrap=False, style="green")
    for i, snapshot in enumerate(snapshots, start=1):
        table.add_row(
            str(i),
            snapshot.scan_id,
            snapshot.timestamp,
            str(len(snapshot.findings)),
            str(snapshot.true_detector_count),
            escape(", ".join(snapshot.auto_fixed_detector_names)),
        )
    console.print(table)


def print_ledger(
    fingerprints: list[str], audit: list[AuditEntry], show_audit: bool = False
) -> None:
    """Print the resolution ledger and, optionally, its audit trail."""
    if not fingerprints:
        console.print("[dim]Resolution ledger is empty[/dim]")
    else:
        console.print(f"[bold]{len(fingerprints)} permanently resolved fingerprint(s):[/bold]")
        for fp in fingerprints:
            console.print(f"  {escape(fp)}")

    if not show_audit:
        return
    console.print()
    if not audit:
        console.print("[dim]No audit entries[/dim]")
        return
    table = Table(box=box.SIMPLE, show_header=True, header_style="bold")
    table.add_column("Timestamp", style="dim")
    table.add_column("Action")
    table.add_column("Detector")
    table.add_column("Fingerprint / note", no_wrap=False)
    for entry in audit:
        action_style = "red bold" if entry.fingerprint is None else "cyan"
        table.add_row(
            entry.timestamp,
            f"[{action_style}]{entry.action}[/{action_style}]",
            escape(entry.detector or ""),
            escape(entry.fingerprint or entry.note or ""),
        )
    console.print(table)
