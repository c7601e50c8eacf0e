"""JSON output for scan results."""

import json
import sys
from typing import TextIO

from fixtrace.tracker.results import ScanResult, Snapshot


def output_json(
    result: ScanResult,
    file: TextIO | None = None,
    indent: int = 2,
) -> None:
    """Output a scan result as JSON.

    Args:
        result: Scan result
        file: Output file (default: stdout)
        indent: JSON indentation level
    """
    file = file or sys.stdout
    output = {
        "result": result.to_dict(),
        "summary": _generate_summary(result),
    }
    json.dump(output, file, indent=indent)
    file.write("\n")


def _generate_summary(result: ScanResult) -> dict:
    """Generate summary statistics for a result.

    Args:
        result: Scan result

    Returns:
        Summary dictionary
    """
    severity_counts: dict[str, int] = {}
    for finding in result.active_findings:
        sev = finding.severity.value
        severity_counts[sev] = severity_counts.get(sev, 0) + 1

    fixed_by: dict[str, int] = {}
    for name, _ in result.auto_fix_pairs:
        fixed_by[name] = fixed_by.get(name, 0) + 1

    return {
        "active": len(result.active_findings),
        "new": result.new_count,
        "existing": result.existing_count,
        "reappeared": result.reappeared_count,
        "resolved": result.resolved_count,
        "backend_fixed": len(result.backend_fixed_findings),
        "true_detectors": result.true_detector_count,
        "findings_by_severity": severity_counts,
        "backend_fixes_by_detector": fixed_by,
        "warnings": len(result.warnings),
    }


def history_to_json(snapshots: list[Snapshot], indent: int = 2) -> str:
    """Convert snapshot history to a JSON string.

    Args:
        snapshots: Snapshots, newest first
        indent: JSON indentation level

    Returns:
        JSON string
    """
    return json.dumps({"snapshots": [s.to_dict() for s in snapshots]}, indent=indent)
