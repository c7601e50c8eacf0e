"""Output formatters for scan results."""

from fixtrace.output.console import print_history, print_ledger, print_scan_result
from fixtrace.output.json_output import history_to_json, output_json

__all__ = ["print_scan_result", "print_history", "print_ledger", "output_json", "history_to_json"]
