"""Classify a scan's findings against the previous snapshot and the ledger.

Buckets:
    skipped     fingerprint is in the resolution ledger; never reported active
    existing    present in the most recent snapshot
    reappeared  absent from the most recent snapshot, present in an older one
    new         never seen in retained history
    resolved    in the most recent snapshot, no longer produced this scan
"""

from collections.abc import Container, Sequence
from dataclasses import dataclass, field

from fixtrace.tracker.results import Finding, LifecycleStatus, Snapshot


@dataclass
class DiffResult:
    new: list[Finding] = field(default_factory=list)
    existing: list[Finding] = field(default_factory=list)
    reappeared: list[Finding] = field(default_factory=list)
    resolved: list[Finding] = field(default_factory=list)
    skipped: list[Finding] = field(default_factory=list)

    @property
    def active(self) -> list[Finding]:
        """Active findings in bucket order: new, reappeared, existing."""
        return [*self.new, *self.reappeared, *self.existing]


def _earliest(first: str, second: str) -> str:
    if not first:
        return second
    if not second:
        return first
    return min(first, second)


def classify(
    current_findings: Sequence[Finding],
    last_snapshot: Snapshot | None,
    ledger: Container[str],
    history: Sequence[Snapshot] = (),
    produced_fingerprints: set[str] | None = None,
    now: str = "",
) -> DiffResult:
    """Sort the current findings into lifecycle buckets.

    Args:
        current_findings: Findings still candidates for the active set
        last_snapshot: Most recent snapshot, None on the first scan
        ledger: Fingerprints that must never be active (anything supporting ``in``)
        history: All retained snapshots, newest first; used to detect reappearance
        produced_fingerprints: Fingerprints produced this scan before any were
            moved to backend-fixed. Defaults to those of ``current_findings``.
        now: Timestamp stamped as ``last_seen`` (and ``first_detected`` when new)

    Returns:
        DiffResult with every non-ledger finding in exactly one active bucket
    """
    result = DiffResult()
    prior = {f.fingerprint: f for f in last_snapshot.findings} if last_snapshot else {}

    older: dict[str, Finding] = {}
    for snapshot in history:
        if last_snapshot is not None and snapshot.scan_id == last_snapshot.scan_id:
            continue
        for f in snapshot.findings:
            # History is newest first, so the last write is the oldest sighting
            older[f.fingerprint] = f

    seen: set[str] = set()
    for finding in current_findings:
        fp = finding.fingerprint
        if fp in seen:
            continue
        seen.add(fp)

        if fp in ledger:
            result.skipped.append(finding)
        elif fp in prior:
            first = _earliest(prior[fp].first_detected, finding.first_detected) or now
            result.existing.append(
                finding.with_status(LifecycleStatus.EXISTING, first_detected=first, last_seen=now)
            )
        elif fp in older:
            first = _earliest(older[fp].first_detected, finding.first_detected) or now
            result.reappeared.append(
                finding.with_status(
                    LifecycleStatus.REAPPEARED, first_detected=first, last_seen=now
                )
            )
        else:
            result.new.append(
                finding.with_status(
                    LifecycleStatus.NEW,
                    first_detected=finding.first_detected or now,
                    last_seen=now,
                )
            )

    produced = produced_fingerprints if produced_fingerprints is not None else seen
    for fp, previous in prior.items():
        if fp not in produced:
            result.resolved.append(previous.with_status(LifecycleStatus.RESOLVED))

    return result
