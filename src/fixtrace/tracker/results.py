"""Result data structures for issue tracking scans."""

import json
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from fixtrace.tracker.fingerprint import fingerprint as compute_fingerprint


class Severity(Enum):
    """Severity levels for findings."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


SEVERITY_ORDER = [Severity.CRITICAL, Severity.HIGH, Severity.MEDIUM, Severity.LOW]


class LifecycleStatus(Enum):
    """Where a finding stands relative to prior scans."""

    NEW = "new"
    EXISTING = "existing"
    REAPPEARED = "reappeared"
    RESOLVED = "resolved"  # No longer produced; not written to the ledger
    BACKEND_FIXED = "backend_fixed"  # Matched a true detector; in the ledger


ACTIVE_STATUSES = (LifecycleStatus.NEW, LifecycleStatus.EXISTING, LifecycleStatus.REAPPEARED)


@dataclass
class Finding:
    """One observed condition at scan time."""

    kind: str
    message: str
    source: str
    severity: Severity
    remediation_key: str | None = None
    lifecycle_status: LifecycleStatus = LifecycleStatus.NEW
    first_detected: str = ""
    last_seen: str = ""
    fixed_by: str | None = None  # Detector name, backend_fixed only
    fingerprint: str = field(init=False)

    def __post_init__(self) -> None:
        self.fingerprint = compute_fingerprint(self.kind, self.message, self.source)

    def with_status(self, status: LifecycleStatus, **changes: Any) -> "Finding":
        """Return a copy carrying a new lifecycle status."""
        return replace(self, lifecycle_status=status, **changes)

    def to_dict(self) -> dict[str, Any]:
        """Convert finding to dictionary."""
        return {
            "kind": self.kind,
            "message": self.message,
            "source": self.source,
            "severity": self.severity.value,
            "remediation_key": self.remediation_key,
            "fingerprint": self.fingerprint,
            "lifecycle_status": self.lifecycle_status.value,
            "first_detected": self.first_detected,
            "last_seen": self.last_seen,
            "fixed_by": self.fixed_by,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Finding":
        """Rebuild a finding from ``to_dict`` output.

        Raises KeyError, ValueError or TypeError on malformed input. The
        stored fingerprint is ignored and recomputed from the fields.
        """
        return cls(
            kind=str(data["kind"]),
            message=str(data["message"]),
            source=str(data["source"]),
            severity=Severity(data["severity"]),
            remediation_key=data.get("remediation_key"),
            lifecycle_status=LifecycleStatus(data.get("lifecycle_status", "new")),
            first_detected=str(data.get("first_detected", "")),
            last_seen=str(data.get("last_seen", "")),
            fixed_by=data.get("fixed_by"),
        )


@dataclass(frozen=True)
class DetectorResult:
    """Outcome of one named detector for one scan."""

    name: str
    implemented: bool
    detection_method: str = ""
    match_patterns: tuple[str, ...] = ()
    from_cache: bool = False  # Probe failed; value is the last persisted one
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "implemented": self.implemented,
            "detection_method": self.detection_method,
            "match_patterns": list(self.match_patterns),
            "from_cache": self.from_cache,
            "error": self.error,
        }


@dataclass
class Snapshot:
    """One historical scan outcome."""

    timestamp: str
    scan_id: str
    findings: list[Finding] = field(default_factory=list)
    true_detector_count: int = 0
    auto_fixed_detector_names: list[str] = field(default_factory=list)

    @property
    def fingerprints(self) -> set[str]:
        return {f.fingerprint for f in self.findings}

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "scan_id": self.scan_id,
            "findings": [f.to_dict() for f in self.findings],
            "true_detector_count": self.true_detector_count,
            "auto_fixed_detector_names": list(self.auto_fixed_detector_names),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Snapshot":
        """Rebuild a snapshot. Raises KeyError, ValueError or TypeError on bad input."""
        findings = data.get("findings", [])
        names = data.get("auto_fixed_detector_names", [])
        if not isinstance(findings, list) or not isinstance(names, list):
            raise TypeError("snapshot findings and detector names must be lists")
        return cls(
            timestamp=str(data["timestamp"]),
            scan_id=str(data["scan_id"]),
            findings=[Finding.from_dict(f) for f in findings],
            true_detector_count=int(data.get("true_detector_count", 0)),
            auto_fixed_detector_names=[str(n) for n in names],
        )


class WarningKind(Enum):
    """Non-fatal problems reported alongside a scan result."""

    PROBE_FAILURE = "probe_failure"
    STORE_READ_FAILURE = "store_read_failure"
    STORE_WRITE_FAILURE = "store_write_failure"
    INVARIANT_VIOLATION = "invariant_violation"
    ENUMERATION_FAILURE = "enumeration_failure"


@dataclass(frozen=True)
class ScanWarning:
    kind: WarningKind
    message: str
    key: str | None = None
    detector: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "key": self.key,
            "detector": self.detector,
        }


@dataclass
class ScanResult:
    """Complete result of one scan."""

    scan_id: str
    timestamp: str
    active_findings: list[Finding] = field(default_factory=list)
    backend_fixed_findings: list[Finding] = field(default_factory=list)
    resolved_findings: list[Finding] = field(default_factory=list)
    true_detector_count: int = 0
    detector_results: list[DetectorResult] = field(default_factory=list)
    auto_fix_pairs: list[tuple[str, str]] = field(default_factory=list)  # (detector, fingerprint)
    warnings: list[ScanWarning] = field(default_factory=list)

    def _count(self, status: LifecycleStatus) -> int:
        return sum(1 for f in self.active_findings if f.lifecycle_status == status)

    @property
    def new_count(self) -> int:
        return self._count(LifecycleStatus.NEW)

    @property
    def existing_count(self) -> int:
        return self._count(LifecycleStatus.EXISTING)

    @property
    def reappeared_count(self) -> int:
        return self._count(LifecycleStatus.REAPPEARED)

    @property
    def resolved_count(self) -> int:
        return len(self.resolved_findings)

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)

    @property
    def is_clean(self) -> bool:
        """Check if no critical/high findings remain active."""
        return not any(
            f.severity in (Severity.CRITICAL, Severity.HIGH) for f in self.active_findings
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert scan result to dictionary."""
        return {
            "scan_id": self.scan_id,
            "timestamp": self.timestamp,
            "active_findings": [f.to_dict() for f in self.active_findings],
            "backend_fixed_findings": [f.to_dict() for f in self.backend_fixed_findings],
            "resolved_findings": [f.to_dict() for f in self.resolved_findings],
            "new_count": self.new_count,
            "existing_count": self.existing_count,
            "reappeared_count": self.reappeared_count,
            "resolved_count": self.resolved_count,
            "true_detector_count": self.true_detector_count,
            "detector_results": [r.to_dict() for r in self.detector_results],
            "auto_fix_pairs": [
                {"detector": name, "fingerprint": fp} for name, fp in self.auto_fix_pairs
            ],
            "warnings": [w.to_dict() for w in self.warnings],
        }

    def to_json(self) -> str:
        """Convert scan result to JSON string."""
        return json.dumps(self.to_dict(), indent=2)
