"""Issue lifecycle tracking and backend-fix detection.

Architecture:
    Detectors (detectors.py)
        - Named boolean probes, each caching its last value in the store
        - Evaluated in registration order on every scan

    Backend-Fix Auto-Mover (automover.py, matching.py)
        - Findings matched by a true detector's patterns are retired
        - Their fingerprints enter the resolution ledger for good

    Diff Engine (diff.py)
        - new / existing / reappeared against the last snapshot
        - resolved = findings that stopped being produced

    Persistence (ledger.py, history.py, store.py)
        - Monotonic resolution ledger with an audit trail
        - Rolling history of the last 10 snapshots
"""

from fixtrace.tracker.automover import AutoMoveResult, auto_move
from fixtrace.tracker.detectors import Detector, DetectorRegistry, count_true_detectors
from fixtrace.tracker.diff import DiffResult, classify
from fixtrace.tracker.engine import IssueTracker
from fixtrace.tracker.fingerprint import fingerprint
from fixtrace.tracker.history import SnapshotHistory
from fixtrace.tracker.ledger import ResolutionLedger
from fixtrace.tracker.matching import PatternMatcher
from fixtrace.tracker.results import (
    DetectorResult,
    Finding,
    LifecycleStatus,
    ScanResult,
    ScanWarning,
    Severity,
    Snapshot,
    WarningKind,
)
from fixtrace.tracker.store import JsonFileStore, MemoryStore, StateStore

__all__ = [
    # Engine
    "IssueTracker",
    "ScanResult",
    "ScanWarning",
    "WarningKind",
    # Value types
    "Finding",
    "Severity",
    "LifecycleStatus",
    "DetectorResult",
    "Snapshot",
    "fingerprint",
    # Components
    "Detector",
    "DetectorRegistry",
    "count_true_detectors",
    "PatternMatcher",
    "auto_move",
    "AutoMoveResult",
    "classify",
    "DiffResult",
    "ResolutionLedger",
    "SnapshotHistory",
    # Stores
    "StateStore",
    "MemoryStore",
    "JsonFileStore",
]
