"""Issue tracker: runs detectors, classifies findings, persists history.

One scan:
    1. Evaluate every detector (failures fall back to cached values)
    2. Enumerate the current findings
    3. Move findings matched by a true detector to backend-fixed (ledger)
    4. Classify the rest against the last snapshot, history and ledger
    5. Record the snapshot and persist ledger, history and detector count

A scan never raises for store, probe or invariant problems; they come back
as ``ScanResult.warnings``. At most one scan may run against a store at a
time; the tracker does no locking of its own.
"""

import logging
import uuid
from collections.abc import Callable, Sequence
from datetime import datetime, timedelta, timezone

from fixtrace.config import TrackerConfig
from fixtrace.errors import StoreError
from fixtrace.tracker.automover import auto_move
from fixtrace.tracker.detectors import DetectorRegistry, count_true_detectors
from fixtrace.tracker.diff import classify
from fixtrace.tracker.history import SnapshotHistory
from fixtrace.tracker.ledger import ACTION_MANUAL_RESOLVE, ResolutionLedger
from fixtrace.tracker.matching import Matcher, PatternMatcher
from fixtrace.tracker.results import (
    DetectorResult,
    Finding,
    ScanResult,
    ScanWarning,
    Snapshot,
    WarningKind,
)
from fixtrace.tracker.store import StateStore, dump_json, load_json, remove_key

logger = logging.getLogger(__name__)

FindingSource = Callable[[Sequence[DetectorResult]], Sequence[Finding]]
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_scan_id(moment: datetime) -> str:
    return f"scan_{moment:%Y%m%dT%H%M%S}_{uuid.uuid4().hex[:8]}"


class IssueTracker:
    """Stateful scan engine bound to one store and namespace."""

    def __init__(
        self,
        store: StateStore,
        registry: DetectorRegistry,
        enumerate_findings: FindingSource,
        config: TrackerConfig | None = None,
        matcher: Matcher | None = None,
        clock: Clock | None = None,
    ):
        """
        Initialize the tracker.

        Args:
            store: Persistent state store
            registry: Detectors, in first-match order
            enumerate_findings: Callable producing this scan's findings from
                the detector results
            config: Namespace and retention settings
            matcher: Finding-to-detector matching policy
            clock: Source of aware datetimes (default: UTC now)
        """
        self.store = store
        self.config = config or TrackerConfig()
        self.keys = self.config.keys()
        self.registry = registry
        self.registry.bind(self.keys)
        self.enumerate_findings = enumerate_findings
        self.matcher = matcher or PatternMatcher()
        self.clock = clock or utc_now
        self.ledger = ResolutionLedger(
            store, self.keys.ledger, self.keys.audit, self.config.audit_limit
        )
        self._history = SnapshotHistory(store, self.keys.history)

    def _timestamp(self) -> str:
        return self.clock().isoformat()

    def _scan_moment(self) -> datetime:
        """Current time, nudged forward so history stays strictly newest-first."""
        moment = self.clock()
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        head = self._history.latest()
        if head is not None:
            head_moment = datetime.fromisoformat(head.timestamp)
            if head_moment.tzinfo is None:
                head_moment = head_moment.replace(tzinfo=timezone.utc)
            if moment <= head_moment:
                moment = head_moment + timedelta(microseconds=1)
        return moment

    @staticmethod
    def count_true_detectors(detector_results: Sequence[DetectorResult]) -> int:
        return count_true_detectors(detector_results)

    def scan(self) -> ScanResult:
        """Run one scan and persist its outcome.

        Returns:
            ScanResult with active, backend-fixed and resolved findings plus
            any warnings raised along the way
        """
        warnings: list[ScanWarning] = []
        warnings.extend(self._history.load())
        warnings.extend(self.ledger.load())

        moment = self._scan_moment()
        now = moment.isoformat()
        scan_id = new_scan_id(moment)

        detector_results, detector_warnings = self.registry.evaluate_all(self.store)
        warnings.extend(detector_warnings)
        true_count = count_true_detectors(detector_results)

        try:
            current = list(self.enumerate_findings(detector_results))
        except Exception as e:
            # Persisting an empty scan would report every finding as resolved
            logger.error("Finding enumeration failed, scan %s not recorded: %s", scan_id, e)
            warnings.append(
                ScanWarning(
                    kind=WarningKind.ENUMERATION_FAILURE,
                    message=f"{type(e).__name__}: {e}",
                )
            )
            return ScanResult(
                scan_id=scan_id,
                timestamp=now,
                true_detector_count=true_count,
                detector_results=detector_results,
                warnings=warnings,
            )

        produced = {f.fingerprint for f in current}
        moved = auto_move(current, detector_results, self.ledger, self.matcher, now)
        diff = classify(
            moved.still_active,
            self._history.latest(),
            self.ledger,
            history=self._history.snapshots,
            produced_fingerprints=produced,
            now=now,
        )
        active = self._enforce_ledger(diff.active, warnings)

        self._history.append(
            Snapshot(
                timestamp=now,
                scan_id=scan_id,
                findings=active,
                true_detector_count=true_count,
                auto_fixed_detector_names=moved.detector_names,
            )
        )
        self._persist(true_count, warnings)

        result = ScanResult(
            scan_id=scan_id,
            timestamp=now,
            active_findings=active,
            backend_fixed_findings=moved.backend_fixed,
            resolved_findings=diff.resolved,
            true_detector_count=true_count,
            detector_results=detector_results,
            auto_fix_pairs=moved.pairs,
            warnings=warnings,
        )
        logger.info(
            "Scan %s: %d active (%d new, %d reappeared, %d existing), "
            "%d backend-fixed, %d resolved, %d warning(s)",
            scan_id,
            len(active),
            result.new_count,
            result.reappeared_count,
            result.existing_count,
            len(moved.backend_fixed),
            result.resolved_count,
            len(warnings),
        )
        return result

    def _enforce_ledger(self, active: list[Finding], warnings: list[ScanWarning]) -> list[Finding]:
        """Drop any ledger member that reached the active set."""
        leaked = [f for f in active if f.fingerprint in self.ledger]
        if not leaked:
            return active
        for finding in leaked:
            logger.error("Ledger member %s reached the active set; filtered", finding.fingerprint)
            warnings.append(
                ScanWarning(
                    kind=WarningKind.INVARIANT_VIOLATION,
                    message=f"ledger member {finding.fingerprint} was classified active",
                    key=self.keys.ledger,
                )
            )
        return [f for f in active if f.fingerprint not in self.ledger]

    def _persist(self, true_count: int, warnings: list[ScanWarning]) -> None:
        writes: list[tuple[str, Callable[[], None]]] = [
            (self.keys.ledger, self.ledger.save),
            (self.keys.history, self._history.save),
            (
                self.keys.true_detector_count,
                lambda: dump_json(self.store, self.keys.true_detector_count, true_count),
            ),
        ]
        for key, write in writes:
            try:
                write()
            except StoreError as e:
                logger.error(
                    "Write to %s failed; next scan may diff against stale state: %s", key, e
                )
                warnings.append(
                    ScanWarning(
                        kind=WarningKind.STORE_WRITE_FAILURE, message=str(e), key=e.key or key
                    )
                )

    def history(self) -> list[Snapshot]:
        """Return retained snapshots, newest first."""
        for warning in self._history.load():
            logger.warning("History: %s", warning.message)
        return self._history.snapshots

    def last_true_detector_count(self) -> int | None:
        """Aggregate written by the most recent scan, None if unavailable."""
        try:
            value = load_json(self.store, self.keys.true_detector_count)
        except StoreError as e:
            logger.warning("True-detector count unreadable: %s", e)
            return None
        return value if isinstance(value, int) and not isinstance(value, bool) else None

    def mark_resolved(self, target: Finding | str, note: str | None = None) -> bool:
        """Explicitly add a finding to the resolution ledger.

        Args:
            target: Finding or fingerprint
            note: Optional operator note for the audit trail

        Returns:
            True if newly added, False if it was already resolved

        Raises:
            StoreWriteError: the ledger could not be written
        """
        fp = target.fingerprint if isinstance(target, Finding) else target
        self.ledger.load()
        added = self.ledger.add(fp, ACTION_MANUAL_RESOLVE, self._timestamp(), note=note)
        self.ledger.save()
        if added:
            logger.info("Marked resolved: %s", fp)
        return added

    def administrative_reset(self, reason: str) -> int:
        """Clear the resolution ledger and every detector cache.

        This is the only path that removes ledger entries. It is never called
        by ``scan()``.

        Args:
            reason: Why the reset was performed, kept in the audit trail

        Returns:
            Number of ledger fingerprints removed

        Raises:
            StoreWriteError: a key could not be cleared
        """
        if not reason.strip():
            raise ValueError("administrative reset requires a reason")
        logger.warning(
            "ADMINISTRATIVE RESET requested (namespace=%s): %s", self.keys.namespace, reason
        )
        self.ledger.load()
        removed = self.ledger.clear(reason, self._timestamp())
        for key in [*self.registry.cache_keys(), self.keys.true_detector_count]:
            remove_key(self.store, key)
        logger.warning(
            "ADMINISTRATIVE RESET complete: %d ledger entries and %d detector caches cleared",
            removed,
            len(self.registry),
        )
        return removed

    def clear_history(self) -> None:
        """Drop snapshot history. Ledger and detector caches are preserved.

        Raises:
            StoreWriteError: the history key could not be removed
        """
        self._history.clear()
        logger.warning("Snapshot history cleared (ledger and detector caches preserved)")
