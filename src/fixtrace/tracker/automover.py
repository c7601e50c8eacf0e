"""Move findings whose remediation detector is now true to backend-fixed."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from fixtrace.tracker.ledger import ACTION_BACKEND_FIX, ResolutionLedger
from fixtrace.tracker.matching import Matcher, PatternMatcher
from fixtrace.tracker.results import DetectorResult, Finding, LifecycleStatus

logger = logging.getLogger(__name__)


@dataclass
class AutoMoveResult:
    still_active: list[Finding] = field(default_factory=list)
    backend_fixed: list[Finding] = field(default_factory=list)
    pairs: list[tuple[str, str]] = field(default_factory=list)  # (detector, fingerprint)

    @property
    def detector_names(self) -> list[str]:
        return sorted({name for name, _ in self.pairs})


def auto_move(
    active_findings: Sequence[Finding],
    detector_results: Sequence[DetectorResult],
    ledger: ResolutionLedger,
    matcher: Matcher | None = None,
    now: str = "",
) -> AutoMoveResult:
    """Retire findings matched by an implemented detector.

    Each finding matches at most one detector: the first in
    ``detector_results`` order. Matched fingerprints go into the ledger
    (in memory; the caller saves it).

    Args:
        active_findings: Findings produced this scan
        detector_results: Detector results in registry order
        ledger: Resolution ledger receiving matched fingerprints
        matcher: Matching policy (default: PatternMatcher over kind/message/source)
        now: Timestamp for ledger audit entries and ``last_seen``

    Returns:
        AutoMoveResult with the findings split and (detector, fingerprint) pairs
    """
    matcher = matcher or PatternMatcher()
    result = AutoMoveResult()

    for finding in active_findings:
        detector = matcher.match(finding, detector_results)
        if detector is None:
            result.still_active.append(finding)
            continue

        fixed = finding.with_status(
            LifecycleStatus.BACKEND_FIXED,
            fixed_by=detector.name,
            last_seen=now or finding.last_seen,
        )
        result.backend_fixed.append(fixed)
        result.pairs.append((detector.name, finding.fingerprint))
        if ledger.add(finding.fingerprint, ACTION_BACKEND_FIX, now, detector=detector.name):
            logger.info("Backend fix: %r resolved by %s", finding.message, detector.name)

    return result
