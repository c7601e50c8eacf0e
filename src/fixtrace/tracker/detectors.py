"""Detectors: named boolean probes plus the patterns of findings they remediate.

Each detector owns its cache key in the store. A successful probe refreshes
the cache; a failing probe falls back to the cached value so a transient
error never un-resolves something real. The registry runs every detector on
every scan, in registration order, and that order is the first-match order
used when moving findings to backend-fixed.
"""

import logging
from collections.abc import Callable, Iterable

from fixtrace.config import StoreKeys
from fixtrace.errors import StoreError
from fixtrace.tracker.results import DetectorResult, ScanWarning, WarningKind
from fixtrace.tracker.store import StateStore, dump_json, load_json

logger = logging.getLogger(__name__)

Probe = Callable[[], bool]


def _dedupe(patterns: Iterable[str]) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for p in patterns:
        if p and p not in seen:
            seen[p] = None
    return tuple(seen)


class Detector:
    """A named probe with its own cached boolean."""

    def __init__(
        self,
        name: str,
        probe: Probe,
        description: str = "",
        patterns: Iterable[str] = (),
    ):
        if not name.strip():
            raise ValueError("detector name must not be empty")
        self.name = name
        self.probe = probe
        self.description = description
        self.patterns = _dedupe(patterns)
        self.cache_key: str | None = None

    def bind(self, keys: StoreKeys) -> None:
        """Attach the detector to a store namespace."""
        self.cache_key = keys.detector(self.name)

    def _result(
        self, implemented: bool, from_cache: bool = False, error: str | None = None
    ) -> DetectorResult:
        return DetectorResult(
            name=self.name,
            implemented=implemented,
            detection_method=self.description,
            match_patterns=self.patterns,
            from_cache=from_cache,
            error=error,
        )

    def cached_value(
        self, store: StateStore, warnings: list[ScanWarning] | None = None
    ) -> bool | None:
        """Return the last persisted boolean, or None when absent or unreadable.

        An unreadable cache is logged and, when ``warnings`` is given,
        reported there as a store read failure.
        """
        if self.cache_key is None:
            return None
        try:
            value = load_json(store, self.cache_key)
        except StoreError as e:
            logger.warning("Detector cache for %s unreadable: %s", self.name, e)
            if warnings is not None:
                warnings.append(
                    ScanWarning(
                        kind=WarningKind.STORE_READ_FAILURE,
                        message=str(e),
                        key=self.cache_key,
                        detector=self.name,
                    )
                )
            return None
        return value if isinstance(value, bool) else None

    def evaluate(self, store: StateStore) -> tuple[DetectorResult, list[ScanWarning]]:
        """Run the probe, falling back to the cached value on failure.

        Args:
            store: Store holding the detector cache

        Returns:
            Tuple of (result, warnings)
        """
        if self.cache_key is None:
            raise RuntimeError(f"Detector {self.name!r} is not bound to a namespace")

        warnings: list[ScanWarning] = []
        try:
            value = self.probe()
        except Exception as e:
            return self._fallback(store, f"probe raised {type(e).__name__}: {e}", warnings)

        if not isinstance(value, bool):
            return self._fallback(
                store, f"probe returned {type(value).__name__}, expected bool", warnings
            )

        try:
            dump_json(store, self.cache_key, value)
        except StoreError as e:
            logger.warning("Could not cache detector %s: %s", self.name, e)
            warnings.append(
                ScanWarning(
                    kind=WarningKind.STORE_WRITE_FAILURE,
                    message=str(e),
                    key=self.cache_key,
                    detector=self.name,
                )
            )

        logger.debug("Detector %s: %s", self.name, "implemented" if value else "not detected")
        return self._result(value), warnings

    def _fallback(
        self, store: StateStore, reason: str, warnings: list[ScanWarning]
    ) -> tuple[DetectorResult, list[ScanWarning]]:
        cached = self.cached_value(store, warnings)
        implemented = bool(cached)
        logger.warning(
            "Detector %s failed (%s); using %s value %s",
            self.name,
            reason,
            "cached" if cached is not None else "default",
            implemented,
        )
        warnings.append(
            ScanWarning(
                kind=WarningKind.PROBE_FAILURE,
                message=reason,
                key=self.cache_key,
                detector=self.name,
            )
        )
        return self._result(implemented, from_cache=True, error=reason), warnings


class DetectorRegistry:
    """Ordered set of detectors evaluated together on each scan."""

    def __init__(self, detectors: Iterable[Detector] = ()):
        self._detectors: list[Detector] = []
        self._keys: StoreKeys | None = None
        for detector in detectors:
            self.register(detector)

    def register(self, detector: Detector) -> None:
        """Append a detector. Names must be unique."""
        if any(d.name == detector.name for d in self._detectors):
            raise ValueError(f"Duplicate detector name: {detector.name!r}")
        if self._keys is not None:
            detector.bind(self._keys)
        self._detectors.append(detector)

    def bind(self, keys: StoreKeys) -> None:
        self._keys = keys
        for detector in self._detectors:
            detector.bind(keys)

    @property
    def detectors(self) -> list[Detector]:
        return list(self._detectors)

    def names(self) -> list[str]:
        return [d.name for d in self._detectors]

    def cache_keys(self) -> list[str]:
        return [d.cache_key for d in self._detectors if d.cache_key is not None]

    def __len__(self) -> int:
        return len(self._detectors)

    def evaluate_all(self, store: StateStore) -> tuple[list[DetectorResult], list[ScanWarning]]:
        """Evaluate every detector in order. One failure never stops the rest.

        Returns:
            Tuple of (results in registration order, warnings)
        """
        results: list[DetectorResult] = []
        warnings: list[ScanWarning] = []
        for detector in self._detectors:
            result, detector_warnings = detector.evaluate(store)
            results.append(result)
            warnings.extend(detector_warnings)
        return results, warnings


def count_true_detectors(results: Iterable[DetectorResult]) -> int:
    """Count detectors currently reporting implemented=True."""
    return sum(1 for r in results if r.implemented)
