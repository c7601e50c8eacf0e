"""Pattern matching between findings and true detectors.

Matching is a heuristic: a pattern matches when it is a case-insensitive
substring of one of the finding's text fields. Unrelated findings that share
words can match. Detector order decides ties (first match wins).
"""

from collections.abc import Iterable, Sequence
from typing import Protocol

from fixtrace.tracker.results import DetectorResult, Finding

DEFAULT_FIELDS: tuple[str, ...] = ("kind", "message", "source")


class Matcher(Protocol):
    def match(
        self, finding: Finding, detector_results: Sequence[DetectorResult]
    ) -> DetectorResult | None: ...


class PatternMatcher:
    """First-match-wins substring matcher over selected finding fields."""

    def __init__(self, fields: Iterable[str] = DEFAULT_FIELDS):
        self.fields = tuple(fields)
        unknown = [f for f in self.fields if f not in DEFAULT_FIELDS]
        if unknown or not self.fields:
            raise ValueError(f"Matchable fields are {DEFAULT_FIELDS}, got {self.fields}")

    def matching_pattern(self, finding: Finding, patterns: Iterable[str]) -> str | None:
        """Return the first pattern found in the finding's fields, if any."""
        haystacks = [getattr(finding, name).lower() for name in self.fields]
        for pattern in patterns:
            needle = pattern.lower()
            if needle and any(needle in text for text in haystacks):
                return pattern
        return None

    def match(
        self, finding: Finding, detector_results: Sequence[DetectorResult]
    ) -> DetectorResult | None:
        """Return the first implemented detector whose patterns match.

        Args:
            finding: Finding to test
            detector_results: Detector results in registry order

        Returns:
            Matching DetectorResult, or None
        """
        for result in detector_results:
            if not result.implemented:
                continue
            if self.matching_pattern(finding, result.match_patterns) is not None:
                return result
        return None
