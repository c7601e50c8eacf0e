"""Pytest fixtures for FixTrace tests."""

from datetime import datetime, timedelta, timezone

import pytest

from fixtrace.config import TrackerConfig
from fixtrace.tracker.detectors import Detector, DetectorRegistry
from fixtrace.tracker.engine import IssueTracker
from fixtrace.tracker.results import Finding, Severity
from fixtrace.tracker.store import MemoryStore


class FakeClock:
    """Deterministic clock advancing one minute per call."""

    def __init__(self, start: datetime | None = None, step: timedelta = timedelta(minutes=1)):
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + self.step
        return current


class FindingFeed:
    """Mutable finding source standing in for a real enumerator."""

    def __init__(self, findings=()):
        self.findings = list(findings)
        self.calls = 0

    def __call__(self, detector_results=()):
        self.calls += 1
        return list(self.findings)


class Switch:
    """Probe whose answer tests can flip between scans."""

    def __init__(self, value=False):
        self.value = value
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if isinstance(self.value, Exception):
            raise self.value
        return self.value


class FailingStore(MemoryStore):
    """MemoryStore that refuses writes to selected keys."""

    def __init__(self, fail_keys=()):
        super().__init__()
        self.fail_keys = set(fail_keys)

    def set(self, key: str, value: str) -> None:
        if key in self.fail_keys:
            raise OSError(f"disk full writing {key}")
        super().set(key, value)


@pytest.fixture
def store():
    """Empty in-memory store."""
    return MemoryStore()


@pytest.fixture
def clock():
    """Deterministic clock."""
    return FakeClock()


@pytest.fixture
def config():
    """Default tracker configuration."""
    return TrackerConfig()


@pytest.fixture
def mfa_finding():
    """Unremediated MFA finding."""
    return Finding(
        kind="Security Vulnerability",
        message="Multi-Factor Authentication is not implemented for admin users",
        source="Security Scanner",
        severity=Severity.CRITICAL,
        remediation_key="mfa_enforcement_implemented",
    )


@pytest.fixture
def debug_finding():
    """Debug mode finding, unrelated to MFA."""
    return Finding(
        kind="Security Vulnerability",
        message="Debug mode is enabled in production environment",
        source="Security Scanner",
        severity=Severity.HIGH,
    )


@pytest.fixture
def mfa_switch():
    """Probe for the MFA detector, initially false."""
    return Switch(False)


@pytest.fixture
def make_tracker(store, clock):
    """Factory building a tracker with one MFA detector over a finding feed."""

    def _make(findings=(), probe=None, target_store=None, namespace="fixtrace", detectors=None):
        feed = FindingFeed(findings)
        if detectors is None:
            detectors = [
                Detector(
                    "MFA Implementation",
                    probe or Switch(False),
                    patterns=["mfa", "multi-factor authentication"],
                )
            ]
        tracker = IssueTracker(
            target_store if target_store is not None else store,
            DetectorRegistry(detectors),
            feed,
            config=TrackerConfig(namespace=namespace),
            clock=clock,
        )
        return tracker, feed

    return _make


@pytest.fixture
def failing_store():
    """Store whose writes fail for keys added to ``fail_keys``."""
    return FailingStore()


@pytest.fixture
def switch():
    """Factory for flippable probes."""
    return Switch
