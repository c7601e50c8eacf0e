"""Tests for lifecycle classification."""

from fixtrace.tracker.diff import classify
from fixtrace.tracker.results import Finding, LifecycleStatus, Severity, Snapshot


def finding(message: str, first_detected: str = "") -> Finding:
    return Finding("Kind", message, "Scanner", Severity.MEDIUM, first_detected=first_detected)


def snap(scan_id: str, timestamp: str, findings) -> Snapshot:
    return Snapshot(timestamp=timestamp, scan_id=scan_id, findings=list(findings))


class TestClassify:
    """Test bucket assignment."""

    def test_first_scan_everything_new(self):
        """Test all findings are new without a prior snapshot."""
        result = classify([finding("a"), finding("b")], None, set(), now="t1")

        assert [f.message for f in result.new] == ["a", "b"]
        assert all(f.lifecycle_status == LifecycleStatus.NEW for f in result.new)
        assert all(f.first_detected == "t1" and f.last_seen == "t1" for f in result.new)
        assert result.existing == result.reappeared == result.resolved == []

    def test_existing_keeps_first_detected(self):
        """Test existing findings keep their first detection time."""
        prior = snap("s1", "t1", [finding("a", first_detected="t0")])

        result = classify([finding("a")], prior, set(), history=[prior], now="t2")

        assert len(result.existing) == 1
        assert result.existing[0].first_detected == "t0"
        assert result.existing[0].last_seen == "t2"
        assert result.new == []

    def test_resolved_when_no_longer_produced(self):
        """Test findings missing from this scan are resolved."""
        prior = snap("s1", "t1", [finding("a"), finding("b")])

        result = classify([finding("a")], prior, set(), history=[prior], now="t2")

        assert [f.message for f in result.resolved] == ["b"]
        assert result.resolved[0].lifecycle_status == LifecycleStatus.RESOLVED

    def test_produced_fingerprints_override(self):
        """A finding moved elsewhere this scan is not reported as resolved."""
        a = finding("a")
        prior = snap("s1", "t1", [a])

        result = classify([], prior, set(), produced_fingerprints={a.fingerprint}, now="t2")

        assert result.resolved == []

    def test_reappeared_from_older_snapshot(self):
        """Test a finding seen in older history is reappeared."""
        older = snap("s1", "t1", [finding("a", first_detected="t1")])
        last = snap("s2", "t2", [])

        result = classify([finding("a")], last, set(), history=[last, older], now="t3")

        assert len(result.reappeared) == 1
        assert result.reappeared[0].lifecycle_status == LifecycleStatus.REAPPEARED
        assert result.reappeared[0].first_detected == "t1"

    def test_ledger_members_skipped(self):
        """Test ledger members are skipped, not resolved."""
        a, b = finding("a"), finding("b")
        prior = snap("s1", "t1", [a])

        result = classify([a, b], prior, {a.fingerprint}, history=[prior], now="t2")

        assert result.skipped == [a]
        assert [f.message for f in result.active] == ["b"]
        assert result.resolved == []

    def test_duplicates_collapse(self):
        """Test findings with the same fingerprint collapse."""
        result = classify([finding("a"), finding("A "), finding("a")], None, set(), now="t1")
        assert len(result.new) == 1

    def test_every_finding_in_exactly_one_bucket(self):
        """Test each current finding lands in exactly one bucket."""
        older = snap("s1", "t1", [finding("r")])
        last = snap("s2", "t2", [finding("e"), finding("gone")])
        current = [finding("n"), finding("e"), finding("r"), finding("l")]
        ledger = {finding("l").fingerprint}

        result = classify(current, last, ledger, history=[last, older], now="t3")

        buckets = [result.new, result.existing, result.reappeared, result.skipped]
        placed = [f.fingerprint for bucket in buckets for f in bucket]
        assert sorted(placed) == sorted(f.fingerprint for f in current)
        assert len(placed) == len(set(placed))
        assert [f.message for f in result.active] == ["n", "r", "e"]
        assert [f.message for f in result.resolved] == ["gone"]
