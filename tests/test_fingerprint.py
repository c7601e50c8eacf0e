"""Tests for finding fingerprints."""

from fixtrace.tracker.fingerprint import fingerprint, normalize_field
from fixtrace.tracker.results import Finding, Severity


class TestNormalizeField:
    """Test field normalization."""

    def test_lowercases_and_trims(self):
        """Test case and surrounding whitespace are normalized."""
        assert normalize_field("  Security Scanner ") == "security_scanner"

    def test_collapses_whitespace_runs(self):
        """Test whitespace runs become one delimiter."""
        assert normalize_field("Debug \t mode\n\nenabled") == "debug_mode_enabled"

    def test_empty_field(self):
        """Test a blank field normalizes to empty."""
        assert normalize_field("   ") == ""

    def test_reserved_characters_escaped(self):
        """Test literal separator and delimiter characters are escaped."""
        assert normalize_field("a|b") == "a\\|b"
        assert normalize_field("foo_bar") == "foo\\_bar"
        assert normalize_field("C:\\Temp") == "c:\\\\temp"


class TestFingerprint:
    """Test fingerprint identity."""

    def test_deterministic(self):
        """Same triple yields the same fingerprint on every call."""
        first = fingerprint("Security Vulnerability", "MFA missing", "Security Scanner")
        second = fingerprint("Security Vulnerability", "MFA missing", "Security Scanner")
        assert first == second
        assert first == "security_vulnerability|mfa_missing|security_scanner"

    def test_case_and_spacing_insensitive(self):
        """Test case and spacing differences share a fingerprint."""
        a = fingerprint("Security Vulnerability", "MFA  missing", "Security Scanner")
        b = fingerprint("security vulnerability", " mfa missing ", "SECURITY SCANNER")
        assert a == b

    def test_fields_are_not_interchangeable(self):
        """Test field order matters."""
        a = fingerprint("kind", "message", "source")
        b = fingerprint("message", "kind", "source")
        assert a != b

    def test_separator_inside_field_does_not_collide(self):
        """Test a field containing the separator cannot mimic a field boundary."""
        assert fingerprint("a|b", "c", "d") != fingerprint("a", "b|c", "d")

    def test_literal_delimiter_distinct_from_whitespace(self):
        """Test an underscore in the text differs from a collapsed space."""
        assert fingerprint("k", "foo bar", "s") != fingerprint("k", "foo_bar", "s")

    def test_finding_carries_fingerprint(self, mfa_finding):
        """Test findings compute their fingerprint."""
        assert mfa_finding.fingerprint == fingerprint(
            mfa_finding.kind, mfa_finding.message, mfa_finding.source
        )

    def test_fingerprint_ignores_severity(self, mfa_finding):
        """Identity comes from kind, message and source only."""
        other = Finding(
            mfa_finding.kind, mfa_finding.message, mfa_finding.source, Severity.LOW
        )
        assert other.fingerprint == mfa_finding.fingerprint

    def test_from_dict_recomputes_fingerprint(self, mfa_finding):
        """Test a stored fingerprint is not trusted on load."""
        data = mfa_finding.to_dict()
        data["fingerprint"] = "tampered"
        restored = Finding.from_dict(data)
        assert restored.fingerprint == mfa_finding.fingerprint
