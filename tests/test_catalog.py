"""Tests for the issue catalog and built-in detectors."""

import json

import pytest

from fixtrace.config import StoreKeys
from fixtrace.errors import CatalogError
from fixtrace.signatures.catalog import (
    BUILTIN_ISSUES,
    IssueCatalog,
    IssueDefinition,
    builtin_catalog,
    builtin_registry,
    flag_probe,
    load_catalog,
)
from fixtrace.signatures.remediation import REMEDIATION_RULES, patterns_for
from fixtrace.tracker.engine import IssueTracker
from fixtrace.tracker.results import Severity
from fixtrace.tracker.store import JsonFileStore


class TestIssueCatalog:
    """Test finding enumeration from definitions."""

    def test_builtin_catalog_reports_everything_by_default(self):
        """Test every built-in issue is reported on a fresh host."""
        findings = builtin_catalog()()
        assert len(findings) == len(BUILTIN_ISSUES) == 8
        assert len({f.fingerprint for f in findings}) == 8

    def test_builtin_issues_carry_remediation_keys(self):
        """Test built-in issues declare a remediation key."""
        assert all(d.remediation_key for d in BUILTIN_ISSUES)

    def test_remediated_definition_skipped(self):
        """Test definitions whose check passes are not enumerated."""
        catalog = IssueCatalog(
            [
                IssueDefinition("K", "open", "S", Severity.LOW, check=lambda: False),
                IssueDefinition("K", "fixed", "S", Severity.LOW, check=lambda: True),
            ]
        )
        assert [f.message for f in catalog()] == ["open"]

    def test_broken_check_keeps_finding_visible(self, caplog):
        """Test a failing check reports the finding and logs the error."""
        def broken():
            raise RuntimeError("no access")

        catalog = IssueCatalog([IssueDefinition("K", "msg", "S", Severity.HIGH, check=broken)])

        assert [f.message for f in catalog()] == ["msg"]
        assert "no access" in caplog.text


class TestFlagProbe:
    """Test flag-backed probes."""

    def test_requires_primary_flag(self, store):
        """Test supporting flags alone do not satisfy a probe."""
        store.set("auth_mfa_enabled", "true")
        assert flag_probe(store, "mfa", ["auth_mfa_enabled"])() is False

    def test_requires_one_supporting_flag(self, store):
        """Test at least one supporting flag is required."""
        store.set("mfa", "true")
        probe = flag_probe(store, "mfa", ["auth_component_present", "auth_mfa_enabled"])
        assert probe() is False

        store.set("auth_mfa_enabled", "true")
        assert probe() is True

    def test_primary_only(self, store):
        """Test a probe without supporting flags needs only its primary flag."""
        store.set("flag", "true")
        assert flag_probe(store, "flag")() is True

    def test_flag_value_must_be_true(self, store):
        """Test only the literal value "true" enables a flag."""
        store.set("flag", "yes")
        assert flag_probe(store, "flag")() is False

    def test_extra_checks(self, store):
        """Test extra checks must all pass."""
        store.set("flag", "true")
        assert flag_probe(store, "flag", extra_checks=[lambda: False])() is False
        assert flag_probe(store, "flag", extra_checks=[lambda: True])() is True


class TestBuiltinRegistry:
    """Test the built-in detectors."""

    def test_order_follows_rule_table(self, store):
        """Test built-in detectors follow the remediation table order."""
        registry = builtin_registry(store)
        assert registry.names() == [name for name, _ in REMEDIATION_RULES]

    def test_patterns_from_rule_table(self, store):
        """Test built-in detectors take their patterns from the table."""
        for detector in builtin_registry(store).detectors:
            assert detector.patterns == patterns_for(detector.name)

    def test_patterns_for_unknown(self):
        """Test an unknown detector has no patterns."""
        assert patterns_for("Nope") == ()

    def test_mfa_flags_retire_mfa_finding(self, store, clock):
        """Test the MFA flags move the built-in MFA finding to backend-fixed."""
        tracker = IssueTracker(store, builtin_registry(store), builtin_catalog(), clock=clock)
        first = tracker.scan()
        assert len(first.active_findings) == 8

        store.set("mfa_enforcement_implemented", "true")
        store.set("auth_component_present", "true")
        result = tracker.scan()

        assert len(result.active_findings) == 7
        assert [f.fixed_by for f in result.backend_fixed_findings] == ["MFA Implementation"]
        assert "Multi-Factor" in result.backend_fixed_findings[0].message
        assert result.true_detector_count == 1

    def test_flags_written_by_another_store_are_seen(self, tmp_path, clock):
        """Test host flags set between scans through a second file store."""
        path = tmp_path / "state.json"
        store = JsonFileStore(path)
        tracker = IssueTracker(store, builtin_registry(store), builtin_catalog(), clock=clock)
        tracker.scan()

        host = JsonFileStore(path)
        host.set("mfa_enforcement_implemented", "true")
        host.set("auth_mfa_enabled", "true")
        result = tracker.scan()

        assert [f.fixed_by for f in result.backend_fixed_findings] == ["MFA Implementation"]
        assert JsonFileStore(path).get("mfa_enforcement_implemented") == "true"
        assert JsonFileStore(path).get("auth_mfa_enabled") == "true"

    def test_debug_detector_needs_debug_mode_off(self, store, monkeypatch):
        """Test the debug detector outside production."""
        monkeypatch.delenv("FIXTRACE_ENVIRONMENT", raising=False)
        registry = builtin_registry(store)
        registry.bind(StoreKeys("fixtrace"))
        debug = next(d for d in registry.detectors if d.name == "Debug Mode Security")

        store.set("debug_security_implemented", "true")
        store.set("debug_mode_enabled", "true")
        assert debug.probe() is False

        store.remove("debug_mode_enabled")
        assert debug.probe() is True

    def test_debug_detector_production(self, store, monkeypatch):
        """Test the debug detector ignores debug mode in production."""
        monkeypatch.setenv("FIXTRACE_ENVIRONMENT", "production")
        registry = builtin_registry(store)
        debug = next(d for d in registry.detectors if d.name == "Debug Mode Security")

        store.set("debug_security_implemented", "true")
        store.set("debug_mode_enabled", "true")
        assert debug.probe() is True


class TestLoadCatalog:
    """Test loading catalogs from JSON."""

    def write(self, tmp_path, data):
        path = tmp_path / "catalog.json"
        path.write_text(json.dumps(data) if not isinstance(data, str) else data)
        return path

    def test_load_valid_catalog(self, tmp_path, store):
        """Test loading issues and detectors from JSON."""
        path = self.write(
            tmp_path,
            {
                "issues": [
                    {
                        "kind": "Security Vulnerability",
                        "message": "MFA is not enforced",
                        "source": "Auth Audit",
                        "severity": "CRITICAL",
                    },
                    {
                        "kind": "Ops",
                        "message": "Backups unverified",
                        "source": "Ops Audit",
                        "severity": "medium",
                        "implemented_flag": "backups_verified",
                    },
                ],
                "detectors": [
                    {"name": "MFA Implementation", "flag": "mfa_on"},
                    {
                        "name": "Backups",
                        "flag": "backups_verified",
                        "supporting_flags": ["restore_tested"],
                        "patterns": ["backups"],
                    },
                ],
            },
        )

        catalog, registry = load_catalog(path, store)

        assert len(catalog) == 2
        assert catalog()[0].severity == Severity.CRITICAL
        assert registry.names() == ["MFA Implementation", "Backups"]
        assert registry.detectors[0].patterns == patterns_for("MFA Implementation")
        assert registry.detectors[1].patterns == ("backups",)

        store.set("backups_verified", "true")
        assert [f.message for f in catalog()] == ["MFA is not enforced"]

    def test_missing_file(self, tmp_path, store):
        """Test a missing catalog file."""
        with pytest.raises(CatalogError):
            load_catalog(tmp_path / "missing.json", store)

    def test_not_json(self, tmp_path, store):
        """Test a catalog that is not valid JSON."""
        with pytest.raises(CatalogError):
            load_catalog(self.write(tmp_path, "{nope"), store)

    def test_not_an_object(self, tmp_path, store):
        """Test a catalog whose top level is not an object."""
        with pytest.raises(CatalogError):
            load_catalog(self.write(tmp_path, []), store)

    def test_unknown_severity(self, tmp_path, store):
        """Test an unknown severity is rejected."""
        data = {"issues": [{"kind": "k", "message": "m", "source": "s", "severity": "urgent"}]}
        with pytest.raises(CatalogError, match="severity"):
            load_catalog(self.write(tmp_path, data), store)

    def test_missing_field(self, tmp_path, store):
        """Test an issue missing a required field is rejected."""
        data = {"issues": [{"kind": "k", "source": "s", "severity": "low"}]}
        with pytest.raises(CatalogError, match="message"):
            load_catalog(self.write(tmp_path, data), store)

    def test_duplicate_detector(self, tmp_path, store):
        """Test duplicate detector names are rejected."""
        data = {"detectors": [{"name": "A", "flag": "a"}, {"name": "A", "flag": "b"}]}
        with pytest.raises(CatalogError, match="Duplicate"):
            load_catalog(self.write(tmp_path, data), store)

    def test_bad_patterns(self, tmp_path, store):
        """Test patterns must be a list."""
        data = {"detectors": [{"name": "A", "flag": "a", "patterns": "mfa"}]}
        with pytest.raises(CatalogError, match="patterns"):
            load_catalog(self.write(tmp_path, data), store)
