"""Issue catalog: the known condition checks and the detectors that fix them.

Built-in detectors are flag-backed: a remediation is considered in place when
its primary flag is "true" in the store and at least one supporting signal
confirms it. Host applications set the flags; the tracker only reads them.
"""

import json
import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from fixtrace.config import is_production
from fixtrace.errors import CatalogError
from fixtrace.signatures.remediation import patterns_for
from fixtrace.tracker.detectors import Detector, DetectorRegistry
from fixtrace.tracker.results import DetectorResult, Finding, Severity
from fixtrace.tracker.store import StateStore

logger = logging.getLogger(__name__)

Check = Callable[[], bool]


@dataclass(frozen=True)
class IssueDefinition:
    """A known condition the catalog reports while it is not remediated."""

    kind: str
    message: str
    source: str
    severity: Severity
    remediation_key: str | None = None
    check: Check | None = None  # True once the condition is remediated

    def finding(self) -> Finding:
        return Finding(
            kind=self.kind,
            message=self.message,
            source=self.source,
            severity=self.severity,
            remediation_key=self.remediation_key,
        )


class IssueCatalog:
    """Produces the current findings from a list of issue definitions."""

    def __init__(self, definitions: Iterable[IssueDefinition]):
        self.definitions = list(definitions)

    def __len__(self) -> int:
        return len(self.definitions)

    def __call__(self, detector_results: Sequence[DetectorResult] = ()) -> list[Finding]:
        findings = []
        for definition in self.definitions:
            if self._is_remediated(definition):
                logger.debug("Skipped (remediated): %s", definition.message)
                continue
            findings.append(definition.finding())
        return findings

    @staticmethod
    def _is_remediated(definition: IssueDefinition) -> bool:
        if definition.check is None:
            return False
        try:
            return definition.check() is True
        except Exception as e:
            # Keep the finding visible rather than hiding it on a broken check
            logger.warning("Check for %r failed, reporting as open: %s", definition.message, e)
            return False


def flag_is_set(store: StateStore, key: str) -> bool:
    return store.get(key) == "true"


def flag_probe(
    store: StateStore,
    flag: str,
    supporting: Iterable[str] = (),
    extra_checks: Iterable[Check] = (),
) -> Check:
    """Build a probe: ``flag`` is set and any supporting signal confirms it.

    Args:
        store: Store holding the host application's flags
        flag: Primary flag key
        supporting: Flag keys, any of which confirms the primary flag
        extra_checks: Further confirming callables

    Returns:
        Zero-argument probe returning bool
    """
    supporting = tuple(supporting)
    extra_checks = tuple(extra_checks)

    def probe() -> bool:
        if not flag_is_set(store, flag):
            return False
        alternatives: list[Check] = [lambda k=k: flag_is_set(store, k) for k in supporting]
        alternatives.extend(extra_checks)
        return not alternatives or any(check() for check in alternatives)

    return probe


SECURITY_KIND = "Security Vulnerability"
SECURITY_SOURCE = "Security Scanner"

BUILTIN_ISSUES: list[IssueDefinition] = [
    IssueDefinition(
        SECURITY_KIND,
        "Multi-Factor Authentication is not implemented for admin users",
        SECURITY_SOURCE,
        Severity.CRITICAL,
        "mfa_enforcement_implemented",
    ),
    IssueDefinition(
        SECURITY_KIND,
        "Role-Based Access Control is not properly implemented",
        SECURITY_SOURCE,
        Severity.CRITICAL,
        "rbac_implementation_active",
    ),
    IssueDefinition(
        SECURITY_KIND,
        "API keys and user data may be logged - logs are not sanitized",
        SECURITY_SOURCE,
        Severity.HIGH,
        "log_sanitization_active",
    ),
    IssueDefinition(
        SECURITY_KIND,
        "Debug mode is enabled in production environment",
        SECURITY_SOURCE,
        Severity.HIGH,
        "debug_security_implemented",
    ),
    IssueDefinition(
        SECURITY_KIND,
        "API endpoints lack proper authorization checks",
        SECURITY_SOURCE,
        Severity.HIGH,
        "api_authorization_implemented",
    ),
    IssueDefinition(
        "UI/UX Issue",
        "User interface lacks proper accessibility features and validation",
        "UI/UX Scanner",
        Severity.HIGH,
        "uiux_improvements_applied",
    ),
    IssueDefinition(
        "Code Quality Issue",
        "Code lacks proper error handling and TypeScript type definitions",
        "Code Quality Scanner",
        Severity.MEDIUM,
        "code_quality_improved",
    ),
    IssueDefinition(
        "Database Issue",
        "Database queries lack proper validation and sanitization",
        "Database Scanner",
        Severity.HIGH,
        "database_validation_implemented",
    ),
]

# (name, description, primary flag, supporting flags)
BUILTIN_DETECTORS: list[tuple[str, str, str, tuple[str, ...]]] = [
    (
        "MFA Implementation",
        "MFA enforcement flag confirmed by an auth component or MFA provider config",
        "mfa_enforcement_implemented",
        ("auth_component_present", "auth_mfa_enabled"),
    ),
    (
        "RBAC Implementation",
        "RBAC flag confirmed by role-aware UI or active permission checks",
        "rbac_implementation_active",
        ("role_based_ui_present", "permission_checks_active"),
    ),
    (
        "Log Sanitization",
        "Log sanitization flag confirmed by an installed log sanitizer",
        "log_sanitization_active",
        ("log_sanitizer_installed",),
    ),
    (
        "Debug Mode Security",
        "Debug security flag confirmed by a production environment or debug mode off",
        "debug_security_implemented",
        (),
    ),
    (
        "API Authorization",
        "API authorization flag confirmed by auth headers or token validation",
        "api_authorization_implemented",
        ("api_auth_headers_configured", "token_validation_active"),
    ),
    (
        "Security Components",
        "Security component flag confirmed by mounted components or security hooks",
        "security_components_implemented",
        ("security_component_present", "security_hooks_active"),
    ),
    (
        "UI/UX Improvements",
        "UI/UX flag confirmed by improved UI or accessibility labels",
        "uiux_improvements_applied",
        ("improved_ui_present", "accessibility_labels_present"),
    ),
    (
        "Code Quality Improvements",
        "Code quality flag confirmed by type definition or error handling work",
        "code_quality_improved",
        ("type_definitions_improved", "error_handling_improved"),
    ),
]


def builtin_catalog() -> IssueCatalog:
    return IssueCatalog(BUILTIN_ISSUES)


def builtin_registry(store: StateStore) -> DetectorRegistry:
    """Create the built-in detectors, in rule-table order."""
    registry = DetectorRegistry()
    for name, description, flag, supporting in BUILTIN_DETECTORS:
        extra: tuple[Check, ...] = ()
        if name == "Debug Mode Security":
            extra = (is_production, lambda: store.get("debug_mode_enabled") is None)
        registry.register(
            Detector(
                name=name,
                probe=flag_probe(store, flag, supporting, extra),
                description=description,
                patterns=patterns_for(name),
            )
        )
    return registry


def _require(entry: dict[str, Any], field: str, where: str) -> str:
    value = entry.get(field)
    if not isinstance(value, str) or not value.strip():
        raise CatalogError(f"{where}: '{field}' must be a non-empty string")
    return value


def _string_list(entry: dict[str, Any], field: str, where: str) -> list[str]:
    value = entry.get(field, [])
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise CatalogError(f"{where}: '{field}' must be a list of strings")
    return value


def load_catalog(path: Path, store: StateStore) -> tuple[IssueCatalog, DetectorRegistry]:
    """Load issue definitions and flag-backed detectors from a JSON file.

    Format:
        {
          "issues": [{"kind", "message", "source", "severity",
                      "remediation_key"?, "implemented_flag"?}],
          "detectors": [{"name", "flag", "description"?, "patterns"?,
                         "supporting_flags"?}]
        }

    Detectors without "patterns" take theirs from the remediation rule table.

    Raises:
        CatalogError: file missing, not JSON, or entries malformed
    """
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise CatalogError(f"Cannot read catalog {path}: {e}") from e
    if not isinstance(data, dict):
        raise CatalogError(f"Catalog {path} must be a JSON object")

    issues = data.get("issues", [])
    detectors = data.get("detectors", [])
    if not isinstance(issues, list) or not isinstance(detectors, list):
        raise CatalogError(f"Catalog {path}: 'issues' and 'detectors' must be lists")

    definitions = []
    for i, entry in enumerate(issues):
        where = f"issues[{i}]"
        if not isinstance(entry, dict):
            raise CatalogError(f"{where}: must be an object")
        try:
            severity = Severity(str(entry.get("severity", "")).lower())
        except ValueError as e:
            raise CatalogError(f"{where}: unknown severity {entry.get('severity')!r}") from e
        implemented_flag = entry.get("implemented_flag")
        definitions.append(
            IssueDefinition(
                kind=_require(entry, "kind", where),
                message=_require(entry, "message", where),
                source=_require(entry, "source", where),
                severity=severity,
                remediation_key=entry.get("remediation_key"),
                check=flag_probe(store, implemented_flag) if implemented_flag else None,
            )
        )

    registry = DetectorRegistry()
    for i, entry in enumerate(detectors):
        where = f"detectors[{i}]"
        if not isinstance(entry, dict):
            raise CatalogError(f"{where}: must be an object")
        name = _require(entry, "name", where)
        patterns = _string_list(entry, "patterns", where) if "patterns" in entry else None
        try:
            registry.register(
                Detector(
                    name=name,
                    probe=flag_probe(
                        store,
                        _require(entry, "flag", where),
                        _string_list(entry, "supporting_flags", where),
                    ),
                    description=str(entry.get("description", "")),
                    patterns=patterns if patterns is not None else patterns_for(name),
                )
            )
        except ValueError as e:
            raise CatalogError(f"{where}: {e}") from e

    logger.info(
        "Loaded catalog %s: %d issue(s), %d detector(s)", path, len(definitions), len(registry)
    )
    return IssueCatalog(definitions), registry
