"""Issue catalog and remediation rule table."""

from fixtrace.signatures.catalog import (
    BUILTIN_ISSUES,
    IssueCatalog,
    IssueDefinition,
    builtin_catalog,
    builtin_registry,
    load_catalog,
)
from fixtrace.signatures.remediation import REMEDIATION_RULES, patterns_for

__all__ = [
    "BUILTIN_ISSUES",
    "IssueCatalog",
    "IssueDefinition",
    "builtin_catalog",
    "builtin_registry",
    "load_catalog",
    "REMEDIATION_RULES",
    "patterns_for",
]
