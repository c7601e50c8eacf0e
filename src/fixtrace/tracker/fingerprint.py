"""Deterministic finding identity.

A fingerprint is a pure function of (kind, message, source): no salt, no
clock, no process state. The same triple yields the same string across
calls and restarts, so fingerprints can be persisted and compared later.

Literal separator and delimiter characters inside a field are backslash
escaped, so distinct triples never join to the same string.
"""

import re

FIELD_SEPARATOR = "|"
WHITESPACE_DELIMITER = "_"
ESCAPE = "\\"

_WHITESPACE_RE = re.compile(r"\s+")
_RESERVED_RE = re.compile(r"[\\|_]")


def normalize_field(value: str) -> str:
    """Lower-case, trim, escape reserved characters and collapse whitespace runs."""
    escaped = _RESERVED_RE.sub(lambda m: ESCAPE + m.group(0), value.strip().lower())
    return _WHITESPACE_RE.sub(WHITESPACE_DELIMITER, escaped)


def fingerprint(kind: str, message: str, source: str) -> str:
    """Compute the durable identity of a finding.

    Args:
        kind: Category label, e.g. "Security Vulnerability"
        message: Human-readable description
        source: Origin label of the check, e.g. "Security Scanner"

    Returns:
        Normalized fields joined with ``FIELD_SEPARATOR``
    """
    return FIELD_SEPARATOR.join(normalize_field(v) for v in (kind, message, source))
