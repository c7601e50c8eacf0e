"""Remediation rule table: detector name -> patterns of findings it fixes.

Order matters. When several true detectors match one finding, the earlier
rule wins, so new rules go at the end unless they are meant to take
precedence.
"""

REMEDIATION_RULES: list[tuple[str, tuple[str, ...]]] = [
    ("MFA Implementation", ("mfa", "multi-factor authentication")),
    ("RBAC Implementation", ("rbac", "role-based access control")),
    ("Log Sanitization", ("logs are not sanitized", "log sanitization")),
    ("Debug Mode Security", ("debug mode",)),
    ("API Authorization", ("authorization checks", "api authorization")),
    ("Security Components", ("security component",)),
    ("UI/UX Improvements", ("accessibility features", "ui/ux")),
    ("Code Quality Improvements", ("error handling", "type definitions")),
]


def patterns_for(detector_name: str) -> tuple[str, ...]:
    """Look up the patterns for a detector, empty if it has no rule."""
    for name, patterns in REMEDIATION_RULES:
        if name == detector_name:
            return patterns
    return ()
