"""Configuration: store location, key namespace, audit retention."""

import os
import re
from dataclasses import dataclass
from pathlib import Path

# Snapshot history bound (newest-first). Not configurable.
MAX_SNAPSHOTS = 10

DEFAULT_NAMESPACE = "fixtrace"
DEFAULT_STORE_PATH = Path(".fixtrace") / "state.json"
DEFAULT_AUDIT_LIMIT = 200
DEFAULT_LOG_LEVEL = "WARNING"

_SLUG_RE = re.compile(r"[^a-z0-9]+")


def slugify(name: str) -> str:
    """Turn a detector name into a store key segment.

    "MFA Implementation" -> "mfa_implementation"
    """
    return _SLUG_RE.sub("_", name.strip().lower()).strip("_")


@dataclass(frozen=True)
class StoreKeys:
    """Key layout inside the persistent state store."""

    namespace: str

    @property
    def history(self) -> str:
        return f"{self.namespace}.snapshot_history"

    @property
    def ledger(self) -> str:
        return f"{self.namespace}.resolution_ledger"

    @property
    def audit(self) -> str:
        return f"{self.namespace}.resolution_audit"

    @property
    def true_detector_count(self) -> str:
        return f"{self.namespace}.true_detector_count"

    def detector(self, name: str) -> str:
        return f"{self.namespace}.detector.{slugify(name)}"


@dataclass(frozen=True)
class TrackerConfig:
    namespace: str = DEFAULT_NAMESPACE
    store_path: Path = DEFAULT_STORE_PATH
    audit_limit: int = DEFAULT_AUDIT_LIMIT
    log_level: str = DEFAULT_LOG_LEVEL

    def __post_init__(self) -> None:
        if not self.namespace.strip():
            raise ValueError("namespace must not be empty")
        if self.audit_limit <= 0:
            raise ValueError(f"audit_limit must be positive, got {self.audit_limit}")

    def keys(self) -> StoreKeys:
        return StoreKeys(self.namespace)


def load_config() -> TrackerConfig:
    """Load configuration from FIXTRACE_* environment variables.

    FIXTRACE_NAMESPACE   key prefix inside the store (default: fixtrace)
    FIXTRACE_STORE       path of the JSON state file (default: .fixtrace/state.json)
    FIXTRACE_AUDIT_LIMIT max retained ledger audit entries (default: 200)
    FIXTRACE_LOG_LEVEL   logging level name for the CLI (default: WARNING)
    """
    raw_limit = os.environ.get("FIXTRACE_AUDIT_LIMIT", "")
    try:
        audit_limit = int(raw_limit) if raw_limit else DEFAULT_AUDIT_LIMIT
    except ValueError as exc:
        raise ValueError(f"FIXTRACE_AUDIT_LIMIT must be an integer, got {raw_limit!r}") from exc

    return TrackerConfig(
        namespace=os.environ.get("FIXTRACE_NAMESPACE", DEFAULT_NAMESPACE),
        store_path=Path(os.environ.get("FIXTRACE_STORE", str(DEFAULT_STORE_PATH))),
        audit_limit=audit_limit,
        log_level=os.environ.get("FIXTRACE_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper(),
    )


def is_production() -> bool:
    """Check FIXTRACE_ENVIRONMENT for a production deployment."""
    return os.environ.get("FIXTRACE_ENVIRONMENT", "").strip().lower() == "production"
