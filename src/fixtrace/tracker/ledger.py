"""Resolution ledger: fingerprints that must never be reported active again.

The ledger only grows. The one way to shrink it is ``clear()``, an explicit
administrative operation that is logged and written to the audit trail. No
scan code path calls it.
"""

import logging
from dataclasses import dataclass
from typing import Any

from fixtrace.config import DEFAULT_AUDIT_LIMIT
from fixtrace.errors import StoreError
from fixtrace.tracker.results import ScanWarning, WarningKind
from fixtrace.tracker.store import StateStore, dump_json, load_json, preserve_corrupt

logger = logging.getLogger(__name__)

ACTION_BACKEND_FIX = "backend_fix"
ACTION_MANUAL_RESOLVE = "manual_resolve"
ACTION_ADMIN_CLEAR = "administrative_clear"


@dataclass(frozen=True)
class AuditEntry:
    action: str
    fingerprint: str | None
    timestamp: str
    detector: str | None = None
    note: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action,
            "fingerprint": self.fingerprint,
            "timestamp": self.timestamp,
            "detector": self.detector,
            "note": self.note,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AuditEntry":
        return cls(
            action=str(data["action"]),
            fingerprint=data.get("fingerprint"),
            timestamp=str(data.get("timestamp", "")),
            detector=data.get("detector"),
            note=data.get("note"),
        )


class ResolutionLedger:
    """Durable, monotonic set of permanently resolved fingerprints."""

    def __init__(
        self,
        store: StateStore,
        key: str,
        audit_key: str,
        audit_limit: int = DEFAULT_AUDIT_LIMIT,
    ):
        self.store = store
        self.key = key
        self.audit_key = audit_key
        self.audit_limit = audit_limit
        self._fingerprints: set[str] = set()
        self._audit: list[AuditEntry] = []
        self._loaded = False
        self._dirty = False
        self._corrupt_keys: set[str] = set()

    def load(self) -> list[ScanWarning]:
        """Re-read the ledger and audit trail from the store.

        Unreadable data is treated as empty and reported, never raised.
        """
        warnings: list[ScanWarning] = []
        self._corrupt_keys.clear()

        raw = self._read(self.key, warnings)
        if raw is not None and not (
            isinstance(raw, list) and all(isinstance(fp, str) for fp in raw)
        ):
            self._report_malformed(self.key, "expected a list of fingerprints", warnings)
            raw = None
        self._fingerprints = set(raw or [])

        raw_audit = self._read(self.audit_key, warnings)
        audit: list[AuditEntry] = []
        if raw_audit is not None:
            try:
                if not isinstance(raw_audit, list):
                    raise TypeError("expected a list of audit entries")
                audit = [AuditEntry.from_dict(entry) for entry in raw_audit]
            except (KeyError, TypeError, AttributeError) as e:
                self._report_malformed(self.audit_key, str(e), warnings)
                audit = []
        self._audit = audit

        self._loaded = True
        self._dirty = False
        return warnings

    def _read(self, key: str, warnings: list[ScanWarning]) -> Any:
        try:
            return load_json(self.store, key)
        except StoreError as e:
            self._report_malformed(key, str(e), warnings)
            return None

    def _report_malformed(self, key: str, reason: str, warnings: list[ScanWarning]) -> None:
        logger.warning("Ledger data under %s is unreadable, treating as empty: %s", key, reason)
        self._corrupt_keys.add(key)
        warnings.append(
            ScanWarning(kind=WarningKind.STORE_READ_FAILURE, message=reason, key=key)
        )

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load()

    def contains(self, fingerprint: str) -> bool:
        self._ensure_loaded()
        return fingerprint in self._fingerprints

    __contains__ = contains

    def __len__(self) -> int:
        self._ensure_loaded()
        return len(self._fingerprints)

    def fingerprints(self) -> list[str]:
        self._ensure_loaded()
        return sorted(self._fingerprints)

    def audit_trail(self) -> list[AuditEntry]:
        self._ensure_loaded()
        return list(self._audit)

    def add(
        self,
        fingerprint: str,
        action: str,
        timestamp: str,
        detector: str | None = None,
        note: str | None = None,
    ) -> bool:
        """Add a fingerprint in memory. Call ``save()`` to persist.

        Returns:
            True if the fingerprint was not already present
        """
        self._ensure_loaded()
        if fingerprint in self._fingerprints:
            return False
        self._fingerprints.add(fingerprint)
        self._record(AuditEntry(action, fingerprint, timestamp, detector, note))
        self._dirty = True
        logger.info("Ledger: %s added (%s, detector=%s)", fingerprint, action, detector)
        return True

    def _record(self, entry: AuditEntry) -> None:
        self._audit.append(entry)
        if len(self._audit) > self.audit_limit:
            self._audit = self._audit[-self.audit_limit :]

    def save(self) -> None:
        """Persist the ledger and audit trail if they changed.

        Raises:
            StoreWriteError: either write failed
        """
        if not self._dirty:
            return
        for key in self._corrupt_keys:
            preserve_corrupt(self.store, key)
        dump_json(self.store, self.key, sorted(self._fingerprints))
        dump_json(self.store, self.audit_key, [e.to_dict() for e in self._audit])
        self._corrupt_keys.clear()
        self._dirty = False

    def clear(self, reason: str, timestamp: str) -> int:
        """Administrative clear. Empties the ledger and records why.

        Args:
            reason: Operator-supplied justification, kept in the audit trail
            timestamp: Time of the clear

        Returns:
            Number of fingerprints removed

        Raises:
            StoreWriteError: the cleared ledger could not be written
        """
        self._ensure_loaded()
        removed = len(self._fingerprints)
        self._fingerprints = set()
        self._record(AuditEntry(ACTION_ADMIN_CLEAR, None, timestamp, note=reason))
        self._dirty = True
        logger.warning(
            "ADMINISTRATIVE LEDGER CLEAR: %d fingerprint(s) removed (reason: %s)", removed, reason
        )
        self.save()
        return removed
