"""Snapshot history: the last MAX_SNAPSHOTS scans, newest first."""

import logging
from datetime import datetime, timezone

from fixtrace.config import MAX_SNAPSHOTS
from fixtrace.errors import StoreError
from fixtrace.tracker.results import ScanWarning, Snapshot, WarningKind
from fixtrace.tracker.store import StateStore, dump_json, load_json, preserve_corrupt, remove_key

logger = logging.getLogger(__name__)


def _sort_key(snapshot: Snapshot) -> datetime:
    moment = datetime.fromisoformat(snapshot.timestamp)
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)


class SnapshotHistory:
    """Bounded rolling history of scan snapshots."""

    def __init__(self, store: StateStore, key: str, limit: int = MAX_SNAPSHOTS):
        if not 0 < limit <= MAX_SNAPSHOTS:
            raise ValueError(f"history limit must be between 1 and {MAX_SNAPSHOTS}")
        self.store = store
        self.key = key
        self.limit = limit
        self._snapshots: list[Snapshot] = []
        self._corrupt = False

    @property
    def snapshots(self) -> list[Snapshot]:
        return list(self._snapshots)

    def latest(self) -> Snapshot | None:
        return self._snapshots[0] if self._snapshots else None

    def __len__(self) -> int:
        return len(self._snapshots)

    def load(self) -> list[ScanWarning]:
        """Read history from the store.

        Malformed data yields an empty history and a warning. A history that
        is too long or out of order is repaired in memory and reported as an
        invariant violation.
        """
        warnings: list[ScanWarning] = []
        self._corrupt = False
        self._snapshots = []

        try:
            raw = load_json(self.store, self.key)
            if raw is None:
                return warnings
            if not isinstance(raw, list):
                raise TypeError("expected a list of snapshots")
            snapshots = [Snapshot.from_dict(item) for item in raw]
            for s in snapshots:
                _sort_key(s)
        except (StoreError, KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(
                "Snapshot history under %s is unreadable, treating as empty: %s", self.key, e
            )
            self._corrupt = True
            warnings.append(
                ScanWarning(kind=WarningKind.STORE_READ_FAILURE, message=str(e), key=self.key)
            )
            return warnings

        ordered = sorted(snapshots, key=_sort_key, reverse=True)
        if [s.scan_id for s in ordered] != [s.scan_id for s in snapshots]:
            logger.error("Snapshot history under %s was not newest-first; re-sorted", self.key)
            warnings.append(
                ScanWarning(
                    kind=WarningKind.INVARIANT_VIOLATION,
                    message="snapshot history was not ordered newest-first",
                    key=self.key,
                )
            )
        if len(ordered) > self.limit:
            logger.error(
                "Snapshot history under %s held %d entries (max %d); truncated",
                self.key,
                len(ordered),
                self.limit,
            )
            warnings.append(
                ScanWarning(
                    kind=WarningKind.INVARIANT_VIOLATION,
                    message=f"snapshot history held {len(ordered)} entries, max is {self.limit}",
                    key=self.key,
                )
            )
            ordered = ordered[: self.limit]

        self._snapshots = ordered
        return warnings

    def append(self, snapshot: Snapshot) -> None:
        """Prepend a snapshot and evict the oldest beyond the limit."""
        head = self.latest()
        if head is not None and _sort_key(snapshot) <= _sort_key(head):
            raise ValueError(
                f"snapshot {snapshot.scan_id} is not newer than history head {head.scan_id}"
            )
        self._snapshots = [snapshot, *self._snapshots][: self.limit]

    def save(self) -> None:
        """Write the whole history in one call.

        Raises:
            StoreWriteError: the write failed
        """
        if self._corrupt:
            preserve_corrupt(self.store, self.key)
        dump_json(self.store, self.key, [s.to_dict() for s in self._snapshots])
        self._corrupt = False

    def clear(self) -> None:
        """Drop all snapshots from memory and the store."""
        self._snapshots = []
        remove_key(self.store, self.key)
