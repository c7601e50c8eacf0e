"""Persistent state store: string keys, UTF-8 JSON string values.

The tracker only needs get/set/remove. It never assumes a transaction spans
more than one key, so every collection is written whole in a single ``set``.
"""

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from fixtrace.errors import StoreError, StoreReadError, StoreWriteError

logger = logging.getLogger(__name__)


class StateStore(ABC):
    """Key-value store the tracker persists into."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Return the value for key, or None when absent."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store value under key."""

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete key. Removing a missing key is not an error."""


class MemoryStore(StateStore):
    """In-memory store for tests and embedding."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._data)


class JsonFileStore(StateStore):
    """Store backed by a single JSON object file.

    Nothing is cached between calls: every read parses the file and every
    write is a read-modify-write, so values written by another process or
    another store instance on the same path are seen and kept. The file is
    replaced atomically (temp file + ``os.replace``) on every write. If the
    file exists but cannot be parsed, reads raise ``StoreReadError`` and
    writes raise ``StoreWriteError`` rather than overwriting keys that could
    not be read.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise StoreReadError(f"Cannot read state file {self.path}: {e}") from e
        if not isinstance(raw, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in raw.items()
        ):
            raise StoreReadError(f"State file {self.path} is not a string-to-string JSON object")
        return raw

    def _flush(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=".state-", suffix=".json", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, sort_keys=True)
                f.write("\n")
            os.replace(tmp_name, self.path)
        except OSError as e:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise StoreWriteError(f"Cannot write state file {self.path}: {e}") from e

    def get(self, key: str) -> str | None:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        try:
            current = self._load()
        except StoreReadError as e:
            raise StoreWriteError(str(e), key=key) from e
        updated = dict(current)
        updated[key] = value
        self._flush(updated)

    def remove(self, key: str) -> None:
        try:
            current = self._load()
        except StoreReadError as e:
            raise StoreWriteError(str(e), key=key) from e
        if key not in current:
            return
        updated = {k: v for k, v in current.items() if k != key}
        self._flush(updated)


def load_json(store: StateStore, key: str) -> Any:
    """Read and decode a JSON value.

    Returns:
        Decoded value, or None when the key is absent

    Raises:
        StoreReadError: the store failed or the value is not valid JSON
    """
    try:
        raw = store.get(key)
    except StoreError:
        raise
    except Exception as e:
        raise StoreReadError(f"Store read failed for {key}: {e}", key=key) from e
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except (TypeError, json.JSONDecodeError) as e:
        raise StoreReadError(f"Malformed JSON under {key}: {e}", key=key) from e


def dump_json(store: StateStore, key: str, value: Any) -> None:
    """Encode value as JSON and write it in one ``set`` call.

    Raises:
        StoreWriteError: the store rejected the write
    """
    payload = json.dumps(value, separators=(",", ":"), sort_keys=True)
    try:
        store.set(key, payload)
    except StoreError as e:
        if isinstance(e, StoreWriteError):
            raise
        raise StoreWriteError(str(e), key=key) from e
    except Exception as e:
        raise StoreWriteError(f"Store write failed for {key}: {e}", key=key) from e


def remove_key(store: StateStore, key: str) -> None:
    """Remove a key, normalizing failures to StoreWriteError."""
    try:
        store.remove(key)
    except StoreWriteError:
        raise
    except Exception as e:
        raise StoreWriteError(f"Store remove failed for {key}: {e}", key=key) from e


def preserve_corrupt(store: StateStore, key: str) -> None:
    """Copy an unreadable raw value to ``<key>.corrupt`` before it is overwritten.

    Only the first corrupt value is kept; later copies never replace it.
    """
    backup_key = f"{key}.corrupt"
    try:
        raw = store.get(key)
        if raw is None or store.get(backup_key) is not None:
            return
        store.set(backup_key, raw)
        logger.warning("Preserved unreadable value of %s under %s", key, backup_key)
    except Exception as e:
        logger.warning("Could not preserve unreadable value of %s: %s", key, e)
