"""Persistent key-value store.

A synchronous, string-keyed store shared by the sync engine, the preference
overlay and the cover cache. Values are whole serialized blobs; writes are
last-writer-wins, so callers that merge must re-read before writing.

The file store keeps one JSON file per key under the user data directory
(~/.local/share/sharenite-mirror) so the mirror survives restarts.
"""

import json
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

from ..errors import PersistFailure

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Interface every store backend implements."""

    @abstractmethod
    def read(self, key: str) -> Optional[str]:
        """Return the stored blob, or None if the key is absent."""

    @abstractmethod
    def write(self, key: str, blob: str) -> None:
        """Overwrite the blob for ``key``. Raises PersistFailure."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove ``key`` if present. Raises PersistFailure."""


class MemoryStore(KeyValueStore):
    """Process-local store; used by tests and one-shot runs."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def read(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def write(self, key: str, blob: str) -> None:
        self._data[key] = blob

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self):
        return list(self._data.keys())


class JsonFileStore(KeyValueStore):
    """One file per key in a directory."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def _path_for(self, key: str) -> Path:
        safe = "".join(c if c.isalnum() or c in "-_." else "_" for c in key)
        return self.directory / f"{safe}.json"

    def read(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        try:
            if path.exists():
                with open(path, "r", encoding="utf-8") as f:
                    return f.read()
        except OSError as e:
            logger.error(f"Error reading {path}: {e}")
        return None

    def write(self, key: str, blob: str) -> None:
        path = self._path_for(key)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                f.write(blob)
            os.replace(tmp_path, path)
        except OSError as e:
            raise PersistFailure(f"Could not write {path}: {e}") from e

    def delete(self, key: str) -> None:
        path = self._path_for(key)
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise PersistFailure(f"Could not delete {path}: {e}") from e


def load_json(store: KeyValueStore, key: str, default: Any = None) -> Any:
    """Read and decode a JSON blob; corrupt or missing data yields ``default``."""
    blob = store.read(key)
    if blob is None:
        return default
    try:
        return json.loads(blob)
    except ValueError as e:
        logger.error(f"Error decoding stored value for '{key}': {e}")
        return default


def save_json(store: KeyValueStore, key: str, value: Any) -> bool:
    """Encode and write a JSON blob. Returns False (and logs) on PersistFailure."""
    try:
        store.write(key, json.dumps(value))
        return True
    except PersistFailure as e:
        logger.error(f"Error saving '{key}': {e}")
        return False
