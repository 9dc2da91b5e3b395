"""Bounded cover-art cache.

Maps a lookup key (game title) to a cover URL, or to None when the lookup
resolved to nothing. Entries are protected once they have been fetched or set
by hand: an automatic write never replaces a protected entry, and protected
entries do not age out. Capacity pressure evicts the oldest entries but never
a manually set one.

The whole cache is written to the persistent store after every mutation and
loaded once at construction.
"""

import logging
import time
from dataclasses import dataclass, asdict
from typing import Callable, Dict, Optional

from ..errors import PersistFailure
from ..config import CACHE_DURATION, COVER_CACHE_KEY, COVER_CACHE_MAX_ENTRIES
from .store import KeyValueStore, load_json, save_json

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    value: Optional[str]
    timestamp: float
    manually_set: bool = False
    fetched: bool = False

    @property
    def protected(self) -> bool:
        return self.manually_set or self.fetched


class CoverCache:
    """Capacity- and TTL-bounded lookup cache with manual-override protection."""

    def __init__(
        self,
        store: KeyValueStore,
        *,
        namespace: str = COVER_CACHE_KEY,
        max_entries: int = COVER_CACHE_MAX_ENTRIES,
        ttl: Optional[float] = CACHE_DURATION,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            store: Persistent store shared with the rest of the process
            namespace: Store key holding the serialized cache
            max_entries: Capacity ceiling
            ttl: Age (seconds) after which unprotected entries expire; None disables
            clock: Time source, seconds since the epoch
        """
        self.store = store
        self.namespace = namespace
        self.max_entries = max_entries
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._load()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and not self._is_expired(entry)

    def _is_expired(self, entry: CacheEntry, now: Optional[float] = None) -> bool:
        if self.ttl is None or entry.protected:
            return False
        now = self._clock() if now is None else now
        return now - entry.timestamp > self.ttl

    def _load(self):
        data = load_json(self.store, self.namespace, default={})
        if not isinstance(data, dict):
            logger.error(f"Ignoring malformed cover cache in '{self.namespace}'")
            return

        now = self._clock()
        dropped = 0
        for key, raw in data.items():
            try:
                entry = CacheEntry(
                    value=raw.get("value"),
                    timestamp=float(raw["timestamp"]),
                    manually_set=bool(raw.get("manually_set", False)),
                    fetched=bool(raw.get("fetched", False)),
                )
            except (AttributeError, KeyError, TypeError, ValueError):
                dropped += 1
                continue
            if self._is_expired(entry, now):
                dropped += 1
                continue
            self._entries[key] = entry

        # Oldest first so write order is preserved for eviction tie-breaks
        self._entries = dict(sorted(self._entries.items(), key=lambda kv: kv[1].timestamp))
        if dropped:
            logger.debug(f"Dropped {dropped} expired or malformed cover cache entries")
        logger.debug(f"Loaded {len(self._entries)} cover cache entries")

    def _save(self):
        save_json(self.store, self.namespace, {k: asdict(v) for k, v in self._entries.items()})

    def _sweep_expired(self, now: float) -> int:
        expired = [k for k, e in self._entries.items() if self._is_expired(e, now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def _enforce_capacity(self) -> int:
        overflow = len(self._entries) - self.max_entries
        if overflow <= 0:
            return 0
        # sorted() is stable, so equal timestamps fall back to write order
        candidates = sorted(
            (k for k, e in self._entries.items() if not e.manually_set),
            key=lambda k: self._entries[k].timestamp,
        )
        evicted = candidates[:overflow]
        for key in evicted:
            del self._entries[key]
        if len(self._entries) > self.max_entries:
            logger.warning(
                f"Cover cache holds {len(self._entries)} entries, all remaining are manual overrides"
            )
        return len(evicted)

    def get(self, key: str) -> Optional[str]:
        """Return the cached value (None if absent, expired or resolved to nothing)."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._is_expired(entry):
            del self._entries[key]
            self._save()
            return None
        return entry.value

    def set(self, key: str, value: Optional[str], manual: bool = False) -> bool:
        """Store a value. Returns False when an automatic write hits a protected entry."""
        existing = self._entries.get(key)
        if existing is not None and existing.protected and not manual:
            logger.debug(f"Ignoring automatic cover write for protected key '{key}'")
            return False

        now = self._clock()
        self._entries.pop(key, None)
        self._entries[key] = CacheEntry(
            value=value,
            timestamp=now,
            manually_set=manual,
            fetched=manual,
        )

        swept = self._sweep_expired(now) if self.ttl is not None else 0
        evicted = self._enforce_capacity()
        if swept or evicted:
            logger.debug(f"Cover cache: expired {swept}, evicted {evicted}")
        self._save()
        return True

    def mark_fetched(self, key: str):
        """Record that a resolution attempt for ``key`` has completed."""
        entry = self._entries.get(key)
        if entry is None:
            self._entries[key] = CacheEntry(value=None, timestamp=self._clock(), fetched=True)
            self._enforce_capacity()
        else:
            entry.fetched = True
        self._save()

    def is_manually_set(self, key: str) -> bool:
        entry = self._entries.get(key)
        return bool(entry and entry.manually_set)

    def has_been_fetched(self, key: str) -> bool:
        entry = self._entries.get(key)
        return bool(entry and entry.fetched)

    def clear(self):
        self._entries.clear()
        try:
            self.store.delete(self.namespace)
        except PersistFailure as e:
            logger.error(f"Error clearing cover cache: {e}")
