"""Persistent store adapter and the bounded cover cache."""

from .store import KeyValueStore, MemoryStore, JsonFileStore, load_json, save_json
from .cover_cache import CoverCache, CacheEntry

__all__ = [
    "KeyValueStore",
    "MemoryStore",
    "JsonFileStore",
    "load_json",
    "save_json",
    "CoverCache",
    "CacheEntry",
]
