"""
Preference overlay.

Favorite/completed flags are owned locally. They are stored apart from the
snapshot and laid over fetched records, so a remote fetch never changes them.
"""

import logging
from typing import Dict, Iterable, List, Optional

from ..cache.store import KeyValueStore, load_json, save_json
from ..config import PREFERENCES_KEY
from ..models import DetailedRecord

logger = logging.getLogger(__name__)

Preferences = Dict[str, Dict[str, bool]]

PREFERENCE_FIELDS = ('is_favorite', 'is_completed')


def apply_preferences(records: Iterable[DetailedRecord], preferences: Preferences) -> List[DetailedRecord]:
    """Return copies of ``records`` with stored preferences applied.

    Records without stored preferences keep the flags they already carry.
    """
    result = []
    for record in records:
        prefs = preferences.get(record.id)
        if not prefs or not isinstance(prefs, dict):
            result.append(record)
            continue
        result.append(record.with_preferences(
            is_favorite=bool(prefs.get('is_favorite', record.is_favorite)),
            is_completed=bool(prefs.get('is_completed', record.is_completed)),
        ))
    return result


class PreferenceStore:
    """Persisted per-record preference flags."""

    def __init__(self, store: KeyValueStore, namespace: str = PREFERENCES_KEY):
        self.store = store
        self.namespace = namespace

    def load(self) -> Preferences:
        data = load_json(self.store, self.namespace, default={})
        if not isinstance(data, dict):
            logger.error(f"Ignoring malformed preferences in '{self.namespace}'")
            return {}
        preferences = {k: v for k, v in data.items() if isinstance(v, dict)}
        dropped = len(data) - len(preferences)
        if dropped:
            logger.warning(f"Dropped {dropped} malformed preference entries in '{self.namespace}'")
        return preferences

    def get(self, game_id: str) -> Dict[str, bool]:
        return dict(self.load().get(game_id, {}))

    def update(self, game_id: str, is_favorite: Optional[bool] = None,
               is_completed: Optional[bool] = None) -> Dict[str, bool]:
        """Merge the given flags into the stored preferences for ``game_id``."""
        preferences = self.load()
        entry = dict(preferences.get(game_id, {}))
        if is_favorite is not None:
            entry['is_favorite'] = bool(is_favorite)
        if is_completed is not None:
            entry['is_completed'] = bool(is_completed)
        preferences[game_id] = entry
        save_json(self.store, self.namespace, preferences)
        logger.debug(f"Updated preferences for {game_id}: {entry}")
        return entry

    def overlay(self, record: DetailedRecord) -> DetailedRecord:
        """Apply stored preferences to a single record."""
        return apply_preferences([record], self.load())[0]

    def apply(self, records: Iterable[DetailedRecord]) -> List[DetailedRecord]:
        return apply_preferences(records, self.load())
