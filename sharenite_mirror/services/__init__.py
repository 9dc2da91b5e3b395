"""Business logic services for Sharenite Mirror."""

from .preferences import PreferenceStore, apply_preferences
from .sync_service import LibrarySyncEngine
from .cover_service import CoverService

__all__ = ['PreferenceStore', 'apply_preferences', 'LibrarySyncEngine', 'CoverService']
