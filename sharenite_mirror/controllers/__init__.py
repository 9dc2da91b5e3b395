"""Task lifecycles owned by the sync engine."""

from .debounce import DebouncedAction
from .background_refresh import BackgroundRefresh
from .sync_progress import SyncProgress

__all__ = ['DebouncedAction', 'BackgroundRefresh', 'SyncProgress']
