"""Sync progress tracking for library synchronization.

Exposes where a pass is (profile, paging, persisting) and what it has done so
far, for a presentation layer to poll.
"""

from typing import Any, Dict, Optional


class SyncProgress:
    """Track the state of the current (or last) synchronization pass."""

    STATUSES = (
        'idle',
        'fetching_profile',
        'fetching',
        'persisting',
        'complete',
        'error',
    )

    def __init__(self):
        self.reset(initial_load=False)
        self.status = "idle"

    def reset(self, initial_load: bool):
        """Clear counters at the start of a pass."""
        self.status = "fetching_profile"
        self.initial_load = initial_load
        self.current_page = 0
        self.pages_fetched = 0
        self.records_seen = 0
        self.records_changed = 0
        self.records_skipped = 0
        self.stopped_early = False
        self.error: Optional[str] = None

    def page_done(self, page: int, seen: int, changed: int, skipped: int):
        self.current_page = page
        self.pages_fetched += 1
        self.records_seen += seen
        self.records_changed += changed
        self.records_skipped += skipped

    def fail(self, error: str):
        self.status = "error"
        self.error = error

    @property
    def is_syncing(self) -> bool:
        return self.status in ('fetching_profile', 'fetching', 'persisting')

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': self.status,
            'is_syncing': self.is_syncing,
            'initial_load': self.initial_load,
            'current_page': self.current_page,
            'pages_fetched': self.pages_fetched,
            'records_seen': self.records_seen,
            'records_changed': self.records_changed,
            'records_skipped': self.records_skipped,
            'stopped_early': self.stopped_early,
            'error': self.error,
        }
