"""Error taxonomy shared by the sync engine, the cover cache and the sources."""

from typing import Optional


class ShareniteMirrorError(Exception):
    """Base class for all errors raised by this package."""


class SourceUnavailable(ShareniteMirrorError):
    """The listing (or profile) page could not be fetched.

    Fatal to a synchronization pass when it happens on the first page.
    """

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class DetailFetchFailed(ShareniteMirrorError):
    """A single record's detail page could not be fetched or parsed."""

    def __init__(self, record_id: str, reason: str = ""):
        super().__init__(f"Failed to fetch details for {record_id}: {reason}" if reason
                         else f"Failed to fetch details for {record_id}")
        self.record_id = record_id


class LookupFailed(ShareniteMirrorError):
    """A lookup provider could not resolve a key."""


class LookupRateLimited(LookupFailed):
    """Transient lookup failure (HTTP 429); worth retrying with backoff."""


class PersistFailure(ShareniteMirrorError):
    """Writing to the persistent store failed. Logged, never fatal."""
