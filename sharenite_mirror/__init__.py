# Sharenite Mirror
# Keeps a local mirror of a remote Sharenite game library and a bounded cover-art cache.

from .models import ListingRecord, DetailedRecord, Profile, Snapshot
from .errors import (
    ShareniteMirrorError,
    SourceUnavailable,
    DetailFetchFailed,
    LookupFailed,
    LookupRateLimited,
    PersistFailure,
)

__version__ = "0.1.0"
