"""Settings and tunables.

Timing constants are defaults; the engines take each one as a keyword so
callers (and tests) can override them.
"""

import os
from pathlib import Path

# Snapshot older than this triggers a background refresh (seconds)
UPDATE_INTERVAL = 30 * 60

# Cover cache
CACHE_DURATION = 24 * 60 * 60
COVER_CACHE_MAX_ENTRIES = 500

# Synchronization pass
DETAIL_BATCH_SIZE = 5
BATCH_PAUSE = 0.1
MAX_FETCH_ATTEMPTS = 3
RETRY_DELAY = 1.0  # multiplied by the attempt number
PERSIST_DEBOUNCE = 1.0
UNCHANGED_PAGE_LIMIT = 3

# Persistent store namespaces
SNAPSHOT_KEY = "sharenite-data"
PREFERENCES_KEY = "sharenite-preferences"
COVER_CACHE_KEY = "game-covers-cache"

# HTTP
SHARENITE_BASE_URL = "https://www.sharenite.link/profiles"
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
REQUEST_TIMEOUT = 20.0

IGDB_CLIENT_ID = os.environ.get("IGDB_CLIENT_ID", "")
IGDB_CLIENT_SECRET = os.environ.get("IGDB_CLIENT_SECRET", "")


def get_data_dir() -> Path:
    """Directory holding the persistent store (user data, survives reinstalls)."""
    override = os.environ.get("SHARENITE_MIRROR_DATA_DIR")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".local" / "share" / "sharenite-mirror"
