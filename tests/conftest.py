from __future__ import annotations

from pathlib import Path
import sys
from typing import Dict, List, Optional, Tuple

import pytest

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from sharenite_mirror.cache.store import MemoryStore
from sharenite_mirror.errors import DetailFetchFailed, SourceUnavailable
from sharenite_mirror.models import DetailedRecord, ListingRecord, Profile
from sharenite_mirror.sources.base import DetailSource, ListingSource


def make_listing(game_id: str, title: Optional[str] = None, date: str = "2024-01-01T00:00:00Z") -> ListingRecord:
    return ListingRecord(
        id=game_id,
        title=title or f"Game {game_id}",
        last_activity="1 day ago",
        last_activity_date=date,
        url=f"https://example.test/games/{game_id}",
    )


class FakeListingSource(ListingSource):
    """In-memory paged listing; records which pages were requested."""

    def __init__(self, pages: List[List[ListingRecord]], profile: Optional[Profile] = None,
                 failing_pages: Tuple[int, ...] = ()):
        self.pages = pages
        self.profile = profile
        self.failing_pages = set(failing_pages)
        self.requested: List[int] = []

    async def fetch_page(self, page: int):
        self.requested.append(page)
        if page in self.failing_pages:
            raise SourceUnavailable(f"page {page} down", status=503)
        records = self.pages[page - 1] if page <= len(self.pages) else []
        return list(records), page < len(self.pages)

    async def fetch_profile(self):
        return self.profile


class FakeDetailSource(DetailSource):
    """Detail source driven by a dict of per-id overrides."""

    def __init__(self, details: Optional[Dict[str, dict]] = None, failures: Optional[Dict[str, int]] = None):
        self.details = details or {}
        # id -> number of leading attempts that fail
        self.failures = dict(failures or {})
        self.calls: List[str] = []

    async def fetch_detail(self, record: ListingRecord) -> DetailedRecord:
        self.calls.append(record.id)
        remaining = self.failures.get(record.id, 0)
        if remaining:
            self.failures[record.id] = remaining - 1
            raise DetailFetchFailed(record.id, "HTTP 500")
        fields = {"play_time": "01:00:00", "play_count": 1}
        fields.update(self.details.get(record.id, {}))
        return DetailedRecord.from_listing(record, **fields)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def three_page_source():
    pages = [
        [make_listing("1"), make_listing("2")],
        [make_listing("3"), make_listing("4")],
        [make_listing("5")],
    ]
    return FakeListingSource(pages, profile=Profile(username="tester", total_games=5, last_updated="2024-01-01"))
