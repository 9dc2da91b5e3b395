"""
Tests for Sharenite HTML parsing and the HTTP error mapping of ShareniteSource.
"""
from unittest.mock import AsyncMock

import aiohttp
import pytest

from sharenite_mirror.errors import DetailFetchFailed, SourceUnavailable
from sharenite_mirror.models import NEVER_PLAYED, ListingRecord
from sharenite_mirror.sources.sharenite import (
    ShareniteSource,
    parse_game_details,
    parse_games_list,
    parse_profile,
)

BASE = "https://www.sharenite.link/profiles/tester"

LIST_PAGE = """
<html><body>
<p>Total games listed: 2</p>
<ul class="list-group">
  <li class="list-group-item" id="game_header"><strong>Name</strong><span>Last activity</span></li>
  <li class="list-group-item" id="game_abc123">
    <strong>Hades</strong>
    <abbr title="2024-03-01T12:00:00Z">2 days ago</abbr>
  </li>
  <li class="list-group-item" id="game_def456">
    <strong>Celeste</strong>
  </li>
</ul>
<nav><a class="page-link" rel="next" href="?page=2">Next</a></nav>
</body></html>
"""

LAST_PAGE = """
<ul class="list-group">
  <li class="list-group-item" id="game_xyz"><strong>Outer Wilds</strong></li>
</ul>
<nav><a class="page-link" rel="prev" href="?page=1">Prev</a></nav>
"""

DETAIL_PAGE = """
<div class="card">
  <h1>Hades</h1>
  <small class="text-muted">Playtime: 42:10:05</small>
  <small class="text-muted">Play count: 17</small>
  <small class="text-muted">PC (Windows)</small>
  <div><strong>Added:</strong> <abbr title="2023-01-05T08:00:00Z">a year ago</abbr></div>
  <div><strong>Modified:</strong> <abbr title="2024-03-01T12:00:00Z">2 days ago</abbr></div>
</div>
"""

HADES = ListingRecord(id="abc123", title="Hades", url=f"{BASE}/games/abc123")


def test_parse_games_list_reads_rows_and_next_link():
    records, has_more = parse_games_list(LIST_PAGE, BASE)

    assert [r.id for r in records] == ["abc123", "def456"]
    assert records[0].title == "Hades"
    assert records[0].last_activity == "2 days ago"
    assert records[0].last_activity_date == "2024-03-01T12:00:00Z"
    assert records[0].url == f"{BASE}/games/abc123"
    assert records[1].last_activity_date == ""
    assert has_more is True


def test_parse_games_list_last_page():
    records, has_more = parse_games_list(LAST_PAGE, BASE)

    assert [r.title for r in records] == ["Outer Wilds"]
    assert has_more is False


def test_parse_game_details():
    game = parse_game_details(DETAIL_PAGE, HADES)

    assert game.id == "abc123"
    assert game.play_time == "42:10:05"
    assert game.play_count == 17
    assert game.platform == "PC (Windows)"
    assert game.added == "2023-01-05T08:00:00Z"
    assert game.modified == "2024-03-01T12:00:00Z"
    assert game.is_favorite is False


def test_parse_game_details_defaults_for_unplayed_game():
    game = parse_game_details("<div><h1>Hades</h1></div>", HADES)

    assert game.play_time == NEVER_PLAYED
    assert game.play_count == 0
    assert game.platform is None


def test_parse_profile():
    profile = parse_profile(LIST_PAGE, "tester")

    assert profile.username == "tester"
    assert profile.total_games == 2
    assert profile.last_updated == "2024-03-01T12:00:00Z"


def test_parse_profile_without_games():
    assert parse_profile("<p>Total games listed: 0</p>", "tester") is None


class TestShareniteSource:

    @pytest.fixture
    def source(self):
        return ShareniteSource("tester")

    @pytest.mark.asyncio
    async def test_fetch_page_parses_listing(self, source):
        source._get_html = AsyncMock(return_value=(200, LIST_PAGE))

        records, has_more = await source.fetch_page(1)

        assert len(records) == 2
        assert has_more is True
        source._get_html.assert_awaited_once_with(f"{BASE}/games", params={"page": "1"})

    @pytest.mark.asyncio
    async def test_fetch_page_http_error_is_source_unavailable(self, source):
        source._get_html = AsyncMock(return_value=(503, "down"))

        with pytest.raises(SourceUnavailable) as exc_info:
            await source.fetch_page(2)
        assert exc_info.value.status == 503

    @pytest.mark.asyncio
    async def test_fetch_page_network_error_is_source_unavailable(self, source):
        source._get_html = AsyncMock(side_effect=aiohttp.ClientConnectionError("reset"))

        with pytest.raises(SourceUnavailable):
            await source.fetch_page(1)

    @pytest.mark.asyncio
    async def test_fetch_profile(self, source):
        source._get_html = AsyncMock(return_value=(200, LIST_PAGE))

        profile = await source.fetch_profile()

        assert profile.total_games == 2

    @pytest.mark.asyncio
    async def test_fetch_detail(self, source):
        source._get_html = AsyncMock(return_value=(200, DETAIL_PAGE))

        game = await source.fetch_detail(HADES)

        assert game.play_count == 17
        source._get_html.assert_awaited_once_with(HADES.url)

    @pytest.mark.asyncio
    async def test_fetch_detail_failure(self, source):
        source._get_html = AsyncMock(return_value=(404, ""))

        with pytest.raises(DetailFetchFailed) as exc_info:
            await source.fetch_detail(HADES)
        assert exc_info.value.record_id == "abc123"
