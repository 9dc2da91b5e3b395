"""Sharenite profile pages as a listing, detail and profile source.

Scrapes the public HTML of https://www.sharenite.link/profiles/<username>.
Parsing is kept in plain functions so it can be tested against saved markup.
"""

import asyncio
import logging
import re
import ssl
from typing import List, Optional, Tuple

import aiohttp
import certifi
from bs4 import BeautifulSoup

from ..config import REQUEST_TIMEOUT, SHARENITE_BASE_URL, USER_AGENT
from ..errors import DetailFetchFailed, SourceUnavailable
from ..models import NEVER_PLAYED, DetailedRecord, ListingRecord, Profile
from .base import DetailSource, ListingSource

logger = logging.getLogger(__name__)

_TOTAL_GAMES_RE = re.compile(r"Total games listed:\s*(\d+)")


def _muted_value(soup: BeautifulSoup, label: str) -> Optional[str]:
    """Value after the colon of the first ``.text-muted`` element containing ``label``."""
    for el in soup.select(".text-muted"):
        text = el.get_text(" ", strip=True)
        if label in text:
            value = text.split(label, 1)[1].strip()
            return value or None
    return None


def _abbr_title_after(soup: BeautifulSoup, label: str) -> Optional[str]:
    """``title`` of the abbr next to a ``<strong>label</strong>`` heading."""
    for strong in soup.find_all("strong"):
        if label in strong.get_text():
            abbr = strong.parent.find("abbr") if strong.parent else None
            if abbr and abbr.get("title"):
                return abbr["title"].strip()
    return None


def parse_games_list(html: str, base_url: str) -> Tuple[List[ListingRecord], bool]:
    """Parse a games listing page into records and a has-next-page flag."""
    soup = BeautifulSoup(html, "html.parser")
    records: List[ListingRecord] = []

    for element in soup.select(".list-group-item"):
        element_id = (element.get("id") or "").replace("game_", "")
        if not element_id or element_id == "header":
            continue

        strong = element.find("strong")
        title = strong.get_text(strip=True) if strong else ""
        if not title:
            continue

        abbr = element.find("abbr")
        last_activity = abbr.get_text(strip=True) if abbr else ""
        last_activity_date = (abbr.get("title") or "").strip() if abbr else ""

        records.append(ListingRecord(
            id=element_id,
            title=title,
            last_activity=last_activity,
            last_activity_date=last_activity_date,
            url=f"{base_url}/games/{element_id}",
        ))

    has_next_page = soup.select_one('a.page-link[rel="next"]') is not None
    return records, has_next_page


def parse_game_details(html: str, record: ListingRecord) -> DetailedRecord:
    """Parse a game detail page on top of its listing row."""
    soup = BeautifulSoup(html, "html.parser")

    play_count_text = _muted_value(soup, "Play count:")
    try:
        play_count = int(play_count_text) if play_count_text else 0
    except ValueError:
        play_count = 0

    platform = None
    for el in soup.select(".text-muted"):
        text = el.get_text(strip=True)
        if "PC" in text:
            platform = text
            break

    return DetailedRecord.from_listing(
        record,
        play_time=_muted_value(soup, "Playtime:") or NEVER_PLAYED,
        play_count=play_count,
        platform=platform,
        added=_abbr_title_after(soup, "Added:"),
        modified=_abbr_title_after(soup, "Modified:"),
    )


def parse_profile(html: str, username: str) -> Optional[Profile]:
    """Parse the profile summary; None when the profile lists no games."""
    soup = BeautifulSoup(html, "html.parser")
    match = _TOTAL_GAMES_RE.search(soup.get_text(" ", strip=True))
    total_games = int(match.group(1)) if match else 0
    if total_games <= 0:
        return None

    last_updated = ""
    for element in soup.select(".list-group-item"):
        if (element.get("id") or "") in ("", "game_header", "header"):
            continue
        abbr = element.find("abbr")
        if abbr and abbr.get("title"):
            last_updated = abbr["title"].strip()
        break

    return Profile(username=username, total_games=total_games, last_updated=last_updated)


class ShareniteSource(ListingSource, DetailSource):
    """Listing, detail and profile source for one Sharenite user."""

    def __init__(self, username: str, timeout: float = REQUEST_TIMEOUT,
                 base_url: str = SHARENITE_BASE_URL):
        self.username = username
        self.base_url = f"{base_url}/{username}"
        self.timeout = timeout
        self.session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the shared aiohttp session."""
        if self.session is None or self.session.closed:
            ssl_context = ssl.create_default_context(cafile=certifi.where())
            connector = aiohttp.TCPConnector(ssl=ssl_context, limit_per_host=10)
            self.session = aiohttp.ClientSession(
                connector=connector,
                headers={"User-Agent": USER_AGENT, "Accept": "text/html"},
            )
        return self.session

    async def close(self):
        if self.session and not self.session.closed:
            await self.session.close()
        self.session = None

    async def _get_html(self, url: str, params: Optional[dict] = None) -> Tuple[int, str]:
        session = await self._get_session()
        async with session.get(
            url,
            params=params,
            timeout=aiohttp.ClientTimeout(total=self.timeout),
        ) as resp:
            return resp.status, await resp.text()

    async def _fetch_profile_page(self, page: int = 1) -> str:
        url = f"{self.base_url}/games"
        try:
            status, html = await self._get_html(url, params={"page": str(page)})
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise SourceUnavailable(f"Failed to fetch profile page {page}: {e}") from e
        if status != 200:
            raise SourceUnavailable(f"Failed to fetch profile page {page}: {status}", status=status)
        return html

    async def fetch_page(self, page: int) -> Tuple[List[ListingRecord], bool]:
        html = await self._fetch_profile_page(page)
        records, has_more = parse_games_list(html, self.base_url)
        logger.debug(f"[Sharenite] Page {page}: {len(records)} games, more={has_more}")
        return records, has_more

    async def fetch_profile(self) -> Optional[Profile]:
        html = await self._fetch_profile_page(1)
        profile = parse_profile(html, self.username)
        if profile:
            logger.info(f"[Sharenite] Profile {self.username}: {profile.total_games} games")
        else:
            logger.warning(f"[Sharenite] Profile {self.username} lists no games")
        return profile

    async def fetch_detail(self, record: ListingRecord) -> DetailedRecord:
        try:
            status, html = await self._get_html(record.url)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise DetailFetchFailed(record.id, str(e)) from e
        if status != 200:
            raise DetailFetchFailed(record.id, f"HTTP {status}")
        return parse_game_details(html, record)
