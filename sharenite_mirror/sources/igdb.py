"""IGDB cover lookup provider.

Requires IGDB_CLIENT_ID / IGDB_CLIENT_SECRET (Twitch application credentials).
"""

import asyncio
import logging
import ssl
import time
from typing import Optional

import aiohttp
import certifi

from ..config import IGDB_CLIENT_ID, IGDB_CLIENT_SECRET, REQUEST_TIMEOUT
from ..errors import LookupFailed, LookupRateLimited
from .base import LookupProvider

logger = logging.getLogger(__name__)

TOKEN_URL = "https://id.twitch.tv/oauth2/token"
GAMES_URL = "https://api.igdb.com/v4/games"
IMAGE_URL = "https://images.igdb.com/igdb/image/upload/{size}/{image_id}.jpg"

# Refresh the token this long before Twitch says it expires
TOKEN_EXPIRY_MARGIN = 300

IMAGE_SIZES = {
    "cover": "t_cover_big",
    "screenshot": "t_screenshot_big",
}


def build_query(title: str) -> str:
    """Apicalypse query for the best match of ``title`` that has a cover."""
    escaped = title.replace("\\", "\\\\").replace('"', '\\"')
    return (
        f'search "{escaped}";\n'
        "fields name,cover.image_id,screenshots.image_id;\n"
        "where cover != null;\n"
        "limit 1;"
    )


def image_url_from_result(game: dict, kind: str = "cover") -> Optional[str]:
    if kind == "screenshot":
        shots = game.get("screenshots") or []
        first = shots[0] if isinstance(shots, list) and shots else None
        image_id = first.get("image_id") if isinstance(first, dict) else None
    else:
        cover = game.get("cover")
        image_id = cover.get("image_id") if isinstance(cover, dict) else None
    if not image_id:
        return None
    return IMAGE_URL.format(size=IMAGE_SIZES[kind], image_id=image_id)


class IGDBCoverProvider(LookupProvider):
    """Resolves game titles to IGDB cover (or screenshot) URLs."""

    def __init__(self, client_id: str = IGDB_CLIENT_ID, client_secret: str = IGDB_CLIENT_SECRET,
                 kind: str = "cover", timeout: float = REQUEST_TIMEOUT):
        if kind not in IMAGE_SIZES:
            raise ValueError(f"Unknown image kind: {kind}")
        self.client_id = client_id
        self.client_secret = client_secret
        self.kind = kind
        self.timeout = timeout
        self.session: Optional[aiohttp.ClientSession] = None
        self._token: Optional[str] = None
        self._token_expiry = 0.0
        self._token_lock = asyncio.Lock()

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    async def _get_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            ssl_context = ssl.create_default_context(cafile=certifi.where())
            self.session = aiohttp.ClientSession(connector=aiohttp.TCPConnector(ssl=ssl_context))
        return self.session

    async def close(self):
        if self.session and not self.session.closed:
            await self.session.close()
        self.session = None

    async def _get_access_token(self) -> str:
        async with self._token_lock:
            if self._token and time.time() < self._token_expiry:
                return self._token

            session = await self._get_session()
            params = {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "grant_type": "client_credentials",
            }
            try:
                async with session.post(
                    TOKEN_URL, params=params, timeout=aiohttp.ClientTimeout(total=self.timeout)
                ) as resp:
                    if resp.status != 200:
                        raise LookupFailed(f"Token request failed: {resp.status}")
                    data = await resp.json()
            except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
                raise LookupFailed(f"Token request failed: {e}") from e

            token = data.get("access_token") if isinstance(data, dict) else None
            if not token:
                raise LookupFailed("Token response has no access_token")
            try:
                expires_in = float(data.get("expires_in") or 0)
            except (TypeError, ValueError):
                expires_in = 0.0

            self._token = token
            self._token_expiry = time.time() + expires_in - TOKEN_EXPIRY_MARGIN
            logger.debug("[IGDB] Obtained access token")
            return self._token

    async def resolve(self, key: str) -> Optional[str]:
        if not self.configured:
            raise LookupFailed("IGDB API credentials not configured")

        token = await self._get_access_token()
        session = await self._get_session()
        headers = {
            "Client-ID": self.client_id,
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
            "Content-Type": "text/plain",
        }
        try:
            async with session.post(
                GAMES_URL,
                data=build_query(key),
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as resp:
                if resp.status == 429:
                    raise LookupRateLimited(f"IGDB rate limited for '{key}'")
                if resp.status != 200:
                    raise LookupFailed(f"IGDB request failed: {resp.status}")
                games = await resp.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise LookupRateLimited(f"IGDB request error for '{key}': {e}") from e
        except ValueError as e:
            raise LookupFailed(f"IGDB returned invalid JSON for '{key}': {e}") from e

        if not isinstance(games, list):
            raise LookupFailed(f"Unexpected IGDB response for '{key}': {type(games).__name__}")

        if not games:
            logger.debug(f"[IGDB] No results for '{key}'")
            return None
        if not isinstance(games[0], dict):
            raise LookupFailed(f"Unexpected IGDB result for '{key}'")
        return image_url_from_result(games[0], self.kind)
