"""
LibrarySyncEngine - Keeps a local snapshot of a remote game library current.

Responsibilities:
- Page through the remote listing and fetch per-game details in small batches
- Merge fetched games into the running snapshot and detect real changes
- Stop paging a refresh once several consecutive pages show no change
- Notify subscribers page by page
- Persist partial progress (debounced) and the final snapshot
- Serve the cached snapshot and refresh it in the background when stale
"""

import asyncio
import logging
import time
from typing import Callable, Dict, List, Optional, Tuple

from ..cache.store import KeyValueStore, load_json, save_json
from ..config import (
    BATCH_PAUSE,
    DETAIL_BATCH_SIZE,
    MAX_FETCH_ATTEMPTS,
    PERSIST_DEBOUNCE,
    RETRY_DELAY,
    SNAPSHOT_KEY,
    UNCHANGED_PAGE_LIMIT,
    UPDATE_INTERVAL,
)
from ..controllers import BackgroundRefresh, DebouncedAction, SyncProgress
from ..errors import SourceUnavailable
from ..models import DetailedRecord, ListingRecord, Profile, Snapshot
from ..sources.base import DetailSource, ListingSource
from .preferences import PreferenceStore

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[Snapshot], None]


class LibrarySyncEngine:
    """Incremental synchronization of a paginated remote library into a local snapshot."""

    def __init__(
        self,
        listing_source: ListingSource,
        detail_source: DetailSource,
        store: KeyValueStore,
        preferences: Optional[PreferenceStore] = None,
        *,
        namespace: str = SNAPSHOT_KEY,
        batch_size: int = DETAIL_BATCH_SIZE,
        batch_pause: float = BATCH_PAUSE,
        max_attempts: int = MAX_FETCH_ATTEMPTS,
        retry_delay: float = RETRY_DELAY,
        persist_debounce: float = PERSIST_DEBOUNCE,
        update_interval: float = UPDATE_INTERVAL,
        unchanged_page_limit: int = UNCHANGED_PAGE_LIMIT,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the engine with its collaborators.

        Args:
            listing_source: Paginated listing of the remote library
            detail_source: Per-game detail lookup
            store: Persistent store shared with the rest of the process
            preferences: Preference overlay; defaults to one on ``store``
            namespace: Store key holding the snapshot
            batch_size: Detail fetches issued concurrently
            batch_pause: Pause between detail batches (seconds)
            max_attempts: Detail fetch attempts before a game is skipped
            retry_delay: Backoff unit; attempt N waits N * retry_delay
            persist_debounce: Quiet period before a partial persist (seconds)
            update_interval: Age after which a cached snapshot is stale (seconds)
            unchanged_page_limit: Consecutive unchanged pages that end a refresh
            clock: Time source, seconds since the epoch
        """
        self.listing_source = listing_source
        self.detail_source = detail_source
        self.store = store
        self.preferences = preferences or PreferenceStore(store)
        self.namespace = namespace
        self.batch_size = max(1, batch_size)
        self.batch_pause = batch_pause
        self.max_attempts = max(1, max_attempts)
        self.retry_delay = retry_delay
        self.update_interval = update_interval
        self.unchanged_page_limit = unchanged_page_limit
        self._clock = clock

        self.progress = SyncProgress()
        self._callbacks: Dict[object, SnapshotCallback] = {}
        self._persist = DebouncedAction(persist_debounce, name="partial snapshot persist")
        self._background = BackgroundRefresh(self._refresh_from_store)

        # Sync state
        self._is_syncing = False
        self._sync_task: Optional[asyncio.Task] = None
        self._working: Optional[Dict[str, DetailedRecord]] = None
        self._dirty = False
        # Last snapshot written; authoritative if the store rejects writes
        self._snapshot: Optional[Snapshot] = None

    @property
    def is_syncing(self) -> bool:
        return self._is_syncing or (self._sync_task is not None and not self._sync_task.done())

    @property
    def background_error(self) -> Optional[BaseException]:
        return self._background.last_error

    # ------------------------------------------------------------------
    # Subscribers
    # ------------------------------------------------------------------

    def subscribe(self, callback: SnapshotCallback) -> Callable[[], None]:
        """Register ``callback`` for snapshot updates. Returns an idempotent unsubscribe."""
        token = object()
        self._callbacks[token] = callback

        def unsubscribe():
            self._callbacks.pop(token, None)

        return unsubscribe

    def _notify(self, working: Dict[str, DetailedRecord], profile: Optional[Profile]):
        self._dirty = False
        if not self._callbacks:
            return
        snapshot = Snapshot(
            games=self.preferences.apply(working.values()),
            timestamp=self._clock(),
            profile=profile,
        )
        for callback in list(self._callbacks.values()):
            try:
                callback(snapshot)
            except Exception as e:
                logger.error(f"Error in snapshot subscriber {callback!r}: {e}")

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _read_snapshot(self) -> Optional[Snapshot]:
        data = load_json(self.store, self.namespace)
        if not isinstance(data, dict) or not isinstance(data.get("games"), list):
            return None
        return Snapshot.from_dict(data)

    def get_cached_snapshot(self) -> Optional[Snapshot]:
        """Snapshot from the store, falling back to the last one written in this process."""
        stored = self._read_snapshot()
        return stored if stored is not None else self._snapshot

    def _write_snapshot(self, games: List[DetailedRecord], profile: Optional[Profile],
                        timestamp: Optional[float] = None) -> Snapshot:
        snapshot = Snapshot(
            games=self.preferences.apply(games),
            timestamp=self._clock() if timestamp is None else timestamp,
            profile=profile,
        )
        self._snapshot = snapshot
        if save_json(self.store, self.namespace, snapshot.to_dict()):
            logger.debug(f"Saved snapshot with {len(snapshot)} games")
        return snapshot

    def _persist_partial(self, games: List[DetailedRecord], profile: Optional[Profile]):
        """Merge ``games`` into whatever is stored now and write the result."""
        stored = self._read_snapshot()
        merged = stored.by_id() if stored else {}
        for game in games:
            merged[game.id] = game
        if profile is None and stored:
            profile = stored.profile
        snapshot = self._write_snapshot(list(merged.values()), profile)
        logger.info(f"Persisted partial snapshot ({len(snapshot)} games)")

    # ------------------------------------------------------------------
    # Synchronization
    # ------------------------------------------------------------------

    async def synchronize(self, existing: Optional[Snapshot] = None) -> Snapshot:
        """Run one synchronization pass starting from ``existing``.

        Only one pass runs per engine; a call made while a pass is in flight
        waits for that pass instead of starting another.

        Raises:
            SourceUnavailable: the profile or the first listing page could not be fetched.
        """
        if self._sync_task is not None and not self._sync_task.done():
            logger.warning("Sync already in progress, waiting for it")
            return await asyncio.shield(self._sync_task)

        self._sync_task = asyncio.create_task(self._run_pass(existing))
        return await self._sync_task

    async def _run_pass(self, existing: Optional[Snapshot]) -> Snapshot:
        working: Dict[str, DetailedRecord] = existing.by_id() if existing else {}
        is_initial_load = not working

        self._is_syncing = True
        self._working = working
        self._dirty = False
        self.progress.reset(initial_load=is_initial_load)
        logger.info(
            f"Starting {'initial load' if is_initial_load else 'refresh'} "
            f"({len(working)} games cached)"
        )
        try:
            profile = await self.listing_source.fetch_profile()
            if profile is None and existing is not None:
                profile = existing.profile

            self.progress.status = "fetching"
            await self._walk_pages(working, is_initial_load, profile)

            self.progress.status = "persisting"
            self._persist.flush()
            snapshot = self._write_snapshot(list(working.values()), profile)

            self.progress.status = "complete"
            logger.info(
                f"Sync complete: {len(snapshot)} games, {self.progress.records_changed} changed, "
                f"{self.progress.records_skipped} skipped over {self.progress.pages_fetched} pages"
            )
            return snapshot
        except Exception as e:
            logger.error(f"Error synchronizing library: {e}")
            self.progress.fail(str(e))
            raise
        finally:
            self._persist.cancel()
            self._working = None
            self._is_syncing = False

    async def _walk_pages(self, working: Dict[str, DetailedRecord], is_initial_load: bool,
                          profile: Optional[Profile]):
        page = 1
        has_more = True
        unchanged_streak = 0

        while has_more:
            self.progress.current_page = page
            try:
                records, has_more = await self.listing_source.fetch_page(page)
            except SourceUnavailable as e:
                if page == 1:
                    raise
                logger.warning(f"Page {page} unavailable, ending pass: {e}")
                break

            changed, skipped = await self._process_page(records, working, is_initial_load, profile)
            self.progress.page_done(page, len(records), changed, skipped)

            if changed:
                unchanged_streak = 0
                games = list(working.values())
                self._persist.schedule(lambda: self._persist_partial(games, profile))
                if self._dirty:
                    self._notify(working, profile)
            else:
                unchanged_streak += 1
                if not is_initial_load and unchanged_streak >= self.unchanged_page_limit:
                    logger.info(f"No changes on {unchanged_streak} consecutive pages, stopping at page {page}")
                    self.progress.stopped_early = True
                    break

            page += 1

    async def _process_page(self, records: List[ListingRecord], working: Dict[str, DetailedRecord],
                            is_initial_load: bool, profile: Optional[Profile]) -> Tuple[int, int]:
        """Fetch details for one page in batches and merge them. Returns (changed, skipped)."""
        changed = 0
        skipped = 0
        for start in range(0, len(records), self.batch_size):
            if start:
                await asyncio.sleep(self.batch_pause)
            batch = records[start:start + self.batch_size]
            details = await asyncio.gather(*[self._fetch_detail(r) for r in batch])

            for detail in details:
                if detail is None:
                    skipped += 1
                    continue
                if self._merge(working, detail):
                    changed += 1
                    self._dirty = True
                    if is_initial_load:
                        self._notify(working, profile)
        return changed, skipped

    async def _fetch_detail(self, record: ListingRecord) -> Optional[DetailedRecord]:
        """Fetch one game's details with linear backoff; None once attempts run out."""
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await self.detail_source.fetch_detail(record)
            except Exception as e:
                if attempt < self.max_attempts:
                    logger.debug(f"Detail fetch for {record.id} failed (attempt {attempt}): {e}")
                    await asyncio.sleep(self.retry_delay * attempt)
                else:
                    logger.warning(f"Skipping {record.title} ({record.id}) after {attempt} attempts: {e}")
        return None

    def _merge(self, working: Dict[str, DetailedRecord], detail: DetailedRecord) -> bool:
        """Merge one fetched game. Returns True if the snapshot changed."""
        existing = working.get(detail.id)
        if existing is None:
            working[detail.id] = self.preferences.overlay(detail)
            return True
        if not detail.has_changed_from(existing):
            return False
        working[detail.id] = detail.with_preferences(existing.is_favorite, existing.is_completed)
        return True

    # ------------------------------------------------------------------
    # Cache-first entry points
    # ------------------------------------------------------------------

    async def fetch_all_games(self, use_cache: bool = True) -> Snapshot:
        """Return the library, from cache when possible.

        A cached snapshot is returned immediately; if it is stale a background
        refresh is started. Without a usable cache (or with ``use_cache=False``)
        a full synchronization runs before returning.
        """
        cached = self.get_cached_snapshot()
        if use_cache and cached is not None:
            if cached.is_stale(self._clock(), self.update_interval) and not self.is_syncing:
                self.refresh_in_background()
            return Snapshot(
                games=self.preferences.apply(cached.games),
                timestamp=cached.timestamp,
                last_updated=cached.last_updated,
                profile=cached.profile,
            )

        return await self.synchronize()

    def refresh_in_background(self) -> Optional[asyncio.Task]:
        """Start a background refresh unless a pass is already running."""
        if self.is_syncing:
            logger.debug("Sync in progress, not starting a background refresh")
            return None
        return self._background.start()

    async def _refresh_from_store(self) -> Snapshot:
        return await self.synchronize(self.get_cached_snapshot())

    async def wait_for_background(self):
        """Wait for a running background refresh; its failure is kept on background_error."""
        task = self._background.task
        if task is not None and not task.done():
            await task

    async def fetch_game_page(self, page: int, page_size: int) -> Tuple[List[DetailedRecord], bool]:
        """Fetch one listing page with details, without touching the snapshot."""
        records, has_more = await self.listing_source.fetch_page(page)
        records = records[:page_size]
        games: List[DetailedRecord] = []
        for start in range(0, len(records), self.batch_size):
            if start:
                await asyncio.sleep(self.batch_pause)
            batch = records[start:start + self.batch_size]
            details = await asyncio.gather(*[self._fetch_detail(r) for r in batch])
            games.extend(d for d in details if d is not None)
        return self.preferences.apply(games), has_more

    # ------------------------------------------------------------------
    # Preferences
    # ------------------------------------------------------------------

    def update_game_preferences(self, game_id: str, is_favorite: Optional[bool] = None,
                                is_completed: Optional[bool] = None) -> Optional[DetailedRecord]:
        """Set favorite/completed for a game and patch the cached snapshot.

        Returns the updated game, or None if it is not in the snapshot.
        """
        self.preferences.update(game_id, is_favorite=is_favorite, is_completed=is_completed)

        if self._working is not None and game_id in self._working:
            self._working[game_id] = self.preferences.overlay(self._working[game_id])

        cached = self.get_cached_snapshot()
        if cached is None or cached.get(game_id) is None:
            return None
        # A preference edit does not count as a refresh
        snapshot = self._write_snapshot(cached.games, cached.profile, timestamp=cached.timestamp)
        return snapshot.get(game_id)

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    async def close(self):
        """Cancel the persist timer, any background refresh and any running pass."""
        self._persist.cancel()
        await self._background.stop()
        if self._sync_task is not None and not self._sync_task.done():
            self._sync_task.cancel()
            try:
                await self._sync_task
            except asyncio.CancelledError:
                pass
        self._sync_task = None
