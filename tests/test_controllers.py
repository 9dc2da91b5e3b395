"""
Tests for the async helpers used by the sync engine.
"""
import asyncio
from unittest.mock import AsyncMock, Mock

import pytest

from sharenite_mirror.controllers import BackgroundRefresh, DebouncedAction, SyncProgress


class TestDebouncedAction:

    @pytest.mark.asyncio
    async def test_rapid_schedules_run_only_the_last_action(self):
        debounced = DebouncedAction(0.01)
        first, second = Mock(), Mock()

        debounced.schedule(first)
        debounced.schedule(second)
        await asyncio.sleep(0.05)

        first.assert_not_called()
        second.assert_called_once()
        assert not debounced.pending

    @pytest.mark.asyncio
    async def test_flush_runs_pending_action_immediately(self):
        debounced = DebouncedAction(10)
        action = Mock()

        debounced.schedule(action)
        debounced.flush()

        action.assert_called_once()
        assert not debounced.pending

    @pytest.mark.asyncio
    async def test_cancel_drops_pending_action(self):
        debounced = DebouncedAction(0.01)
        action = Mock()

        debounced.schedule(action)
        debounced.cancel()
        await asyncio.sleep(0.03)

        action.assert_not_called()

    @pytest.mark.asyncio
    async def test_failing_action_is_contained(self):
        debounced = DebouncedAction(10)

        debounced.schedule(Mock(side_effect=RuntimeError("disk full")))
        debounced.flush()

        assert not debounced.pending


class TestBackgroundRefresh:

    @pytest.mark.asyncio
    async def test_only_one_refresh_runs_at_a_time(self):
        release = asyncio.Event()
        refresh = AsyncMock(side_effect=release.wait)
        background = BackgroundRefresh(refresh)

        task = background.start()
        assert background.start() is None
        release.set()
        await task

        refresh.assert_awaited_once()
        assert not background.running

    @pytest.mark.asyncio
    async def test_failure_is_kept_on_last_error(self):
        error = ConnectionError("offline")
        background = BackgroundRefresh(AsyncMock(side_effect=error))

        await background.start()

        assert background.last_error is error

    @pytest.mark.asyncio
    async def test_stop_cancels_running_refresh(self):
        async def slow():
            await asyncio.sleep(10)

        background = BackgroundRefresh(slow)
        background.start()
        await asyncio.sleep(0)

        await background.stop()

        assert background.task is None
        assert not background.running


class TestSyncProgress:

    def test_starts_idle(self):
        progress = SyncProgress()

        assert progress.status == "idle"
        assert progress.is_syncing is False

    def test_counts_accumulate_per_page(self):
        progress = SyncProgress()
        progress.reset(initial_load=True)

        progress.page_done(1, seen=20, changed=20, skipped=0)
        progress.page_done(2, seen=20, changed=3, skipped=1)

        data = progress.to_dict()
        assert data["pages_fetched"] == 2
        assert data["records_seen"] == 40
        assert data["records_changed"] == 23
        assert data["records_skipped"] == 1
        assert data["current_page"] == 2
        assert data["is_syncing"] is True

    def test_fail_records_error(self):
        progress = SyncProgress()
        progress.reset(initial_load=False)

        progress.fail("boom")

        assert progress.status == "error"
        assert progress.error == "boom"
        assert progress.is_syncing is False
