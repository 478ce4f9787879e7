"""
Tests for StateChangeMonitor.
"""

import asyncio

import pytest

from switchboard.src.domain.errors import StorageIOError
from switchboard.src.domain.services.state_monitor import StateChangeMonitor
from switchboard.src.infrastructure.target.state_db import StateDatabase


class FlakyDatabase:
    """Snapshot source that fails on demand."""

    def __init__(self, database):
        self.database = database
        self.fail = False

    def snapshot(self):
        if self.fail:
            raise StorageIOError("database is locked")
        return self.database.snapshot()


class TestTick:

    @pytest.mark.asyncio
    async def test_first_tick_only_records_baseline(self, database, seed):
        seed({"a": "1"})
        monitor = StateChangeMonitor(database)

        assert await monitor.tick() is None
        assert monitor.latest_snapshot.get("a") == 1

    @pytest.mark.asyncio
    async def test_change_emits_event_to_sync_and_async_listeners(self, database, seed):
        seed({"a": "1"})
        monitor = StateChangeMonitor(database)
        sync_events, async_events = [], []

        async def async_listener(event):
            async_events.append(event)

        monitor.add_listener(sync_events.append)
        monitor.add_listener(async_listener)

        await monitor.tick()
        seed({"a": "2", "b": "x"})
        event = await monitor.tick()

        assert event.diff.changed_fields == ["a: changed", "b: added"]
        assert event.old_snapshot.get("a") == 1
        assert event.new_snapshot.get("a") == 2
        assert sync_events == [event]
        assert async_events == [event]

    @pytest.mark.asyncio
    async def test_no_change_emits_nothing_but_updates_baseline(self, database, seed):
        seed({"a": "1"})
        monitor = StateChangeMonitor(database)
        events = []
        monitor.add_listener(events.append)

        await monitor.tick()
        first = monitor.latest_snapshot
        await monitor.tick()

        assert events == []
        assert monitor.latest_snapshot is not first

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_stop_others(self, database, seed):
        seed({"a": "1"})
        monitor = StateChangeMonitor(database)
        received = []

        def broken(event):
            raise RuntimeError("boom")

        monitor.add_listener(broken)
        monitor.add_listener(received.append)

        await monitor.tick()
        seed({"a": "2"})
        await monitor.tick()

        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_missing_store_is_treated_as_empty(self, tmp_path):
        monitor = StateChangeMonitor(StateDatabase(tmp_path / "absent.vscdb"))
        await monitor.tick()
        assert len(monitor.latest_snapshot) == 0

    @pytest.mark.asyncio
    async def test_read_error_skips_tick_and_keeps_baseline(self, database, seed):
        seed({"a": "1"})
        flaky = FlakyDatabase(database)
        monitor = StateChangeMonitor(flaky)
        await monitor.tick()
        baseline = monitor.latest_snapshot

        flaky.fail = True
        assert await monitor.tick() is None

        assert monitor.latest_snapshot is baseline


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, database):
        monitor = StateChangeMonitor(database, interval=0.05)

        assert await monitor.start() is True
        assert await monitor.start() is False
        assert monitor.is_running

        await monitor.stop()
        await monitor.wait_stopped(timeout=1.0)

    @pytest.mark.asyncio
    async def test_stop_when_not_running_returns_false(self, database):
        assert await StateChangeMonitor(database).stop() is False

    @pytest.mark.asyncio
    async def test_running_loop_reports_changes(self, database, seed):
        seed({"a": "1"})
        monitor = StateChangeMonitor(database, interval=0.05)
        events = []
        monitor.add_listener(events.append)

        await monitor.start()
        await asyncio.sleep(0.12)
        seed({"a": "2"})
        await asyncio.sleep(0.2)
        await monitor.stop()
        await monitor.wait_stopped(timeout=1.0)

        assert len(events) == 1
        assert events[0].diff.changed_fields == ["a: changed"]
        assert monitor.is_running is False

    @pytest.mark.asyncio
    async def test_restart_within_one_tick_leaves_single_loop(self, database):
        monitor = StateChangeMonitor(database, interval=0.2)

        await monitor.start()
        first_task = monitor._task
        await monitor.stop()
        await monitor.start()
        await asyncio.sleep(0.3)

        assert first_task.done()
        assert not monitor._task.done()

        await monitor.stop()
        await monitor.wait_stopped(timeout=1.0)
