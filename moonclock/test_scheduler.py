from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest

from broadcaster import Broadcaster
from scheduler import Scheduler, SchedulerStartError, SchedulerState
from snapshot import build_snapshot
from store import SnapshotStore

FIXED = datetime(2025, 8, 12, 21, 30, tzinfo=timezone.utc)


def _make(build=build_snapshot, interval_s=300.0):
    store = SnapshotStore()
    broadcaster = Broadcaster()
    scheduler = Scheduler(store, broadcaster, interval_s=interval_s, build=build, clock=lambda: FIXED)
    return store, broadcaster, scheduler


def test_tick_replaces_store_and_publishes():
    store, broadcaster, scheduler = _make()
    cid = broadcaster.subscribe()

    snap = scheduler.tick()

    assert snap is not None
    assert store.current() is snap
    assert snap.computed_at == FIXED
    assert broadcaster.channel(cid).pending() == 1
    assert scheduler.ticks == 1
    assert scheduler.failed_ticks == 0


def test_failed_tick_keeps_previous_snapshot_and_next_tick_runs():
    calls = {"n": 0}

    def flaky(t):
        calls["n"] += 1
        if calls["n"] == 2:
            raise RuntimeError("unexpected")
        return build_snapshot(t)

    store, broadcaster, scheduler = _make(build=flaky)
    cid = broadcaster.subscribe()

    first = scheduler.tick()
    assert scheduler.tick() is None
    assert store.current() is first
    assert scheduler.failed_ticks == 1
    assert broadcaster.channel(cid).pending() == 1

    third = scheduler.tick()
    assert third is not None
    assert store.current() is third
    assert scheduler.ticks == 2


def test_interval_must_be_positive():
    with pytest.raises(ValueError):
        _make(interval_s=0)


def test_start_without_event_loop_fails_loudly():
    store, _, scheduler = _make()
    with pytest.raises(SchedulerStartError):
        scheduler.start()
    assert scheduler.state is SchedulerState.IDLE
    assert store.current() is None


def test_store_empty_before_start_and_populated_after():
    async def scenario():
        store, _, scheduler = _make()
        assert scheduler.state is SchedulerState.IDLE
        assert store.current() is None

        scheduler.start()
        try:
            snap = store.current()
            assert snap is not None
            assert snap.last_updated == "2025-08-12T21:30:00Z"
            assert scheduler.state is SchedulerState.RUNNING
            with pytest.raises(SchedulerStartError):
                scheduler.start()
        finally:
            await scheduler.stop()

    asyncio.run(scenario())


def test_recurring_ticks_survive_failures():
    calls = {"n": 0}

    def sometimes_broken(t):
        calls["n"] += 1
        if calls["n"] % 2 == 0:
            raise ArithmeticError("bad tick")
        return build_snapshot(t)

    async def scenario():
        store, _, scheduler = _make(build=sometimes_broken, interval_s=0.01)
        scheduler.start()
        try:
            await asyncio.sleep(0.2)
        finally:
            await scheduler.stop()
        return store, scheduler

    store, scheduler = asyncio.run(scenario())
    assert scheduler.failed_ticks >= 2
    assert scheduler.ticks >= 2
    assert store.current() is not None


def test_stop_without_start_is_noop():
    _, _, scheduler = _make()
    asyncio.run(scheduler.stop())
