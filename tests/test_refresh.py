import asyncio

import pytest

from gastos.events import BUDGETS_CHANGED, EXPENSES_CHANGED
from gastos.refresh import RefreshLoop, Snapshot, fetch_snapshot
from gastos.store import InMemoryStore, StoreError


@pytest.mark.asyncio
async def test_fetch_snapshot_gathers_everything():
    store = InMemoryStore()
    store.insert_expense(10, "comida", "u1")
    store.upsert_budget(3, 2024, 100)
    store.insert_template(5, "ocio", 3, "u1")

    snap = await fetch_snapshot(store, generation=4)
    assert snap.generation == 4
    assert len(snap.expenses) == 1
    assert len(snap.budgets) == 1
    assert len(snap.templates) == 1


@pytest.mark.asyncio
async def test_burst_of_invalidations_collapses_to_one_fetch():
    delivered = []
    loop = RefreshLoop(lambda: ("snapshot",), lambda gen, result: delivered.append((gen, result)))

    for _ in range(5):
        loop.invalidate()
    loop.stop()
    await asyncio.wait_for(loop.run(), timeout=1)

    assert loop.fetch_count == 1
    assert delivered == [(1, ("snapshot",))]


@pytest.mark.asyncio
async def test_stale_fetch_is_discarded():
    gate = asyncio.Event()
    calls = {"n": 0}

    async def fetch():
        calls["n"] += 1
        mine = calls["n"]
        if mine == 1:
            await gate.wait()
        return mine

    delivered = []
    loop = RefreshLoop(fetch, lambda gen, result: delivered.append((gen, result)))

    slow = asyncio.create_task(loop.refresh_once())
    await asyncio.sleep(0)
    fast = await loop.refresh_once()
    gate.set()
    stale = await slow

    assert fast == 2
    assert stale is None
    assert delivered == [(2, 2)]
    assert loop.is_current(2)


@pytest.mark.asyncio
async def test_failed_fetch_keeps_previous_snapshot():
    results = iter([("first",), StoreError("offline")])

    def fetch():
        value = next(results)
        if isinstance(value, Exception):
            raise value
        return value

    delivered = []
    loop = RefreshLoop(fetch, lambda gen, result: delivered.append(result))
    assert await loop.refresh_once() == ("first",)
    assert await loop.refresh_once() is None
    assert delivered == [("first",)]


@pytest.mark.asyncio
async def test_store_change_feed_drives_refresh():
    store = InMemoryStore()
    snapshots = []
    loop = RefreshLoop.for_store(store, lambda gen, snap: snapshots.append(snap))
    store.subscribe(EXPENSES_CHANGED, loop.listener)

    store.insert_expense(10, "comida", "u1")
    store.insert_expense(20, "ocio", "u1")
    loop.stop()
    await asyncio.wait_for(loop.run(), timeout=1)

    assert len(snapshots) == 1
    assert isinstance(snapshots[0], Snapshot)
    assert snapshots[0].generation == 1
    assert sorted(e.amount for e in snapshots[0].expenses) == [10, 20]


@pytest.mark.asyncio
async def test_refresh_pending_only_fetches_when_invalidated():
    delivered = []
    loop = RefreshLoop(lambda: ("snapshot",), lambda gen, result: delivered.append(gen))

    assert await loop.refresh_pending() is None
    assert loop.fetch_count == 0

    loop.invalidate()
    loop.invalidate()
    assert await loop.refresh_pending() == ("snapshot",)
    assert await loop.refresh_pending() is None
    assert loop.fetch_count == 1
    assert delivered == [1]


@pytest.mark.asyncio
async def test_watch_detaches_every_subscription():
    store = InMemoryStore()
    names = (EXPENSES_CHANGED, BUDGETS_CHANGED)
    loop = RefreshLoop.for_store(store, lambda gen, snap: None)

    detach = loop.watch(store, names)
    assert [store.events.subscriber_count(n) for n in names] == [1, 1]
    store.upsert_budget(3, 2024, 100)
    assert (await loop.refresh_pending()).budgets[0].amount == 100

    detach()
    assert [store.events.subscriber_count(n) for n in names] == [0, 0]
    store.insert_expense(10, "comida", "u1")
    assert await loop.refresh_pending() is None
