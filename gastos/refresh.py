"""Coalescing re-fetch loop driven by store change events.

A change event only means "the snapshot is stale". Bursts of events collapse
into a single fetch, and each fetch is tagged with a generation number so a
slow fetch that finishes after a newer one never overwrites fresher data.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Optional, Tuple, Union

from gastos.domain import Budget, Expense, RecurringExpense
from gastos.events import Event
from gastos.store import RecordStore, StoreError

logger = logging.getLogger(__name__)

_INVALIDATE = object()
_STOP = object()

Fetch = Callable[[], Union[Any, Awaitable[Any]]]


@dataclass(frozen=True)
class Snapshot:
    generation: int
    expenses: Tuple[Expense, ...]
    budgets: Tuple[Budget, ...] = ()
    templates: Tuple[RecurringExpense, ...] = ()


async def _call(fetch: Fetch) -> Any:
    if inspect.iscoroutinefunction(fetch):
        return await fetch()
    # blocking store calls run off the event loop
    return await asyncio.to_thread(fetch)


async def fetch_snapshot(store: RecordStore, generation: int = 0) -> Snapshot:
    """Fetch expenses, budgets and active templates concurrently."""
    expenses, budgets, templates = await asyncio.gather(
        _call(store.fetch_expenses),
        _call(store.fetch_budgets),
        _call(store.fetch_templates),
    )
    return Snapshot(generation, tuple(expenses), tuple(budgets), tuple(templates))


class RefreshLoop:
    def __init__(self, fetch: Fetch, on_snapshot: Callable[[int, Any], None]):
        self._fetch = fetch
        self._on_snapshot = on_snapshot
        self._queue: asyncio.Queue = asyncio.Queue()
        self._issued = 0
        self.fetch_count = 0

    @classmethod
    def for_store(cls, store: RecordStore, on_snapshot: Callable[[int, Snapshot], None]) -> "RefreshLoop":
        """Loop that re-fetches a full :class:`Snapshot` of ``store``."""
        loop = None

        async def fetch() -> Snapshot:
            return await fetch_snapshot(store, loop.generation)

        loop = cls(fetch, on_snapshot)
        return loop

    @property
    def generation(self) -> int:
        return self._issued

    def is_current(self, generation: int) -> bool:
        return generation == self._issued

    def invalidate(self) -> None:
        self._queue.put_nowait(_INVALIDATE)

    def listener(self, event: Event, payload: dict) -> dict:
        """EventBus handler: any change event schedules a refresh."""
        self.invalidate()
        return {"invalidated": event.name}

    def watch(self, source, names: Iterable[str]) -> Callable[[], None]:
        """Subscribe :meth:`listener` to every event in ``names`` on ``source``.

        ``source`` is anything with an EventBus-style ``subscribe``; the
        returned callable drops every subscription again.
        """
        unsubscribers = [source.subscribe(name, self.listener) for name in names]

        def detach() -> None:
            for unsubscribe in unsubscribers:
                unsubscribe()

        return detach

    def stop(self) -> None:
        self._queue.put_nowait(_STOP)

    async def refresh_once(self) -> Optional[Any]:
        """Fetch now and deliver the result unless a newer fetch was issued meanwhile."""
        self._issued += 1
        generation = self._issued
        self.fetch_count += 1
        try:
            result = await _call(self._fetch)
        except StoreError as exc:
            logger.error("Refresh %d failed, keeping previous snapshot: %s", generation, exc)
            return None

        if not self.is_current(generation):
            logger.debug("Discarding stale refresh %d (latest is %d)", generation, self._issued)
            return None
        self._on_snapshot(generation, result)
        return result

    async def refresh_pending(self) -> Optional[Any]:
        """Collapse every queued invalidation into one fetch, or do nothing if none is queued."""
        if self._queue.empty():
            return None
        while not self._queue.empty():
            self._queue.get_nowait()
        return await self.refresh_once()

    async def run(self) -> None:
        while True:
            token = await self._queue.get()
            if token is _STOP:
                return
            stopping = False
            while not self._queue.empty():
                if self._queue.get_nowait() is _STOP:
                    stopping = True
            await self.refresh_once()
            if stopping:
                return
