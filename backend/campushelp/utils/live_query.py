"""Live queries on top of the realtime bus.

A live query fetches its result once, then re-fetches every time something
is published on its channel and hands each result to ``on_update``. Writers
publish on the channel after every change, so readers converge on the
stored state without polling.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Generic, Hashable, Iterable, List, Optional, Set, TypeVar


logger = logging.getLogger(__name__)

T = TypeVar("T")

OnError = Callable[[Exception], None]


class LiveQuery(Generic[T]):

    def __init__(
        self,
        bus,
        channel: str,
        fetch: Callable[[], Awaitable[T]],
        on_update: Callable[[T], None],
        on_error: Optional[OnError] = None,
    ) -> None:
        self._bus = bus
        self._channel = channel
        self._fetch = fetch
        self._on_update = on_update
        self._on_error = on_error
        self._sub = None
        self._task: Optional[asyncio.Task] = None
        self._cancelled = False

    @property
    def channel(self) -> str:
        return self._channel

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    async def start(self) -> None:
        self._sub = await self._bus.subscribe(self._channel, self._on_notify)
        await self.refresh()
        if not self._cancelled:
            self._task = asyncio.create_task(self._sub.run())

    async def refresh(self) -> None:
        if self._cancelled:
            return
        try:
            result = await self._fetch()
        except Exception as exc:
            logger.warning("Live query on %s failed: %s", self._channel, exc)
            if self._on_error is not None and not self._cancelled:
                self._on_error(exc)
            return
        # Cancelled while the fetch was in flight
        if self._cancelled:
            return
        self._on_update(result)

    async def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        if self._sub is not None:
            await self._sub.cancel()
        if self._task is not None and self._task is not asyncio.current_task():
            self._task.cancel()

    async def _on_notify(self, _message: str) -> None:
        await self.refresh()


class LiveGroup:
    """Starts and cancels several live queries as one subscription."""

    def __init__(self, queries: Iterable[LiveQuery]) -> None:
        self._queries: List[LiveQuery] = list(queries)

    @property
    def queries(self) -> List[LiveQuery]:
        return list(self._queries)

    async def start(self) -> None:
        try:
            for query in self._queries:
                await query.start()
        except Exception:
            await self.cancel()
            raise

    async def cancel(self) -> None:
        for query in self._queries:
            await query.cancel()


class KeyedMerge(Generic[T]):
    """Merges the results of several sources into one keyed, sorted list.

    Each source owns a slice of the map and replaces it wholesale on every
    emission, so a record that drops out of a source also drops out of the
    merged list unless another source still holds it.

    Nothing is emitted until every source has reported once, either with a
    result or through ``failed``.
    """

    def __init__(
        self,
        on_update: Callable[[List[T]], None],
        key: Callable[[T], Hashable],
        sort_key: Callable[[T], Any],
        reverse: bool = False,
    ) -> None:
        self._on_update = on_update
        self._key = key
        self._sort_key = sort_key
        self._reverse = reverse
        self._slices: Dict[str, Dict[Hashable, T]] = {}
        self._loaded: Set[str] = set()
        self._failed: Set[str] = set()

    @property
    def ready(self) -> bool:
        return bool(self._loaded) and self._loaded | self._failed >= set(self._slices)

    def source(self, name: str) -> Callable[[List[T]], None]:
        self._slices.setdefault(name, {})

        def _apply(items: List[T]) -> None:
            self._slices[name] = {self._key(item): item for item in items}
            self._loaded.add(name)
            self._failed.discard(name)
            if self.ready:
                self._on_update(self.snapshot())

        return _apply

    def failed(self, name: str) -> None:
        # counts as reported until its first successful load
        was_ready = self.ready
        if name not in self._loaded:
            self._failed.add(name)
        if self.ready and not was_ready:
            self._on_update(self.snapshot())

    def snapshot(self) -> List[T]:
        merged: Dict[Hashable, T] = {}
        for records in self._slices.values():
            merged.update(records)
        return sorted(merged.values(), key=self._sort_key, reverse=self._reverse)
