"""
Query Cache

Keyed store of server data shown by the order board. Keys are tuples built
by ``OrderKeys``; predicates select groups of keys (all order lists, one
restaurant's stats, ...).

Every write goes through one of three paths:
    - ``fetch``: load from the server (discarded if cancelled meanwhile)
    - ``optimistic``: provisional write with snapshot and rollback
    - ``set`` / ``set_all``: direct writes used by the two above
"""

import copy
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

Key = tuple
Predicate = Callable[[Key], bool]
Fetcher = Callable[[], Awaitable[Any]]
Listener = Callable[[Key, Any], None]


class OrderKeys:
    """Cache keys for order data."""

    all: Key = ("orders",)

    @staticmethod
    def lists() -> Key:
        return ("orders", "list")

    @staticmethod
    def list(filters: Optional[dict[str, Any]] = None) -> Key:
        frozen = tuple(sorted((k, v) for k, v in (filters or {}).items() if v is not None))
        return ("orders", "list", frozen)

    @staticmethod
    def detail(order_id: str) -> Key:
        return ("orders", "detail", order_id)

    @staticmethod
    def stats(restaurant_id: str, period: str = "today") -> Key:
        return ("orders", "stats", restaurant_id, period)


def starts_with(prefix: Key) -> Predicate:
    """Predicate matching every key under ``prefix``."""
    return lambda key: key[:len(prefix)] == prefix


order_lists = starts_with(OrderKeys.lists())


class QueryCache:
    """In-memory query cache for one event loop."""

    def __init__(self):
        self._data: dict[Key, Any] = {}
        self._fetchers: dict[Key, Fetcher] = {}
        self._generation: dict[Key, int] = {}
        self._stale: set[Key] = set()
        self._listeners: list[Listener] = []
        self._pending: list[tuple[Predicate, Callable[[Any], Any]]] = []

    # -------------------------------------------------------------------------
    # reads / writes
    # -------------------------------------------------------------------------

    def get(self, key: Key) -> Any:
        return self._data.get(key)

    def set(self, key: Key, value: Any) -> None:
        self._data[key] = value
        for listener in list(self._listeners):
            listener(key, value)

    def keys(self, predicate: Predicate) -> list[Key]:
        return [key for key in self._data if predicate(key)]

    def get_all(self, predicate: Predicate) -> list[tuple[Key, Any]]:
        return [(key, self._data[key]) for key in self.keys(predicate)]

    def set_all(self, predicate: Predicate, updater: Callable[[Any], Any]) -> list[Key]:
        """
        Replace every matching value with ``updater(value)``.

        Returns:
            Keys whose value actually changed (updater returned a new object)
        """
        changed = []
        for key, value in self.get_all(predicate):
            new_value = updater(value)
            if new_value is not value:
                self.set(key, new_value)
                changed.append(key)
        return changed

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener(key, value)`` on every write. Returns the unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def is_stale(self, key: Key) -> bool:
        return key in self._stale

    # -------------------------------------------------------------------------
    # server sync
    # -------------------------------------------------------------------------

    async def fetch(self, key: Key, fetcher: Fetcher) -> Any:
        """
        Load ``key`` through ``fetcher`` and store the result.

        The fetcher is remembered so ``invalidate`` can refetch. If the key is
        cancelled while the request is in flight the response is dropped and
        the current cached value is returned instead.

        Optimistic writes still in flight are re-applied on top of the
        response, so a refetch that started before the server saw a change
        cannot roll it back on screen.
        """
        self._fetchers[key] = fetcher
        generation = self._generation.get(key, 0)

        data = await fetcher()

        if self._generation.get(key, 0) != generation:
            logger.debug(f"Discarding cancelled fetch for {key}")
            return self.get(key)

        for predicate, apply in list(self._pending):
            if predicate(key):
                data = apply(data)

        self._stale.discard(key)
        self.set(key, data)
        return data

    def cancel(self, predicate: Predicate) -> None:
        """Make in-flight fetches of the matching keys drop their results."""
        for key in set(self._data) | set(self._fetchers):
            if predicate(key):
                self._generation[key] = self._generation.get(key, 0) + 1

    async def invalidate(self, predicate: Predicate) -> None:
        """Mark matching keys stale and refetch those that have a fetcher."""
        for key in self.keys(predicate):
            self._stale.add(key)
            fetcher = self._fetchers.get(key)
            if fetcher is not None:
                await self.fetch(key, fetcher)

    def remove(self, predicate: Predicate) -> None:
        for key in self.keys(predicate):
            del self._data[key]
            self._fetchers.pop(key, None)
            self._stale.discard(key)

    # -------------------------------------------------------------------------
    # optimistic writes
    # -------------------------------------------------------------------------

    @asynccontextmanager
    async def optimistic(
        self,
        predicate: Predicate,
        apply: Callable[[Any], Any],
        revert: Callable[[Any, Any], Any],
    ) -> AsyncIterator[list[tuple[Key, Any]]]:
        """
        Provisionally rewrite matching entries for the duration of the block.

        In-flight fetches are cancelled, a snapshot is taken, ``apply`` runs
        on every matching value. If the block raises, each changed entry is
        set to ``revert(current_value, snapshot_value)`` and the exception is
        re-raised. While the block runs, ``apply`` is also replayed on any
        matching key that ``fetch`` stores.

        Yields:
            The snapshot as ``[(key, value), ...]``
        """
        self.cancel(predicate)
        snapshot = copy.deepcopy(self.get_all(predicate))
        previous = dict(snapshot)

        changed = self.set_all(predicate, apply)
        entry = (predicate, apply)
        self._pending.append(entry)

        try:
            yield snapshot
        except BaseException:
            for key in changed:
                if key in previous:
                    self.set(key, revert(self.get(key), previous[key]))
            raise
        finally:
            self._pending = [p for p in self._pending if p is not entry]
