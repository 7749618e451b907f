from __future__ import annotations

import threading
from typing import Callable

from ..logging import get_logger

logger = get_logger(__name__)


class QueryCache:
    """Listing results keyed by query name.

    Mutations call invalidate() and the next read refetches. There is no
    optimistic update and no ordering between concurrent fetches, but a
    fetch that was in flight when its key got invalidated is returned to
    its caller without being cached.
    """

    def __init__(self):
        self._data: dict[str, list[dict]] = {}
        self._generations: dict[str, int] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> list[dict] | None:
        with self._lock:
            return self._data.get(key)

    def get_or_fetch(self, key: str, fetch: Callable[[], list[dict]]) -> list[dict]:
        with self._lock:
            cached = self._data.get(key)
            if cached is not None:
                return cached
            generation = self._generations.get(key, 0)
        rows = fetch()
        with self._lock:
            if self._generations.get(key, 0) == generation:
                self._data[key] = rows
            else:
                logger.debug("query_result_discarded", key=key)
        return rows

    def invalidate(self, *keys: str) -> None:
        with self._lock:
            for key in keys:
                self._data.pop(key, None)
                self._generations[key] = self._generations.get(key, 0) + 1
        logger.debug("query_invalidated", keys=list(keys))
