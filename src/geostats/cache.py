"""Time-bounded memo of recently enriched upstream entities.

Throttles outbound profile / ranked-team lookups for players and teams
that show up in many matches ingested close together.

A key moves through two states:

* **pending** -- a lookup was started.  Every caller asking for the key
  while it runs, or within one TTL after it finished, shares that one
  lookup and gets its result, so each of their write-sets carries the row.
  A failed lookup is forgotten and the next caller starts a new one.
* **refreshed** -- the row was committed.  Callers get None for one TTL;
  the stored snapshot is fresh enough.

The pipeline marks a key refreshed only after the row is stored, so a
match that is rejected after its lookups never leaves the key looking
fresh while the row is missing from the database.

Fully async -- uses an asyncio.Lock held only for the read-check-then-write
sequence, never across an I/O call.
"""

import asyncio
import time
from typing import Awaitable, Callable, Optional, TypeVar

T = TypeVar("T")


class TTLCache:
    """Tracks pending lookups and when each key was last stored.

    Usage::

        cache = TTLCache(ttl=90.0)
        row = await cache.lookup(key, lambda: fetch_row(player_id))
        ...  # commit row
        await cache.mark_refreshed(key)
    """

    def __init__(
        self, ttl: float, clock: Callable[[], float] = time.monotonic
    ) -> None:
        self._ttl = ttl
        self._clock = clock
        self._expires: dict[str, float] = {}
        # key -> (shared lookup, time after which a finished lookup is stale)
        self._pending: dict[str, tuple[asyncio.Future, float]] = {}
        self._lock = asyncio.Lock()

    @property
    def ttl(self) -> float:
        return self._ttl

    def __len__(self) -> int:
        return len(self._expires)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def should_refresh(self, key: str) -> bool:
        """True if ``key`` has no entry or its entry has expired."""
        async with self._lock:
            expires = self._expires.get(key)
            return expires is None or expires <= self._clock()

    async def lookup(
        self, key: str, fetch: Callable[[], Awaitable[T]]
    ) -> Optional[T]:
        """Return the result of ``fetch()``, running it at most once per key.

        Returns None without calling ``fetch`` if ``key`` was marked
        refreshed within the TTL.

        Raises:
            Whatever ``fetch`` raises, to every caller sharing the lookup.
        """
        async with self._lock:
            now = self._clock()
            expires = self._expires.get(key)
            if expires is not None and expires > now:
                return None

            entry = self._pending.get(key)
            if entry is None or self._is_stale(entry, now):
                entry = (asyncio.ensure_future(fetch()), now + self._ttl)
                self._pending[key] = entry
            task = entry[0]

        try:
            # Shielded so one cancelled caller does not cancel the others
            return await asyncio.shield(task)
        except Exception:
            async with self._lock:
                if key in self._pending and self._pending[key][0] is task:
                    del self._pending[key]
            raise

    async def mark_refreshed(self, key: str) -> None:
        """Record that ``key``'s row was stored; valid for one TTL."""
        async with self._lock:
            now = self._clock()
            self._purge(now)
            self._expires[key] = now + self._ttl
            self._pending.pop(key, None)

    @staticmethod
    def _is_stale(entry: tuple[asyncio.Future, float], now: float) -> bool:
        task, stale_at = entry
        if not task.done():
            return False
        return task.cancelled() or task.exception() is not None or stale_at <= now

    def _purge(self, now: float) -> None:
        """Drop expired entries. Caller must hold the lock."""
        stale = [k for k, expires in self._expires.items() if expires <= now]
        for key in stale:
            del self._expires[key]
        finished = [k for k, entry in self._pending.items() if self._is_stale(entry, now)]
        for key in finished:
            del self._pending[key]
