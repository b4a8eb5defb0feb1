"""TTL connection cache with per-tenant single-flight establishment.

Concurrent ``acquire`` calls for the same tenant share one establishment
task. Each caller awaits it through :func:`asyncio.shield`, so a caller
cancelled by its own deadline leaves the others waiting; the task itself is
cancelled only once its last waiter is gone. A failed establishment leaves
no entry behind and the next call retries.

Expired entries are retired by a background sweep (snapshot, remove, close)
and by lookups that find them stale. Closing goes through
:meth:`TenantConnection.close`, which waits for in-flight operations.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, Set

from ...config.constants import CacheDefaults
from ...core.exceptions import TenantConnectError
from ..middleware.tenant_connection import TenantConnection
from .cache_entry import CacheEntry

logger = logging.getLogger(__name__)

ConnectionFactory = Callable[[], Awaitable[TenantConnection]]


@dataclass
class _PendingConnect:
    task: asyncio.Task
    generation: int
    waiters: int = 0


@dataclass
class CacheSnapshot:
    """Point-in-time view of the cache for statistics."""

    cached_connections: int
    total_connections: int
    connection_counts: Dict[str, int] = field(default_factory=dict)
    pending: int = 0


class ConnectionCache:
    """Per-tenant connection cache."""

    def __init__(
        self,
        ttl_seconds: float = CacheDefaults.TTL_SECONDS,
        sweep_interval_seconds: Optional[float] = None,
        enabled: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.sweep_interval_seconds = sweep_interval_seconds or ttl_seconds
        self._enabled = enabled
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._pending: Dict[str, _PendingConnect] = {}
        self._access_counts: Dict[str, int] = {}
        self._generations: Dict[str, int] = {}
        self._retiring: Set[asyncio.Task] = set()
        self._sweep_task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._closed = False

    @property
    def enabled(self) -> bool:
        return self._enabled and self.ttl_seconds > 0

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, tenant_id: str) -> bool:
        return tenant_id in self._entries

    def get_entry(self, tenant_id: str) -> Optional[CacheEntry]:
        return self._entries.get(tenant_id)

    # Acquisition

    async def acquire(self, tenant_id: str, factory: ConnectionFactory) -> TenantConnection:
        """Return the cached connection for ``tenant_id`` or establish one.

        Raises:
            TenantConnectError: If the cache has been closed or establishment fails
        """
        if self._closed:
            raise TenantConnectError(tenant_id, "acquire connection", "connection cache is closed")

        if not self.enabled:
            connection = await factory()
            connection.close_on_release = True
            self._count_access(tenant_id)
            return connection

        self._ensure_sweeper()

        entry = self._entries.get(tenant_id)
        if entry is not None:
            if entry.usable and not entry.is_expired(self._clock(), self.ttl_seconds):
                entry.hits += 1
                self._count_access(tenant_id)
                return entry.connection
            logger.debug(f"Cached connection for tenant {tenant_id} is stale, retiring it")
            self._retire(entry)

        pending = self._pending.get(tenant_id)
        if pending is None or pending.task.done():
            generation = self._generations.get(tenant_id, 0)
            task = asyncio.ensure_future(self._establish(tenant_id, factory, generation))
            pending = _PendingConnect(task=task, generation=generation)
            self._pending[tenant_id] = pending
            task.add_done_callback(lambda t, key=tenant_id, p=pending: self._pending_done(key, p))

        pending.waiters += 1
        try:
            connection = await asyncio.shield(pending.task)
        finally:
            pending.waiters -= 1
            if pending.waiters == 0 and not pending.task.done():
                logger.debug(f"Last waiter for tenant {tenant_id} left, cancelling connect")
                # Later callers must start a fresh connect, not join this one
                if self._pending.get(tenant_id) is pending:
                    del self._pending[tenant_id]
                pending.task.cancel()
                self._retiring.add(pending.task)
                pending.task.add_done_callback(self._retiring.discard)

        self._count_access(tenant_id)
        return connection

    async def _establish(self, tenant_id: str, factory: ConnectionFactory, generation: int) -> TenantConnection:
        connection = await factory()

        if self._closed:
            await connection.close()
            raise TenantConnectError(tenant_id, "acquire connection", "connection cache closed while connecting")

        if self._generations.get(tenant_id, 0) != generation:
            # Invalidated while connecting: hand out once, never cache
            connection.close_on_release = True
            return connection

        self._entries[tenant_id] = CacheEntry(tenant_id=tenant_id, connection=connection, created_at=self._clock())
        logger.debug(f"Cached new connection for tenant {tenant_id}")
        return connection

    def _pending_done(self, tenant_id: str, pending: _PendingConnect) -> None:
        if self._pending.get(tenant_id) is pending:
            del self._pending[tenant_id]
        task = pending.task
        if not task.cancelled() and task.exception() is not None:
            logger.debug(f"Connect for tenant {tenant_id} failed: {task.exception()}")

    def _count_access(self, tenant_id: str) -> None:
        self._access_counts[tenant_id] = self._access_counts.get(tenant_id, 0) + 1

    # Retirement

    def _remove(self, entry: CacheEntry) -> bool:
        if self._entries.get(entry.tenant_id) is entry:
            del self._entries[entry.tenant_id]
            self._access_counts.pop(entry.tenant_id, None)
            return True
        return False

    def _retire(self, entry: CacheEntry) -> None:
        """Remove an entry now and close it in the background."""
        if not self._remove(entry):
            return
        task = asyncio.ensure_future(self._close_entry(entry))
        self._retiring.add(task)
        task.add_done_callback(self._retiring.discard)

    async def _close_entry(self, entry: CacheEntry) -> None:
        try:
            await entry.connection.close()
            logger.debug(f"Closed cached connection for tenant {entry.tenant_id}")
        except Exception as e:
            logger.error(f"Error closing connection for tenant {entry.tenant_id}: {e}")

    async def evict_expired(self) -> int:
        """Close every expired entry.

        Returns:
            Number of entries evicted
        """
        now = self._clock()
        expired: List[CacheEntry] = [
            entry for entry in list(self._entries.values())
            if entry.is_expired(now, self.ttl_seconds)
        ]
        expired = [entry for entry in expired if self._remove(entry)]
        if expired:
            await asyncio.gather(*(self._close_entry(entry) for entry in expired))
            logger.info(f"Evicted {len(expired)} expired tenant connection(s)")
        return len(expired)

    async def invalidate(self, tenant_id: str) -> bool:
        """Drop and close the tenant's cached connection.

        Connections still being established for the tenant are handed out
        once but not cached.

        Returns:
            True if an entry was removed
        """
        self._generations[tenant_id] = self._generations.get(tenant_id, 0) + 1
        entry = self._entries.get(tenant_id)
        if entry is None or not self._remove(entry):
            return False
        await self._close_entry(entry)
        return True

    async def clear(self) -> int:
        """Close every cached connection.

        Returns:
            Number of entries closed
        """
        entries = list(self._entries.values())
        for entry in entries:
            self._generations[entry.tenant_id] = self._generations.get(entry.tenant_id, 0) + 1
            self._remove(entry)
        if entries:
            await asyncio.gather(*(self._close_entry(entry) for entry in entries))
        logger.info(f"Cleared {len(entries)} cached tenant connection(s)")
        return len(entries)

    # Background sweep

    def _ensure_sweeper(self) -> None:
        if self._sweep_task is None or self._sweep_task.done():
            self._stop_event = asyncio.Event()
            self._sweep_task = asyncio.create_task(self._sweep_loop())
            logger.debug(f"Started connection sweep every {self.sweep_interval_seconds}s")

    async def _sweep_loop(self) -> None:
        """Main sweep loop."""
        while not self._stop_event.is_set():
            # Wait for next sweep interval or stop event
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.sweep_interval_seconds)
                break  # Stop event was set
            except asyncio.TimeoutError:
                pass

            try:
                await self.evict_expired()
            except Exception as e:
                logger.error(f"Error in connection sweep: {e}")

    async def _stop_sweeper(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()
        task, self._sweep_task = self._sweep_task, None
        if task is not None and not task.done():
            try:
                await asyncio.wait_for(task, timeout=CacheDefaults.SHUTDOWN_GRACE_SECONDS)
            except asyncio.TimeoutError:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

    # Shutdown

    async def close(self) -> None:
        """Stop the sweep, cancel pending connects and close every connection.

        Idempotent.
        """
        if self._closed:
            return
        self._closed = True

        await self._stop_sweeper()

        pending = [p.task for p in self._pending.values() if not p.task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        await self.clear()
        if self._retiring:
            await asyncio.gather(*list(self._retiring), return_exceptions=True)
        logger.info("Connection cache closed")

    def snapshot(self) -> CacheSnapshot:
        counts = dict(self._access_counts)
        return CacheSnapshot(
            cached_connections=len(self._entries),
            total_connections=sum(counts.values()),
            connection_counts=counts,
            pending=len(self._pending),
        )
