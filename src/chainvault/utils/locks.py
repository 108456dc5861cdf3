"""Per-record concurrency control.

Reconciliation passes may overlap (a slow pass still running when the next
one starts). Each record is guarded by its own lock, so two passes never
query and write the same record at the same time.

A record's lock is dropped from the registry once nobody holds or waits for
it, so the registry only ever contains records that are in use.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

logger = logging.getLogger(__name__)

# Global lock registry: record key -> asyncio.Lock
_record_locks: dict[str, asyncio.Lock] = {}
# Holders plus waiters per record key
_lock_users: dict[str, int] = {}


def get_record_lock(key: str) -> asyncio.Lock:
    """Get or create the lock for a record key (e.g. "swap:42").

    Runs without awaiting, so creation cannot race within one event loop.
    """
    lock = _record_locks.get(key)
    if lock is None:
        lock = _record_locks[key] = asyncio.Lock()
    return lock


def _checkout(key: str) -> asyncio.Lock:
    lock = get_record_lock(key)
    _lock_users[key] = _lock_users.get(key, 0) + 1
    return lock


def _checkin(key: str) -> None:
    remaining = _lock_users.get(key, 1) - 1
    if remaining > 0:
        _lock_users[key] = remaining
        return
    _lock_users.pop(key, None)
    _record_locks.pop(key, None)


class LockTimeoutError(Exception):
    """Raised when a lock cannot be acquired within the timeout period."""

    pass


class RecordLock:
    """Context manager for exclusive access to one record.

    Example:
        async with RecordLock("swap:42", operation="status update"):
            ...
    """

    def __init__(self, key: str, timeout: Optional[float] = 30.0, operation: str = "record_operation"):
        """Initialize the lock.

        Args:
            key: Record key
            timeout: Maximum time to wait for lock (None = wait forever)
            operation: Description of the operation for logging
        """
        self.key = key
        self.timeout = timeout
        self.operation = operation
        self._lock: Optional[asyncio.Lock] = None
        self._acquired = False

    async def __aenter__(self) -> "RecordLock":
        self._lock = _checkout(self.key)

        try:
            if self.timeout:
                await asyncio.wait_for(self._lock.acquire(), timeout=self.timeout)
            else:
                await self._lock.acquire()
            self._acquired = True
        except asyncio.TimeoutError:
            logger.warning(f"Lock timeout for {self.key} after {self.timeout}s: {self.operation}")
            raise LockTimeoutError(
                f"Could not acquire lock for {self.key} within {self.timeout}s"
            ) from None
        finally:
            if not self._acquired:
                _checkin(self.key)

        logger.debug(f"Lock acquired for {self.key}: {self.operation}")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._acquired and self._lock:
            self._lock.release()
            self._acquired = False
            _checkin(self.key)
            logger.debug(f"Lock released for {self.key}: {self.operation}")
        return False


@asynccontextmanager
async def try_record_lock(key: str, operation: str = "record_operation") -> AsyncIterator[bool]:
    """Take a record lock only if nobody holds it.

    Yields:
        True if the lock was taken, False if another task holds it

    Example:
        async with try_record_lock(f"swap:{tx.id}") as acquired:
            if not acquired:
                return
    """
    lock = _record_locks.get(key)
    if lock is not None and lock.locked():
        logger.debug(f"Lock for {key} is busy, skipping: {operation}")
        yield False
        return

    lock = _checkout(key)
    try:
        await lock.acquire()
    except BaseException:
        _checkin(key)
        raise

    logger.debug(f"Lock acquired for {key}: {operation}")
    try:
        yield True
    finally:
        lock.release()
        _checkin(key)
        logger.debug(f"Lock released for {key}: {operation}")


def is_record_locked(key: str) -> bool:
    lock = _record_locks.get(key)
    return lock is not None and lock.locked()


def registered_lock_count() -> int:
    """Number of records that currently have a lock in the registry."""
    return len(_record_locks)


def clear_record_locks() -> None:
    """Clear all record locks (useful for testing)."""
    _record_locks.clear()
    _lock_users.clear()
