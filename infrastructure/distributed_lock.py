"""
Distributed Reader/Writer Locks - Per-Engine Mutual Exclusion.

Two lock factories implementing IDistributedReaderWriterLockFactory:

PostgreSQLReaderWriterLockFactory:
    Session-level advisory locks. A reader takes pg_advisory_lock_shared,
    a writer takes pg_advisory_lock, both on the same 64-bit key derived
    from the engine id. Each acquisition borrows its own pooled connection
    and holds it until release, because session advisory locks belong to
    the connection that took them. Waits honour lock_timeout.

InMemoryReaderWriterLockFactory:
    asyncio reader/writer lock for single-process deployments and tests.
    Writer preferring: once a writer queues, new readers wait behind it.

Usage:
    lock = await lock_factory.create(engine_id)
    async with lock.writer_lock():
        ...  # exclusive for this engine across all processes

Exports:
    PostgreSQLReaderWriterLockFactory
    InMemoryReaderWriterLockFactory
    advisory_lock_key
"""

import asyncio
import hashlib
from collections import deque
from contextlib import asynccontextmanager
from typing import AsyncIterator, Deque, Dict, Tuple

import psycopg
from psycopg import sql
from psycopg_pool import AsyncConnectionPool

from exceptions import DatabaseError
from util_logger import LoggerFactory, ComponentType

from .interface_repository import (
    IDistributedReaderWriterLock,
    IDistributedReaderWriterLockFactory,
)


def advisory_lock_key(engine_id: str) -> int:
    """
    Derive a signed 64-bit advisory lock key from an engine id.

    SHA-256 keeps keys stable across processes and Python versions
    (unlike hash()).
    """
    digest = hashlib.sha256(f"engine:{engine_id}".encode("utf-8")).digest()
    return int.from_bytes(digest[:8], byteorder="big", signed=True)


# ============================================================================
# POSTGRESQL ADVISORY LOCKS
# ============================================================================

class PostgreSQLReaderWriterLock(IDistributedReaderWriterLock):
    """
    Lock handle for one engine backed by advisory locks.
    """

    def __init__(self, pool: AsyncConnectionPool, engine_id: str, lock_timeout_seconds: int = 0):
        self._pool = pool
        self.engine_id = engine_id
        self.key = advisory_lock_key(engine_id)
        self._lock_timeout_ms = lock_timeout_seconds * 1000
        self.logger = LoggerFactory.create_logger(ComponentType.REPOSITORY, "PostgreSQLReaderWriterLock")

    @asynccontextmanager
    async def _hold(self, acquire_fn: str, release_fn: str) -> AsyncIterator[None]:
        async with self._pool.connection() as conn:
            try:
                await conn.execute(
                    "SELECT set_config('lock_timeout', %s, false)",
                    (f"{self._lock_timeout_ms}ms",)
                )
                await conn.execute(
                    sql.SQL("SELECT {fn}(%s)").format(fn=sql.Identifier(acquire_fn)),
                    (self.key,)
                )
            except psycopg.errors.LockNotAvailable as e:
                raise DatabaseError(
                    f"Timed out waiting for {acquire_fn} on engine {self.engine_id}"
                ) from e
            except psycopg.Error as e:
                raise DatabaseError(f"Failed to acquire lock for engine {self.engine_id}: {e}") from e

            self.logger.debug(f"🔒 {acquire_fn} acquired for engine {self.engine_id}")
            try:
                yield
            finally:
                # If this is interrupted the pool reset releases the lock
                await conn.execute(
                    sql.SQL("SELECT {fn}(%s)").format(fn=sql.Identifier(release_fn)),
                    (self.key,)
                )
                self.logger.debug(f"🔓 {release_fn} for engine {self.engine_id}")

    def reader_lock(self):
        return self._hold("pg_advisory_lock_shared", "pg_advisory_unlock_shared")

    def writer_lock(self):
        return self._hold("pg_advisory_lock", "pg_advisory_unlock")


class PostgreSQLReaderWriterLockFactory(IDistributedReaderWriterLockFactory):
    """
    Advisory lock factory. Locks are keyed by hash, so there is no
    per-engine state to create or delete.
    """

    def __init__(self, pool: AsyncConnectionPool, lock_timeout_seconds: int = 0):
        self._pool = pool
        self._lock_timeout_seconds = lock_timeout_seconds

    async def create(self, engine_id: str) -> PostgreSQLReaderWriterLock:
        return PostgreSQLReaderWriterLock(self._pool, engine_id, self._lock_timeout_seconds)

    async def delete(self, engine_id: str) -> bool:
        return True


# ============================================================================
# IN-PROCESS LOCKS
# ============================================================================

class AsyncReaderWriterLock:
    """
    Writer-preferring reader/writer lock for one event loop.

    Waiters are granted in arrival order; consecutive readers at the head
    of the queue are admitted together. Release never suspends, so a
    cancelled task always gives its hold back.
    """

    def __init__(self):
        self._readers = 0
        self._writer = False
        self._waiters: Deque[Tuple[bool, asyncio.Future]] = deque()

    @property
    def readers(self) -> int:
        return self._readers

    @property
    def locked_for_write(self) -> bool:
        return self._writer

    def _wake(self) -> None:
        while self._waiters:
            is_writer, fut = self._waiters[0]
            if fut.done():
                self._waiters.popleft()
                continue
            if is_writer:
                if self._readers == 0 and not self._writer:
                    self._waiters.popleft()
                    self._writer = True
                    fut.set_result(None)
                return
            if self._writer:
                return
            self._waiters.popleft()
            self._readers += 1
            fut.set_result(None)

    def _release(self, is_writer: bool) -> None:
        if is_writer:
            self._writer = False
        else:
            self._readers -= 1
        self._wake()

    async def _acquire(self, is_writer: bool) -> None:
        if not self._waiters:
            if is_writer and not self._writer and self._readers == 0:
                self._writer = True
                return
            if not is_writer and not self._writer:
                self._readers += 1
                return

        fut = asyncio.get_running_loop().create_future()
        self._waiters.append((is_writer, fut))
        try:
            await fut
        except asyncio.CancelledError:
            if fut.done() and not fut.cancelled():
                # Granted just before the cancellation landed
                self._release(is_writer)
            else:
                self._wake()
            raise

    @asynccontextmanager
    async def read(self) -> AsyncIterator[None]:
        await self._acquire(False)
        try:
            yield
        finally:
            self._release(False)

    @asynccontextmanager
    async def write(self) -> AsyncIterator[None]:
        await self._acquire(True)
        try:
            yield
        finally:
            self._release(True)


class InMemoryReaderWriterLock(IDistributedReaderWriterLock):
    """Lock handle wrapping an AsyncReaderWriterLock."""

    def __init__(self, engine_id: str, rw_lock: AsyncReaderWriterLock):
        self.engine_id = engine_id
        self._rw_lock = rw_lock

    def reader_lock(self):
        return self._rw_lock.read()

    def writer_lock(self):
        return self._rw_lock.write()


class InMemoryReaderWriterLockFactory(IDistributedReaderWriterLockFactory):
    """
    One AsyncReaderWriterLock per engine id, created on first use.
    """

    def __init__(self):
        self._locks: Dict[str, AsyncReaderWriterLock] = {}

    async def create(self, engine_id: str) -> InMemoryReaderWriterLock:
        rw_lock = self._locks.get(engine_id)
        if rw_lock is None:
            rw_lock = self._locks[engine_id] = AsyncReaderWriterLock()
        return InMemoryReaderWriterLock(engine_id, rw_lock)

    async def delete(self, engine_id: str) -> bool:
        return self._locks.pop(engine_id, None) is not None
