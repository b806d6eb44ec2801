"""
Reader/writer lock tests (in-process implementation) and advisory lock keys.
"""

import asyncio

import pytest

from infrastructure.distributed_lock import AsyncReaderWriterLock, advisory_lock_key


class TestAdvisoryLockKey:

    def test_stable(self):
        assert advisory_lock_key("engine-1") == advisory_lock_key("engine-1")

    def test_distinct_engines_get_distinct_keys(self):
        assert advisory_lock_key("engine-1") != advisory_lock_key("engine-2")

    def test_fits_signed_bigint(self):
        for engine_id in ("a", "engine-" * 20, "ünïcode"):
            key = advisory_lock_key(engine_id)
            assert -(2 ** 63) <= key < 2 ** 63


@pytest.mark.asyncio
class TestAsyncReaderWriterLock:

    async def test_readers_share(self):
        lock = AsyncReaderWriterLock()
        async with lock.read():
            async with lock.read():
                assert lock.readers == 2
        assert lock.readers == 0

    async def test_writer_excludes_readers(self):
        lock = AsyncReaderWriterLock()
        order = []

        async def reader():
            async with lock.read():
                order.append("read")

        async with lock.write():
            task = asyncio.create_task(reader())
            await asyncio.sleep(0)
            assert order == []
            order.append("write-done")
        await task
        assert order == ["write-done", "read"]

    async def test_writer_waits_for_readers(self):
        lock = AsyncReaderWriterLock()
        order = []

        async def writer():
            async with lock.write():
                order.append("write")

        async with lock.read():
            task = asyncio.create_task(writer())
            await asyncio.sleep(0)
            assert not lock.locked_for_write
            order.append("read-done")
        await task
        assert order == ["read-done", "write"]

    async def test_queued_writer_blocks_new_readers(self):
        lock = AsyncReaderWriterLock()
        order = []

        async def writer():
            async with lock.write():
                order.append("write")

        async def late_reader():
            async with lock.read():
                order.append("late-read")

        async with lock.read():
            w = asyncio.create_task(writer())
            await asyncio.sleep(0)
            r = asyncio.create_task(late_reader())
            await asyncio.sleep(0)
            assert order == []
        await asyncio.gather(w, r)
        assert order == ["write", "late-read"]

    async def test_released_on_exception(self):
        lock = AsyncReaderWriterLock()
        with pytest.raises(RuntimeError):
            async with lock.write():
                raise RuntimeError("boom")
        assert not lock.locked_for_write
        async with lock.write():
            pass

    async def test_cancelled_waiter_does_not_hold_lock(self):
        lock = AsyncReaderWriterLock()

        async def writer():
            async with lock.write():
                pass

        async with lock.write():
            task = asyncio.create_task(writer())
            await asyncio.sleep(0)
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        assert not lock.locked_for_write
        async with lock.read():
            assert lock.readers == 1


@pytest.mark.asyncio
async def test_factory_returns_shared_lock_per_engine(lock_factory):
    first = await lock_factory.create("engine-1")
    second = await lock_factory.create("engine-1")
    other = await lock_factory.create("engine-2")

    async with first.writer_lock():
        # the other engine is independent
        async with other.writer_lock():
            pass
        task = asyncio.create_task(_acquire_write(second))
        await asyncio.sleep(0)
        assert not task.done()
    await task

    assert await lock_factory.delete("engine-1")
    assert not await lock_factory.delete("engine-1")


async def _acquire_write(lock):
    async with lock.writer_lock():
        return True
