import asyncio

import pytest

from application.utils.locks import KeyedLock


@pytest.mark.asyncio
async def test_same_key_is_exclusive():
    locks = KeyedLock()
    order = []

    async def worker(name):
        async with locks.hold("out"):
            order.append(f"{name}-in")
            await asyncio.sleep(0.01)
            order.append(f"{name}-out")

    await asyncio.gather(worker("a"), worker("b"))
    assert order in (["a-in", "a-out", "b-in", "b-out"], ["b-in", "b-out", "a-in", "a-out"])


@pytest.mark.asyncio
async def test_different_keys_do_not_block_each_other():
    locks = KeyedLock()
    entered = asyncio.Event()

    async def holder():
        async with locks.hold("one"):
            await entered.wait()

    task = asyncio.create_task(holder())
    await asyncio.sleep(0)
    async with locks.hold("two"):
        entered.set()
    await task


@pytest.mark.asyncio
async def test_unused_keys_are_released():
    locks = KeyedLock()
    async with locks.hold("x"):
        assert locks.locked("x")
    assert not locks.locked("x")
    assert locks._locks == {}
