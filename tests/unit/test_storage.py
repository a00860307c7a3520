import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from delayhook.core.callback import Callback
from delayhook.core.ids import UUIDIdGenerator
from delayhook.core.storage import MemoryStorage
from delayhook.errors import DelayHookError


def make_callback(url: str = "https://example.com/hook") -> Callback:
    return Callback.after(url, timedelta(minutes=5))


async def next_callback(subscription, timeout: float = 1.0) -> Callback:
    return await asyncio.wait_for(subscription.__anext__(), timeout=timeout)


@pytest.mark.asyncio
async def test_save_assigns_distinct_sequential_ids():
    storage = MemoryStorage()

    ids = [await storage.save(make_callback()) for _ in range(3)]

    assert ids == ["1", "2", "3"]
    assert len(storage) == 3


@pytest.mark.asyncio
async def test_save_keeps_url_and_deadline():
    storage = MemoryStorage()
    deadline = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)
    callback = Callback(remote_url="https://example.com/hook", deadline=deadline)

    callback_id = await storage.save(callback)

    assert callback.id == callback_id
    assert callback.remote_url == "https://example.com/hook"
    assert callback.deadline == deadline
    assert callback.done is False
    assert await storage.get(callback_id) is callback


@pytest.mark.asyncio
async def test_saved_callback_is_on_subscription_when_save_returns():
    storage = MemoryStorage()
    subscription = await storage.subscribe()

    callback = make_callback()
    await storage.save(callback)

    assert storage.pending == 1
    assert await next_callback(subscription) is callback


@pytest.mark.asyncio
async def test_callbacks_saved_before_subscribing_reach_first_subscriber():
    storage = MemoryStorage()
    first = make_callback()
    second = make_callback()
    await storage.save(first)
    await storage.save(second)

    subscription = await storage.subscribe()

    assert await next_callback(subscription) is first
    assert await next_callback(subscription) is second


@pytest.mark.asyncio
async def test_subscriptions_compete_for_callbacks():
    storage = MemoryStorage()
    sub_a = await storage.subscribe()
    sub_b = await storage.subscribe()

    saved = [make_callback() for _ in range(4)]
    for callback in saved:
        await storage.save(callback)

    received = [
        await next_callback(sub_a),
        await next_callback(sub_b),
        await next_callback(sub_a),
        await next_callback(sub_b),
    ]

    assert sorted(c.id for c in received) == sorted(c.id for c in saved)
    with pytest.raises(asyncio.TimeoutError):
        await next_callback(sub_a, timeout=0.05)


@pytest.mark.asyncio
async def test_closed_subscription_stops_iterating():
    storage = MemoryStorage()
    subscription = await storage.subscribe()
    subscription.close()

    assert subscription.closed
    with pytest.raises(StopAsyncIteration):
        await subscription.__anext__()


@pytest.mark.asyncio
async def test_full_buffer_applies_backpressure_to_save():
    storage = MemoryStorage(buffer_size=1)
    await storage.save(make_callback())

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(storage.save(make_callback()), timeout=0.1)


@pytest.mark.asyncio
async def test_finalize_marks_done_and_removes():
    storage = MemoryStorage()
    callback = make_callback()
    callback_id = await storage.save(callback)

    await storage.finalize(callback_id)

    assert callback.done is True
    assert await storage.get(callback_id) is None
    assert len(storage) == 0


@pytest.mark.asyncio
async def test_finalize_of_inactive_callback_is_a_no_op():
    storage = MemoryStorage()
    callback = make_callback()
    callback_id = await storage.save(callback)
    await storage.finalize(callback_id)

    await storage.finalize(callback_id)
    await storage.finalize("does-not-exist")

    assert callback.done is True


@pytest.mark.asyncio
async def test_saving_a_callback_twice_is_rejected():
    storage = MemoryStorage()
    callback = make_callback()
    await storage.save(callback)

    with pytest.raises(DelayHookError, match="already has id"):
        await storage.save(callback)
    assert callback.id == "1"


@pytest.mark.asyncio
async def test_injected_id_generator_is_used():
    storage = MemoryStorage(id_generator=UUIDIdGenerator())

    first = await storage.save(make_callback())
    second = await storage.save(make_callback())

    assert len(first) == 32
    assert first != second
