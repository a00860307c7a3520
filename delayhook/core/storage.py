"""
Callback storage: persistence plus notification of newly saved callbacks.

``Storage`` is the interface the scheduler and the HTTP API depend on.
``MemoryStorage`` is the reference implementation. It forgets everything
when the process exits, which makes it suitable for development and tests;
a durable store implements the same interface.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import AsyncIterator, Dict, Optional

from .callback import Callback
from .ids import IdGenerator, SequentialIdGenerator

logger = logging.getLogger(__name__)


class Storage(ABC):
    """Home for callbacks that have been registered but not yet finalized."""

    @abstractmethod
    async def save(self, callback: Callback) -> str:
        """
        Persist a callback, assign its id and publish it to subscribers.

        The callback is on the subscription stream when this returns. May
        wait while the publish buffer is full.

        Returns:
            The assigned callback id.

        Raises:
            StorageUnavailable: if the callback could not be saved.
        """

    @abstractmethod
    async def subscribe(self) -> AsyncIterator[Callback]:
        """
        Open a stream of newly saved callbacks.

        Raises:
            StorageUnavailable: if the subscription could not be established.
        """

    @abstractmethod
    async def finalize(self, callback_id: str) -> None:
        """
        Mark a callback as done and remove it from active storage.

        Raises:
            FinalizationFailure: if the callback could not be finalized.
        """

    @abstractmethod
    async def get(self, callback_id: str) -> Optional[Callback]:
        """Return an active callback by id, or None."""


class Subscription:
    """
    Async iterator over a publish queue.

    Several subscriptions on one queue are competing consumers: every
    callback is delivered to exactly one of them.
    """

    def __init__(self, queue: "asyncio.Queue[Callback]"):
        self._queue = queue
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        self._closed = True

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> Callback:
        if self._closed:
            raise StopAsyncIteration
        callback = await self._queue.get()
        self._queue.task_done()
        return callback


class MemoryStorage(Storage):
    """
    In-memory storage of callbacks.

    Callbacks saved before anyone subscribes stay in the bounded publish
    buffer and go to the first subscriber.
    """

    def __init__(self, id_generator: Optional[IdGenerator] = None, buffer_size: int = 10):
        self._next_id = id_generator or SequentialIdGenerator()
        self._store: Dict[str, Callback] = {}
        self._lock = asyncio.Lock()
        self._queue: "asyncio.Queue[Callback]" = asyncio.Queue(maxsize=buffer_size)

    def __len__(self) -> int:
        return len(self._store)

    @property
    def pending(self) -> int:
        """Number of saved callbacks not yet picked up by a subscriber."""
        return self._queue.qsize()

    async def save(self, callback: Callback) -> str:
        async with self._lock:
            await callback.assign_id(self._next_id())
            self._store[callback.id] = callback

        # Publish outside the lock so a full buffer does not block finalize.
        await self._queue.put(callback)
        logger.debug(f"Saved callback {callback.id} due at {callback.deadline.isoformat()}")
        return callback.id

    async def subscribe(self) -> Subscription:
        return Subscription(self._queue)

    async def finalize(self, callback_id: str) -> None:
        async with self._lock:
            callback = self._store.pop(callback_id, None)
            if callback is None:
                logger.debug(f"Callback {callback_id} is not active, nothing to finalize")
                return
            await callback.mark_done()

    async def get(self, callback_id: str) -> Optional[Callback]:
        async with self._lock:
            return self._store.get(callback_id)
