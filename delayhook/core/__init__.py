"""Deferred-dispatch engine: callbacks, storage and the scheduler."""

from .callback import Callback
from .ids import IdGenerator, SequentialIdGenerator, UUIDIdGenerator, create_id_generator
from .scheduler import Scheduler
from .storage import MemoryStorage, Storage, Subscription

__all__ = [
    "Callback",
    "IdGenerator",
    "MemoryStorage",
    "Scheduler",
    "SequentialIdGenerator",
    "Storage",
    "Subscription",
    "UUIDIdGenerator",
    "create_id_generator",
]
