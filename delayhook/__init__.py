"""
DelayHook: one-shot, time-delayed HTTP callbacks.

Register a remote URL and a delay; DelayHook POSTs to the URL at or after
the deadline, retrying until the endpoint accepts.

Embedded usage:

    from datetime import timedelta
    from delayhook import Callback, MemoryStorage, Scheduler

    storage = MemoryStorage()
    scheduler = Scheduler(storage)
    await scheduler.start()

    callback_id = await storage.save(
        Callback.after("https://example.com/hook", timedelta(minutes=5))
    )

    await scheduler.stop()

As a service:

    delayhook serve --port 8080
"""

__version__ = "0.1.0"

from .core import (  # noqa: E402
    Callback,
    MemoryStorage,
    Scheduler,
    SequentialIdGenerator,
    Storage,
    UUIDIdGenerator,
    create_id_generator,
)
from .errors import (  # noqa: E402
    DelayHookError,
    DeliveryFailure,
    FinalizationFailure,
    StorageUnavailable,
    ValidationError,
)
from .settings import DelayHookSettings, configure, get_settings  # noqa: E402

__all__ = [
    "Callback",
    "DelayHookError",
    "DelayHookSettings",
    "DeliveryFailure",
    "FinalizationFailure",
    "MemoryStorage",
    "Scheduler",
    "SequentialIdGenerator",
    "Storage",
    "StorageUnavailable",
    "UUIDIdGenerator",
    "ValidationError",
    "configure",
    "create_id_generator",
    "get_settings",
]
