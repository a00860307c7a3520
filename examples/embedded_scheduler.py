"""Embedded scheduler example.

Start a local webhook receiver (any HTTP server) at http://localhost:8081/webhook
and then run this script. The receiver gets an empty POST about five seconds later.
"""

import asyncio
from datetime import timedelta

from delayhook import Callback, MemoryStorage, Scheduler
from delayhook.logging import setup_logging


async def main() -> None:
    setup_logging("INFO")

    storage = MemoryStorage()
    scheduler = Scheduler(storage)
    await scheduler.start()

    callback = Callback.after("http://localhost:8081/webhook", timedelta(seconds=5))
    callback_id = await storage.save(callback)
    print(f"Scheduled callback {callback_id} for {callback.deadline.isoformat()}")

    await asyncio.sleep(7)
    print(f"Done: {callback.done}")

    await scheduler.stop()


if __name__ == "__main__":
    asyncio.run(main())
