"""
Callback scheduler.

Turns the stream of newly saved callbacks into timed executions: one task
per callback waits for the deadline, POSTs to the remote URL, re-arms on
failure and finalizes through the storage on success.

Every wait is a timed wait on the shutdown event, so stopping the scheduler
interrupts callbacks that are still waiting for their deadline or for the
next finalization attempt.
"""

import asyncio
import logging
from typing import Optional, Set

import aiohttp

from delayhook.errors import DelayHookError, DeliveryFailure, StorageUnavailable
from delayhook.logging import CallbackLogContext
from delayhook.settings import DelayHookSettings, get_settings

from .callback import Callback
from .storage import Storage

logger = logging.getLogger(__name__)


class Scheduler:
    """
    Executes saved callbacks at their deadline, at least once.

    Example:
        storage = MemoryStorage()
        scheduler = Scheduler(storage)
        await scheduler.start()

        await storage.save(Callback.after("https://example.com/hook", timedelta(minutes=5)))

        await scheduler.stop()
    """

    def __init__(
        self,
        storage: Storage,
        settings: Optional[DelayHookSettings] = None,
        shutdown_event: Optional[asyncio.Event] = None,
    ):
        self._storage = storage
        self._settings = settings or get_settings()
        self._shutdown = shutdown_event or asyncio.Event()
        self._main_task: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()
        self._session: Optional[aiohttp.ClientSession] = None
        self._admission: Optional[asyncio.Semaphore] = None
        if self._settings.max_in_flight > 0:
            self._admission = asyncio.Semaphore(self._settings.max_in_flight)

    @property
    def is_running(self) -> bool:
        return self._main_task is not None and not self._main_task.done()

    @property
    def in_flight(self) -> int:
        """Number of callbacks currently waiting, executing or finalizing."""
        return len(self._tasks)

    async def start(self):
        """Start consuming new callbacks in the background."""
        if self._main_task is not None:
            return

        self._shutdown.clear()
        self._ensure_session()
        self._main_task = asyncio.create_task(self.run(), name="delayhook-scheduler")
        logger.info("Scheduler started")

    async def stop(self):
        """
        Stop consuming callbacks and wind down in-flight ones.

        Callbacks waiting for their deadline end immediately without
        executing. Executions already in progress get ``shutdown_timeout``
        seconds to finish before they are cancelled.
        """
        self._shutdown.set()

        if self._main_task is not None:
            try:
                await self._main_task
            except Exception:
                logger.exception("Scheduler loop failed")
            self._main_task = None

        if self._tasks:
            _, pending = await asyncio.wait(
                set(self._tasks), timeout=self._settings.shutdown_timeout
            )
            for task in pending:
                task.cancel()
            if pending:
                logger.warning(f"Cancelled {len(pending)} in-flight callbacks on shutdown")
                await asyncio.gather(*pending, return_exceptions=True)

        if self._session is not None:
            await self._session.close()
            self._session = None

        logger.info("Scheduler stopped")

    async def run(self):
        """Main loop: subscribe, then schedule every callback until shutdown."""
        self._ensure_session()

        subscription = await self._subscribe()
        if subscription is None:
            return

        logger.info("Subscribed to new callbacks, looping...")
        try:
            while not self._shutdown.is_set():
                callback = await self._next_callback(subscription)
                if callback is None:
                    break
                self.schedule(callback)
        finally:
            close = getattr(subscription, "close", None)
            if close is not None:
                close()

    def schedule(self, callback: Callback) -> asyncio.Task:
        """Start the wait-execute-finalize task for one callback."""
        task = asyncio.create_task(
            self._process(callback), name=f"delayhook-callback-{callback.id}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _ensure_session(self):
        if self._session is None:
            timeout = aiohttp.ClientTimeout(total=self._settings.request_timeout)
            self._session = aiohttp.ClientSession(timeout=timeout)

    async def _subscribe(self):
        while not self._shutdown.is_set():
            try:
                return await self._storage.subscribe()
            except StorageUnavailable as e:
                logger.error(f"Error occurred while trying to subscribe to callbacks: {e}")
                if await self._wait(self._settings.subscribe_retry_delay):
                    break
        return None

    async def _next_callback(self, subscription) -> Optional[Callback]:
        """Wait for the next callback or for shutdown, whichever comes first."""
        next_task = asyncio.ensure_future(subscription.__anext__())
        stop_task = asyncio.ensure_future(self._shutdown.wait())
        try:
            done, _ = await asyncio.wait(
                {next_task, stop_task}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            for task in (next_task, stop_task):
                if not task.done():
                    task.cancel()

        if next_task not in done:
            return None
        try:
            return next_task.result()
        except StopAsyncIteration:
            logger.info("Callback subscription ended")
            return None

    async def _wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``. Returns True if shutdown was requested."""
        if self._shutdown.is_set():
            return True
        if seconds <= 0:
            await asyncio.sleep(0)
            return self._shutdown.is_set()
        try:
            await asyncio.wait_for(self._shutdown.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True

    async def _process(self, callback: Callback):
        with CallbackLogContext(callback.id, callback.remote_url) as log_context:
            try:
                if await self._deliver(callback, log_context):
                    await self._finalize(callback)
            except Exception:
                logger.exception(f"Unexpected error while processing callback {callback.id}")

    async def _deliver(self, callback: Callback, log_context: CallbackLogContext) -> bool:
        """Execute until the remote endpoint accepts. False if shut down first."""
        delay = callback.seconds_until_deadline()
        while True:
            if await self._wait(delay):
                logger.info(f"Shutdown requested, callback {callback.id} left unexecuted")
                return False

            # Timers may fire marginally early; never execute before the deadline.
            remaining = callback.seconds_until_deadline()
            if remaining > 0:
                delay = remaining
                continue

            attempt = log_context.next_attempt()
            try:
                await self._execute(callback)
            except DeliveryFailure as e:
                logger.warning(f'Error reported in execute: "{e}", retrying...')
                delay = max(callback.seconds_until_deadline(), self._retry_delay(attempt))
                continue

            logger.info(f"Callback {callback.id} delivered on attempt {attempt}")
            return True

    def _retry_delay(self, attempt: int) -> float:
        """
        Pause after failed delivery attempt ``attempt`` (1-based).

        Zero by default, so a failed callback is re-armed immediately.
        ``delivery_retry_backoff`` doubles the base delay on every attempt.
        """
        delay = self._settings.delivery_retry_delay
        if self._settings.delivery_retry_backoff:
            # Doubling stops at 2**32 so the delay stays a finite float
            doublings = min(max(attempt, 1) - 1, 32)
            delay = (delay or 1.0) * 2.0**doublings
        if self._settings.delivery_retry_max_delay is not None:
            delay = min(delay, self._settings.delivery_retry_max_delay)
        return max(delay, 0.0)

    async def _execute(self, callback: Callback):
        if self._admission is None:
            await callback.execute(self._session)
            return
        async with self._admission:
            await callback.execute(self._session)

    async def _finalize(self, callback: Callback) -> bool:
        attempts = 1 + self._settings.finalize_max_retries
        for attempt in range(1, attempts + 1):
            try:
                await self._storage.finalize(callback.id)
                logger.info(f"Callback {callback.id} marked as done")
                return True
            except DelayHookError as e:
                logger.error(
                    f"Failed to mark callback {callback.id} as done "
                    f"(attempt {attempt}/{attempts}): {e}"
                )

            if attempt < attempts and await self._wait(self._settings.finalize_retry_delay):
                logger.warning(
                    f"Shutdown requested, callback {callback.id} delivered but not marked as done"
                )
                return False

        logger.warning(f"Giving up on trying to mark callback {callback.id} as done")
        return False
