import asyncio
import os
import time
from datetime import datetime, timezone
from typing import List, Optional

import pytest
from aiohttp import web

import delayhook.settings as settings_module
from delayhook.core.storage import MemoryStorage
from delayhook.errors import FinalizationFailure
from delayhook.settings import DelayHookSettings


@pytest.fixture(autouse=True)
def clean_settings():
    """Isolate every test from DELAYHOOK_* variables and the settings cache."""
    saved = {key: value for key, value in os.environ.items() if key.startswith("DELAYHOOK_")}
    for key in saved:
        os.environ.pop(key)
    settings_module._settings = None

    yield

    for key in [key for key in os.environ if key.startswith("DELAYHOOK_")]:
        os.environ.pop(key)
    os.environ.update(saved)
    settings_module._settings = None


@pytest.fixture
def fast_settings():
    """Settings with intervals shrunk to keep scheduler tests quick."""
    return DelayHookSettings(
        subscribe_retry_delay=0.05,
        finalize_retry_delay=0.05,
        shutdown_timeout=1.0,
        request_timeout=2.0,
    )


class RemoteEndpoint:
    """Local HTTP server standing in for the receiver of callbacks."""

    def __init__(self, fail_first: int = 0, always_fail: bool = False, delay: float = 0.0):
        self.fail_first = fail_first
        self.always_fail = always_fail
        self.delay = delay
        self.calls: List[datetime] = []
        self.headers: List[dict] = []
        self.bodies: List[bytes] = []
        self.concurrent = 0
        self.max_concurrent = 0
        self.url: Optional[str] = None
        self._runner: Optional[web.AppRunner] = None

    @property
    def attempts(self) -> int:
        return len(self.calls)

    async def handler(self, request: web.Request) -> web.Response:
        self.calls.append(datetime.now(timezone.utc))
        self.headers.append(dict(request.headers))
        self.bodies.append(await request.read())
        attempt = len(self.calls)

        self.concurrent += 1
        self.max_concurrent = max(self.max_concurrent, self.concurrent)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        finally:
            self.concurrent -= 1

        if self.always_fail or attempt <= self.fail_first:
            return web.Response(status=500, text="unavailable")
        return web.Response(text="ok")

    async def start(self):
        app = web.Application()
        app.router.add_post("/hook", self.handler)
        self._runner = web.AppRunner(app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, "127.0.0.1", 0)
        await site.start()

        port = site._server.sockets[0].getsockname()[1]
        self.url = f"http://127.0.0.1:{port}/hook"

    async def close(self):
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None


@pytest.fixture
async def endpoint_factory():
    endpoints: List[RemoteEndpoint] = []

    async def factory(**kwargs) -> RemoteEndpoint:
        endpoint = RemoteEndpoint(**kwargs)
        await endpoint.start()
        endpoints.append(endpoint)
        return endpoint

    yield factory

    for endpoint in endpoints:
        await endpoint.close()


class RecordingStorage(MemoryStorage):
    """
    MemoryStorage that records finalize calls.

    ``finalize_failures`` makes the first N finalize calls fail; -1 makes
    every call fail.
    """

    def __init__(self, finalize_failures: int = 0, **kwargs):
        super().__init__(**kwargs)
        self.finalize_failures = finalize_failures
        self.finalize_calls: List[float] = []

    async def finalize(self, callback_id: str) -> None:
        self.finalize_calls.append(time.monotonic())
        if self.finalize_failures < 0 or len(self.finalize_calls) <= self.finalize_failures:
            raise FinalizationFailure("storage is read-only")
        await super().finalize(callback_id)


@pytest.fixture
def recording_storage():
    return RecordingStorage()


@pytest.fixture
def failing_finalize_storage():
    return RecordingStorage(finalize_failures=-1)


@pytest.fixture
def wait_until():
    """Poll a predicate until it holds or the timeout expires."""

    async def _wait_until(predicate, timeout: float = 5.0, interval: float = 0.01):
        deadline = time.monotonic() + timeout
        while not predicate():
            if time.monotonic() > deadline:
                raise AssertionError("condition not met within timeout")
            await asyncio.sleep(interval)

    return _wait_until
