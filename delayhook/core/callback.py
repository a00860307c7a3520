"""
The callback entity: a remote URL to POST to no earlier than a deadline.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import aiohttp

from delayhook import __version__
from delayhook.errors import DelayHookError, DeliveryFailure

logger = logging.getLogger(__name__)

USER_AGENT = f"DelayHook/{__version__}"


@dataclass
class Callback:
    """
    A one-shot deferred HTTP callback.

    ``id`` and ``done`` are only mutated while holding the callback's lock so
    that readers such as the status endpoint see a consistent snapshot.
    """

    remote_url: str
    deadline: datetime
    id: str = ""
    done: bool = False
    _lock: asyncio.Lock = field(
        default_factory=asyncio.Lock, init=False, repr=False, compare=False
    )

    def __post_init__(self):
        if self.deadline.tzinfo is None:
            # Naive deadlines are local wall-clock times
            self.deadline = self.deadline.astimezone(timezone.utc)

    @classmethod
    def after(cls, remote_url: str, delay: timedelta) -> "Callback":
        """Create a callback due ``delay`` from now."""
        return cls(remote_url=remote_url, deadline=datetime.now(timezone.utc) + delay)

    def seconds_until_deadline(self) -> float:
        """Seconds left before the deadline; zero or negative once it has passed."""
        return (self.deadline - datetime.now(timezone.utc)).total_seconds()

    async def assign_id(self, callback_id: str) -> None:
        async with self._lock:
            if self.id:
                raise DelayHookError(
                    f"Callback already has id {self.id}", "DELAYHOOK_ID_ASSIGNED"
                )
            self.id = callback_id

    async def mark_done(self) -> None:
        async with self._lock:
            self.done = True

    async def snapshot(self) -> Dict[str, Any]:
        """Consistent read of the callback's state."""
        async with self._lock:
            return {
                "callback_id": self.id,
                "remote_url": self.remote_url,
                "deadline": self.deadline.isoformat(),
                "done": self.done,
            }

    async def execute(self, session: aiohttp.ClientSession) -> None:
        """
        POST to the remote URL once.

        Raises:
            DeliveryFailure: on transport errors, timeouts and non-2xx responses.
        """
        logger.info(f"Executing callback {self.id} -> {self.remote_url}")
        headers = {
            "Content-Type": "text/plain",
            "User-Agent": USER_AGENT,
            "X-Callback-Id": self.id,
        }
        try:
            async with session.post(self.remote_url, data=b"", headers=headers) as response:
                if not 200 <= response.status < 300:
                    raise DeliveryFailure(
                        f"HTTP {response.status} from {self.remote_url}",
                        status=response.status,
                    )
        except aiohttp.ClientError as e:
            raise DeliveryFailure(f"request to {self.remote_url} failed: {e}") from e
        except asyncio.TimeoutError as e:
            raise DeliveryFailure(f"request to {self.remote_url} timed out") from e
