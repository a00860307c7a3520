"""
Callback identifier generators.

Storage receives a generator at construction instead of sharing a
process-wide counter.
"""

import itertools
import threading
import uuid
from typing import Callable

IdGenerator = Callable[[], str]


class SequentialIdGenerator:
    """Monotonically increasing decimal ids: "1", "2", "3", ..."""

    def __init__(self, start: int = 1):
        self._counter = itertools.count(start)
        self._lock = threading.Lock()

    def __call__(self) -> str:
        with self._lock:
            return str(next(self._counter))


class UUIDIdGenerator:
    """Random hex ids, unique across process restarts."""

    def __call__(self) -> str:
        return uuid.uuid4().hex


def create_id_generator(strategy: str = "sequence") -> IdGenerator:
    """Build the id generator named by the ``id_strategy`` setting."""
    if strategy == "sequence":
        return SequentialIdGenerator()
    if strategy == "uuid":
        return UUIDIdGenerator()
    raise ValueError(f"Unknown id strategy: {strategy!r}")
