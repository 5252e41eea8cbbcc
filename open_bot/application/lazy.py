import asyncio
from typing import Awaitable, Callable, Generic, Optional, TypeVar

T = TypeVar("T")


class LazyValue(Generic[T]):
    """
    Cached accessor for an expensive async fetch.

    The producer is started on the first call only. Every call, including
    concurrent ones made while the fetch is in flight, receives the same task,
    so its result (or exception) is shared rather than fetched again.
    """

    def __init__(self, producer: Callable[[], Awaitable[T]]):
        self._producer = producer
        self._task: Optional[asyncio.Future] = None

    def __call__(self) -> "asyncio.Future[T]":
        if self._task is None:
            self._task = asyncio.ensure_future(self._producer())
        return self._task

    @property
    def state(self) -> str:
        """One of ``uncomputed``, ``pending`` or ``resolved``."""
        if self._task is None:
            return "uncomputed"
        return "resolved" if self._task.done() else "pending"
