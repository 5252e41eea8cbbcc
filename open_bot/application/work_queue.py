import asyncio
import logging
from collections import deque
from typing import Awaitable, Callable, Deque, Iterable, List, Set, Tuple, TypeVar

logger = logging.getLogger(__name__)

# Maximum number of forge-bound tasks executing at once
CONCURRENCY_LIMIT = 20

T = TypeVar("T")
R = TypeVar("R")


class BoundedWorkQueue:
    """
    FIFO admission gate for async tasks.

    A thunk is only invoked while fewer than ``concurrency`` tasks of this queue
    are running; otherwise it waits in line until a slot frees up.
    """

    def __init__(self, concurrency: int = CONCURRENCY_LIMIT):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.concurrency = concurrency
        self._running = 0
        self._pending: Deque[Tuple[Callable[[], Awaitable], asyncio.Future]] = deque()
        self._tasks: Set[asyncio.Future] = set()

    @property
    def running(self) -> int:
        return self._running

    @property
    def pending(self) -> int:
        return len(self._pending)

    def add(self, thunk: Callable[[], Awaitable[T]]) -> "asyncio.Future[T]":
        future = asyncio.get_running_loop().create_future()
        self._pending.append((thunk, future))
        self._dequeue()
        return future

    def _dequeue(self) -> None:
        while self._running < self.concurrency and self._pending:
            thunk, future = self._pending.popleft()
            self._running += 1
            task = asyncio.ensure_future(self._run(thunk, future))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _run(self, thunk: Callable[[], Awaitable], future: asyncio.Future) -> None:
        try:
            result = await thunk()
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            if not future.done():
                future.set_exception(e)
        else:
            if not future.done():
                future.set_result(result)
        finally:
            self._running -= 1
            self._dequeue()


async def queue_all(queue: BoundedWorkQueue, items: Iterable[T], fn: Callable[[T], Awaitable[R]]) -> List[R]:
    """
    Runs ``fn`` over ``items`` under ``queue``.

    Results keep the order of ``items``. The first failure is raised as soon as
    it happens; the remaining tasks keep running in the background.
    """
    futures = [queue.add(lambda item=item: fn(item)) for item in items]
    return list(await asyncio.gather(*futures))
