"""
Task Executor - Fixed pool of long-lived workers over one shared queue

Provides:
- Configurable number of workers, each processing one item at a time
- Unbounded queue: submitting never blocks the producer
- Status snapshot (active / pending)
- Clean shutdown that hands back undelivered items
"""
import asyncio
from typing import Any, Awaitable, Callable, Dict, Generic, List, TypeVar

from loguru import logger

T = TypeVar("T")


class TaskExecutor(Generic[T]):
    """
    Runs process_func over queued items with bounded parallelism.

    Width of the pool is the only source of parallelism: a worker finishes
    its current item end-to-end before taking the next one.
    """

    def __init__(
        self,
        process_func: Callable[[T], Awaitable[None]],
        max_workers: int = 1,
        name: str = "executor",
        log=None,
    ):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.max_workers = max_workers
        self.name = name
        self._process_func = process_func
        self._log = log or logger.bind(component=name)

        self.queue: "asyncio.Queue[T]" = asyncio.Queue()
        self.active_items: Dict[int, T] = {}
        self._workers: List[asyncio.Task] = []
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Spawn the workers; must be called from a running event loop"""
        if self._running:
            return

        self._running = True
        self._workers = [
            asyncio.create_task(self._worker_loop(i), name=f"{self.name}-worker-{i}")
            for i in range(self.max_workers)
        ]
        self._log.info(f"{self.name} started with {self.max_workers} worker(s)")

    async def stop(self) -> List[T]:
        """
        Cancel the workers and drain the queue.

        Returns:
            Items that were still waiting in the queue
        """
        if not self._running:
            return []
        self._running = False

        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []

        leftovers: List[T] = []
        while True:
            try:
                leftovers.append(self.queue.get_nowait())
            except asyncio.QueueEmpty:
                break
            self.queue.task_done()

        self._log.info(f"{self.name} stopped ({len(leftovers)} item(s) not processed)")
        return leftovers

    def submit(self, item: T) -> int:
        """
        Queue an item without waiting.

        Returns:
            Number of items waiting in the queue, this one included
        """
        self.queue.put_nowait(item)
        return self.queue.qsize()

    async def join(self) -> None:
        """Wait until every submitted item has been processed"""
        await self.queue.join()

    def get_status(self) -> Dict[str, Any]:
        """Get current executor status"""
        return {
            "running": self._running,
            "max_workers": self.max_workers,
            "active_count": len(self.active_items),
            "pending_count": self.queue.qsize(),
        }

    async def _worker_loop(self, worker_id: int) -> None:
        """Take one item at a time from the shared queue until cancelled"""
        self._log.debug(f"{self.name} worker {worker_id} started")
        while True:
            item = await self.queue.get()
            self.active_items[worker_id] = item
            try:
                await self._process_func(item)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._log.error(f"{self.name} worker {worker_id} processing error: {e}")
            finally:
                self.active_items.pop(worker_id, None)
                self.queue.task_done()
