"""
Bounded worker pool for handler invocations.

Jobs are zero-argument coroutine factories submitted without blocking and
executed by a fixed number of asyncio worker tasks, so a slow or stuck handler
occupies one worker and never the caller.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional

logger = logging.getLogger(__name__)

Job = Callable[[], Awaitable[None]]


class HandlerTaskQueue:
    """Fixed pool of workers over an unbounded ``asyncio.Queue``.

    Lifecycle is ``start()`` -> any number of ``submit()`` -> ``close()`` ->
    ``join()``. Jobs submitted before ``close()`` are still executed, jobs
    submitted after it are rejected.
    """

    def __init__(self, workers: int, name: str = "handler"):
        if workers <= 0:
            raise ValueError("workers must be positive")
        self.workers = workers
        self.name = name
        # None is the stop sentinel, one per worker
        self._queue: "asyncio.Queue[Optional[Job]]" = asyncio.Queue()
        self._workerTasks: List[asyncio.Task] = []
        self._accepting = False

    @property
    def accepting(self) -> bool:
        return self._accepting

    def pending(self) -> int:
        """Get number of jobs waiting for a free worker."""
        return self._queue.qsize()

    def start(self) -> None:
        """Spawn worker tasks, must be called from a running event loop."""
        if self._workerTasks:
            raise RuntimeError(f"{self.name} queue is already started")
        self._workerTasks = [
            asyncio.create_task(self._worker(), name=f"{self.name}-worker-{i}") for i in range(self.workers)
        ]
        self._accepting = True
        logger.debug(f"Started {self.workers} {self.name} workers")

    def submit(self, job: Job) -> bool:
        """Queue a job without waiting.

        Returns:
            False if the queue is closed and the job was not accepted
        """
        if not self._accepting:
            return False
        self._queue.put_nowait(job)
        return True

    def close(self) -> None:
        """Stop accepting jobs, idempotent."""
        if not self._accepting:
            return
        self._accepting = False
        for _ in self._workerTasks:
            self._queue.put_nowait(None)
        logger.debug(f"{self.name} queue closed, {self._queue.qsize() - len(self._workerTasks)} jobs left")

    async def join(self, timeout: Optional[float] = None) -> None:
        """Wait for workers to drain the queue, cancel whatever still runs after ``timeout``.

        A worker calling this (a handler stopping its own bot) is not waited
        for, it exits on its own after the current job.
        """
        self.close()
        current = asyncio.current_task()
        others = [task for task in self._workerTasks if task is not current and not task.done()]
        if not others:
            return

        _, pending = await asyncio.wait(others, timeout=timeout)
        if pending:
            logger.warning(f"{len(pending)} {self.name} workers still busy after {timeout}s, cancelling them")
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

    async def _worker(self) -> None:
        while True:
            job = await self._queue.get()
            try:
                if job is None:
                    return
                await job()
            except Exception as e:
                # Jobs report their own failures, only bugs get here
                logger.error(f"Unhandled error in {self.name} job: {type(e).__name__}#{e}")
                logger.exception(e)
            finally:
                self._queue.task_done()
