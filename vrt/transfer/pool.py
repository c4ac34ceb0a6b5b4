"""Bounded worker pool for independent file transfers.

A fixed number of worker coroutines drain a shared queue of tasks. Each task
is retried sequentially with exponential backoff; the outcome accumulator is
the only state the workers share.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Iterable

from vrt.exceptions import ConfigurationError
from vrt.models.transfer import TransferFailure, TransferOutcome, TransferTask

logger = logging.getLogger(__name__)

TransferFn = Callable[[TransferTask], Awaitable[None]]

DEFAULT_CONCURRENCY = 10
DEFAULT_MAX_RETRIES = 2


class TransferWorkerPool:
    """Runs transfer tasks with at most ``concurrency`` in flight."""

    def __init__(
        self,
        transfer: TransferFn,
        concurrency: int = DEFAULT_CONCURRENCY,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = 1.0,
    ):
        if concurrency < 1:
            raise ConfigurationError(f"concurrency must be at least 1, got {concurrency}")
        if max_retries < 0:
            raise ConfigurationError(f"max_retries must not be negative, got {max_retries}")
        self.transfer = transfer
        self.concurrency = concurrency
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    async def run(self, tasks: Iterable[TransferTask]) -> TransferOutcome:
        """Execute every task and return once all reached a terminal state."""
        queue: asyncio.Queue[TransferTask] = asyncio.Queue()
        for task in tasks:
            queue.put_nowait(task)
        total = queue.qsize()
        if total == 0:
            return TransferOutcome()

        lock = asyncio.Lock()
        success: list[str] = []
        failed: list[TransferFailure] = []

        async def _worker(worker_id: int) -> None:
            while True:
                try:
                    task = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                error = await self._run_with_retry(task)
                async with lock:
                    if error is None:
                        success.append(task.relative_path)
                    else:
                        failed.append(TransferFailure(path=task.relative_path, error=error))
                    done = len(success) + len(failed)
                logger.debug("worker %d finished %s (%d/%d)", worker_id, task.relative_path, done, total)
                queue.task_done()

        workers = min(self.concurrency, total)
        logger.debug("Starting %d transfer workers for %d tasks", workers, total)
        await asyncio.gather(*(_worker(i) for i in range(workers)))

        return TransferOutcome(success=tuple(success), failed=tuple(failed))

    async def _run_with_retry(self, task: TransferTask) -> str | None:
        """Attempt one task; return None on success or the last error message."""
        for attempt in range(self.max_retries + 1):
            try:
                await self.transfer(task)
                return None
            except Exception as e:
                if attempt < self.max_retries:
                    logger.debug("Retry %d for %s: %s", attempt + 1, task.relative_path, e)
                    await asyncio.sleep(self.retry_delay * (2 ** attempt))
                else:
                    logger.warning("Transfer failed after %d attempts: %s: %s",
                                   attempt + 1, task.relative_path, e)
                    return str(e) or type(e).__name__
        return None
