"""
Thread pool backend for the per-pass parallel map.

Render tasks write into views of one shared pixel buffer and poll the
controller's cancellation flags, so they run as threads in the controller's
process rather than in separate worker processes.
"""

from typing import Callable, List, Optional, Sequence, TypeVar
import os
import threading
import logging
import time
from concurrent.futures import Executor, ThreadPoolExecutor, wait, FIRST_EXCEPTION

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


def get_optimal_worker_count() -> int:
    """Get optimal number of worker threads for render tasks."""
    return max(1, os.cpu_count() or 1)


class ParallelMapExecutor:
    """Fork-join map of independent tasks over a pool of worker threads."""

    def __init__(self, max_workers: Optional[int] = None,
                 executor: Optional[Executor] = None):
        """
        Initialize the executor.

        Args:
            max_workers: Number of worker threads (None for CPU count)
            executor: Existing executor to submit to instead of creating a
                pool; it is left running by ``shutdown``
        """
        self._owns_executor = executor is None
        if executor is None:
            self.max_workers = max(1, max_workers) if max_workers else get_optimal_worker_count()
        else:
            self.max_workers = max_workers
        self._executor = executor
        self._lock = threading.Lock()

    def _get_executor(self) -> Executor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=self.max_workers,
                                                    thread_name_prefix="mandelbrot-task")
                logger.info(f"Thread pool started: {self.max_workers} workers")
            return self._executor

    def map_blocking(self, func: Callable[[T], R], items: Sequence[T],
                     stop_event: Optional[threading.Event] = None) -> List[R]:
        """
        Apply ``func`` to every item in parallel and wait for all of them.

        Args:
            func: Task function
            items: Task inputs
            stop_event: Set as soon as any task fails, so the tasks still
                running can notice and return early

        Returns:
            Task results in input order

        Raises:
            Exception: The first error raised by a task, after every task
                has finished or been cancelled
        """
        if not items:
            return []

        executor = self._get_executor()
        start_time = time.time()
        futures = [executor.submit(func, item) for item in items]

        done, pending = wait(futures, return_when=FIRST_EXCEPTION)
        failed = [f for f in futures if f.done() and not f.cancelled() and f.exception() is not None]
        if failed:
            if stop_event is not None:
                stop_event.set()
            for future in pending:
                future.cancel()
            wait(futures)
            error = failed[0].exception()
            logger.error(f"{len(items)}-task map failed: {error}")
            raise error

        results = [future.result() for future in futures]

        total_time = time.time() - start_time
        logger.debug(f"Completed {len(items)} tasks in {total_time:.3f}s")
        return results

    def shutdown(self) -> None:
        """Stop the worker threads of an owned pool; a later map starts a new one."""
        if not self._owns_executor:
            return
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)
            logger.info("Thread pool stopped")
