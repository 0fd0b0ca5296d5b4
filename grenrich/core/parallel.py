"""
Parallel dispatch of independent sample tasks.

Fans ``func(i)`` for i in 0..n-1 out over a thread or process pool and
collects the results by submission index, so the combined output never
depends on completion order. Any task failure aborts the whole run; so do a
timeout and an external cancel event. Partial results are never returned.
"""

import logging
import math
import os
import threading
import time
from concurrent.futures import Future, ProcessPoolExecutor, ThreadPoolExecutor, as_completed
from concurrent.futures import TimeoutError as FuturesTimeout
from typing import Any, Callable, Dict, List, Optional

from .exceptions import InvalidParameterError, RunAbortedError, WorkerFailure

logger = logging.getLogger(__name__)

BACKENDS = ("thread", "process")

ProgressCallback = Callable[[int, int], None]


def default_workers() -> int:
    """Half of the detected cores, at least one."""
    return max(1, (os.cpu_count() or 1) // 2)


class ParallelDispatcher:
    """
    Run index-addressed tasks with an order-preserving worker pool.

    Args:
        parallel: Use a worker pool; False always runs sequentially
        max_workers: Pool size; None uses half of the available cores
        backend: "thread" or "process" (process tasks must be picklable)
        timeout: Whole-run limit in seconds
        cancel_event: Event that, once set, aborts the run
        progress: Optional callback receiving (completed, total)
    """

    def __init__(
        self,
        parallel: bool = True,
        max_workers: Optional[int] = None,
        backend: str = "thread",
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
        progress: Optional[ProgressCallback] = None,
    ):
        if backend not in BACKENDS:
            raise InvalidParameterError("backend", backend, f"one of {list(BACKENDS)}")
        if max_workers is not None and max_workers < 1:
            raise InvalidParameterError("max_workers", max_workers, ">= 1")

        self.parallel = parallel
        self.max_workers = max_workers or default_workers()
        self.backend = backend
        self.timeout = timeout
        self.cancel_event = cancel_event
        self.progress = progress

    def map(self, func: Callable[[int], Any], n_tasks: int) -> List[Any]:
        """Return [func(0), ..., func(n_tasks - 1)]."""
        if n_tasks <= 0:
            return []
        if not self.parallel or self.max_workers == 1 or n_tasks == 1:
            return self._run_sequential(func, n_tasks)
        return self._run_parallel(func, n_tasks)

    # ------------------------------------------------------------------

    def _report(self, done: int, total: int) -> None:
        step = max(1, math.ceil(total / 10))
        if done == 1 or done == total or done % step == 0:
            logger.info("\t%d out of %d", done, total)
        if self.progress is not None:
            self.progress(done, total)

    def _check_cancelled(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise RunAbortedError("Run cancelled")

    def _run_sequential(self, func: Callable[[int], Any], n_tasks: int) -> List[Any]:
        deadline = time.monotonic() + self.timeout if self.timeout is not None else None
        results: List[Any] = [None] * n_tasks

        for i in range(n_tasks):
            self._check_cancelled()
            if deadline is not None and time.monotonic() > deadline:
                raise RunAbortedError(f"Run timed out after {self.timeout} seconds")
            try:
                results[i] = func(i)
            except Exception as e:
                raise WorkerFailure(i, e) from e
            self._report(i + 1, n_tasks)

        return results

    def _run_parallel(self, func: Callable[[int], Any], n_tasks: int) -> List[Any]:
        self._check_cancelled()

        executor_cls = ThreadPoolExecutor if self.backend == "thread" else ProcessPoolExecutor
        n_workers = min(self.max_workers, n_tasks)
        executor = executor_cls(max_workers=n_workers)
        logger.info("Dispatching %d tasks to %d %s workers", n_tasks, n_workers, self.backend)

        results: List[Any] = [None] * n_tasks
        futures: Dict[Future, int] = {}
        try:
            for i in range(n_tasks):
                futures[executor.submit(func, i)] = i

            done = 0
            for future in as_completed(futures, timeout=self.timeout):
                self._check_cancelled()
                i = futures[future]
                try:
                    results[i] = future.result()
                except Exception as e:
                    logger.error("Sample task %d failed: %s", i, e)
                    raise WorkerFailure(i, e) from e
                done += 1
                self._report(done, n_tasks)
        except FuturesTimeout as e:
            raise RunAbortedError(f"Run timed out after {self.timeout} seconds") from e
        finally:
            # Drop queued work; running tasks are side-effect free
            executor.shutdown(wait=False, cancel_futures=True)

        return results
