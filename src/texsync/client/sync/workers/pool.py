"""Worker pool for concurrent blob downloads.

This module provides:
- WorkerPool: Bounded pool of threads draining a task queue
- WorkerTask: Represents a queued task for the pool
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING, Any

from texsync.client.sync.types import BatchFatalError

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 4


class PoolState(Enum):
    """State of the worker pool."""

    STOPPED = auto()
    RUNNING = auto()
    STOPPING = auto()


@dataclass
class WorkerTask:
    """A task to be executed by the worker pool.

    Attributes:
        key: Identifier used in logs (the canonical path).
        run: Work to perform. Its return value goes to on_complete.
        on_complete: Callback when the task succeeds.
        on_error: Callback when the task fails with a non-fatal error.
    """

    key: str
    run: Callable[[], Any]
    on_complete: Callable[[Any], None] | None = None
    on_error: Callable[[Exception], None] | None = None


class WorkerPool:
    """Pool of worker threads for concurrent downloads.

    Tasks are picked up in submission order. A cancel check runs before
    each task starts, never while one is running. A task raising
    BatchFatalError stops the pool from starting any further task.

    Usage:
        pool = WorkerPool(max_workers=4, cancel_check=event.is_set)
        pool.start()
        pool.submit("a.png", fetch_and_write)
        pool.wait()
        pool.stop()
    """

    def __init__(
        self,
        max_workers: int = DEFAULT_MAX_WORKERS,
        cancel_check: Callable[[], bool] | None = None,
    ) -> None:
        """Initialize the worker pool.

        Args:
            max_workers: Maximum concurrent workers.
            cancel_check: Returns True when remaining tasks should be dropped.
        """
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")
        self._max_workers = max_workers
        self._cancel_check = cancel_check

        self._pool_state = PoolState.STOPPED
        self._lock = threading.Lock()
        self._task_queue: queue.Queue[WorkerTask | None] = queue.Queue()
        self._workers: list[threading.Thread] = []

        self._completed_count = 0
        self._error_count = 0
        self._dropped_count = 0
        self._fatal_error: BatchFatalError | None = None

    @property
    def state(self) -> PoolState:
        """Get current pool state."""
        return self._pool_state

    @property
    def completed_count(self) -> int:
        """Get number of completed tasks."""
        return self._completed_count

    @property
    def error_count(self) -> int:
        """Get number of failed tasks."""
        return self._error_count

    @property
    def dropped_count(self) -> int:
        """Get number of tasks never started (cancelled or aborted)."""
        return self._dropped_count

    @property
    def fatal_error(self) -> BatchFatalError | None:
        """The error that aborted the batch, if any."""
        return self._fatal_error

    def start(self) -> None:
        """Spawn the download threads."""
        with self._lock:
            if self._pool_state is not PoolState.STOPPED:
                logger.warning(f"start() ignored, pool is {self._pool_state.name.lower()}")
                return
            self._pool_state = PoolState.RUNNING
            self._workers = [
                threading.Thread(target=self._worker_loop, name=f"texsync-download-{n}", daemon=True)
                for n in range(self._max_workers)
            ]
        for thread in self._workers:
            thread.start()
        logger.debug(f"Started {self._max_workers} download threads")

    def stop(self, timeout: float = 10.0) -> None:
        """Let queued tasks drain, then join the threads.

        Args:
            timeout: Overall limit for joining every thread.
        """
        with self._lock:
            if self._pool_state is not PoolState.RUNNING:
                return
            self._pool_state = PoolState.STOPPING
            workers = list(self._workers)

        # One sentinel per thread, queued behind pending tasks
        for _ in workers:
            self._task_queue.put(None)
        deadline = time.monotonic() + timeout
        for thread in workers:
            thread.join(max(0.0, deadline - time.monotonic()))
        stuck = [t.name for t in workers if t.is_alive()]
        if stuck:
            logger.warning(f"Download threads still running after {timeout}s: {stuck}")

        with self._lock:
            self._workers = []
            self._pool_state = PoolState.STOPPED

    def submit(
        self,
        key: str,
        run: Callable[[], Any],
        on_complete: Callable[[Any], None] | None = None,
        on_error: Callable[[Exception], None] | None = None,
    ) -> bool:
        """Queue a task.

        Returns:
            False if the pool is not running and the task was not queued.
        """
        if self._pool_state is not PoolState.RUNNING:
            logger.warning(f"Task {key} rejected, pool is not running")
            return False

        self._task_queue.put(WorkerTask(key, run, on_complete, on_error))
        return True

    def wait(self) -> None:
        """Block until every submitted task has been processed or dropped."""
        self._task_queue.join()

    def __enter__(self) -> WorkerPool:
        """Context manager entry."""
        self.start()
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.stop()

    def _should_drop(self) -> bool:
        if self._fatal_error is not None:
            return True
        return bool(self._cancel_check and self._cancel_check())

    def _worker_loop(self) -> None:
        """Main loop for worker threads."""
        while True:
            task = self._task_queue.get()
            try:
                if task is None:
                    break
                if self._should_drop():
                    with self._lock:
                        self._dropped_count += 1
                    continue
                self._process_task(task)
            finally:
                self._task_queue.task_done()

    def _process_task(self, task: WorkerTask) -> None:
        """Run a task and route its outcome."""
        try:
            result = task.run()
        except BatchFatalError as e:
            with self._lock:
                if self._fatal_error is None:
                    self._fatal_error = e
            logger.error(f"Aborting batch at {task.key}: {e}")
            return
        except Exception as e:
            with self._lock:
                self._error_count += 1
            logger.warning(f"Task failed: {task.key}: {e}")
            if task.on_error:
                task.on_error(e)
            return

        with self._lock:
            self._completed_count += 1
        if task.on_complete:
            task.on_complete(result)
