"""Worker threads for concurrent transfers."""

from texsync.client.sync.workers.pool import (
    DEFAULT_MAX_WORKERS,
    PoolState,
    WorkerPool,
    WorkerTask,
)

__all__ = [
    "DEFAULT_MAX_WORKERS",
    "PoolState",
    "WorkerPool",
    "WorkerTask",
]
