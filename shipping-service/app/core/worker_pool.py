"""
Keyed Worker Pool for Inbound Message Processing

Runs message handlers on a fixed set of worker threads.

Features:
- Configurable number of workers
- Per-key ordering guarantees (same key, same worker, FIFO)
- Backpressure: submit blocks while the target worker queue is full
- Results and exceptions returned through concurrent.futures.Future
- Graceful shutdown that drains queued work

Usage:
    pool = WorkerPool(num_workers=4, queue_size=100)
    pool.start()

    future = pool.submit("order.completed:0", dispatcher.dispatch, record)
    outcome = future.result()

    pool.stop()
"""

import hashlib
import logging
import queue
import threading
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class WorkerPoolStats:
    """Statistics for worker pool monitoring"""
    total_submitted: int = 0
    total_processed: int = 0
    total_errors: int = 0

    def to_dict(self) -> Dict:
        return {
            "total_submitted": self.total_submitted,
            "total_processed": self.total_processed,
            "total_errors": self.total_errors,
        }


@dataclass
class WorkItem:
    """Represents a unit of work"""
    key: str  # Used for routing to specific worker
    func: Callable
    args: tuple
    kwargs: dict
    future: Future = field(default_factory=Future)


class WorkerPool:
    """
    Thread worker pool with key affinity.

    Items sharing a key are hashed onto the same worker queue, so they run
    one at a time in submission order.
    """

    def __init__(self, num_workers: int = 4, queue_size: int = 100, name: str = "worker_pool"):
        """
        Args:
            num_workers: Number of worker threads
            queue_size: Max items per worker queue (submit blocks when full)
            name: Pool name for logging and thread names
        """
        if num_workers < 1:
            raise ValueError("num_workers must be at least 1")

        self.num_workers = num_workers
        self.queue_size = queue_size
        self.name = name

        self.queues: List[queue.Queue] = []
        self.workers: List[threading.Thread] = []
        self.running = False
        self.stats = WorkerPoolStats()
        self._stats_lock = threading.Lock()

    def _get_worker_index(self, key: str) -> int:
        """Consistent hash of the key onto a worker index."""
        hash_val = int(hashlib.md5(key.encode()).hexdigest(), 16)
        return hash_val % self.num_workers

    def start(self):
        if self.running:
            logger.warning(f"Worker pool '{self.name}' already running")
            return

        self.queues = [queue.Queue(maxsize=self.queue_size) for _ in range(self.num_workers)]
        self.workers = [
            threading.Thread(
                target=self._worker_loop,
                args=(i,),
                name=f"{self.name}-{i}",
                daemon=True,
            )
            for i in range(self.num_workers)
        ]
        self.running = True
        for worker in self.workers:
            worker.start()

        logger.info(
            f"Worker pool '{self.name}' started: "
            f"workers={self.num_workers}, queue_size={self.queue_size}"
        )

    def stop(self, timeout: Optional[float] = None):
        """
        Stop the pool after every queued item has run.

        Args:
            timeout: Max seconds to wait for each worker thread
        """
        if not self.running:
            return

        self.running = False
        logger.info(f"Stopping worker pool '{self.name}'...")

        # None signals shutdown; it queues behind any pending work
        for q in self.queues:
            q.put(None)
        for worker in self.workers:
            worker.join(timeout=timeout)

        logger.info(
            f"Worker pool '{self.name}' stopped. "
            f"Processed: {self.stats.total_processed}, Errors: {self.stats.total_errors}"
        )

    def submit(self, key: str, func: Callable, *args, **kwargs) -> Future:
        """
        Submit work to the pool, blocking while the worker queue is full.

        Args:
            key: Routing key - same key goes to same worker
            func: Callable to execute
            *args: Arguments for func
            **kwargs: Keyword arguments for func

        Returns:
            Future holding func's return value or exception
        """
        if not self.running:
            raise RuntimeError(f"Worker pool '{self.name}' is not running")

        work = WorkItem(key=key, func=func, args=args, kwargs=kwargs)
        self.queues[self._get_worker_index(key)].put(work)

        with self._stats_lock:
            self.stats.total_submitted += 1
        return work.future

    def _worker_loop(self, worker_id: int):
        q = self.queues[worker_id]
        logger.debug(f"Worker {worker_id} started")

        while True:
            work = q.get()
            try:
                if work is None:
                    break
                if not work.future.set_running_or_notify_cancel():
                    continue
                try:
                    result = self._run(work)
                except Exception as e:
                    with self._stats_lock:
                        self.stats.total_errors += 1
                    logger.error(
                        f"Worker {worker_id} error processing {work.key}: {e}",
                        exc_info=True,
                    )
                    work.future.set_exception(e)
                else:
                    with self._stats_lock:
                        self.stats.total_processed += 1
                    work.future.set_result(result)
            finally:
                q.task_done()

        logger.debug(f"Worker {worker_id} stopped")

    @staticmethod
    def _run(work: WorkItem) -> Any:
        return work.func(*work.args, **work.kwargs)

    def get_queue_depths(self) -> List[int]:
        """Get current queue depth for each worker."""
        return [q.qsize() for q in self.queues]

    def get_stats(self) -> Dict:
        stats = self.stats.to_dict()
        stats["queue_depths"] = self.get_queue_depths()
        return stats
