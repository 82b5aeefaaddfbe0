"""
=============================================================================
THREAD POOL
=============================================================================

A fixed-ceiling group of worker threads pulling connections from a bounded
queue. The accept loop never runs request handling itself; it hands each
connection to the pool and goes back to accept().

    ┌─────────────────────────────────────────────────────────────────────┐
    │                          ThreadPool                                  │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   submit(task) ──► ┌───┬───┬───┬───┬───┐                            │
    │                    │ T │ T │ T │   │   │  queue (max_queue_size)     │
    │                    └─┬─┴───┴───┴───┴───┘                            │
    │                      │                                               │
    │          ┌───────────┼───────────┐                                   │
    │          ▼           ▼           ▼                                   │
    │     ┌────────┐  ┌────────┐  ┌────────┐                               │
    │     │Worker 0│  │Worker 1│  │Worker 2│  ... up to max_workers        │
    │     └────────┘  └────────┘  └────────┘                               │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

When the queue is full, submit(block=False) returns False and the caller
answers 503 Service Unavailable instead of letting connections pile up.

Shutdown uses "poison pills": one None per worker is queued and every
worker that dequeues one exits its loop.

=============================================================================
"""

import queue
import threading
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional


logger = logging.getLogger(__name__)


class WorkerState(Enum):
    IDLE = "idle"
    BUSY = "busy"
    STOPPED = "stopped"


@dataclass
class Task:
    """
    A deferred function call.

    Attributes:
        func: The function to execute.
        args: Positional arguments.
        kwargs: Keyword arguments.
        timeout: Maximum time the task may wait in the queue. A task that
            waited longer is dropped without running.
        submitted_at: When the task was queued.
    """

    func: Callable[..., Any]
    args: tuple = ()
    kwargs: Dict[str, Any] = field(default_factory=dict)
    timeout: Optional[float] = None
    submitted_at: float = field(default_factory=time.time)

    @property
    def waited(self) -> float:
        return time.time() - self.submitted_at


class Worker(threading.Thread):
    """
    Worker thread: take a task, run it, repeat.

    A failing task is logged and counted; it never kills the worker.
    """

    def __init__(
        self,
        task_queue: "queue.Queue[Optional[Task]]",
        worker_id: int,
        poll_interval: float = 1.0
    ):
        super().__init__(name=f"userservice-worker-{worker_id}", daemon=True)
        self.task_queue = task_queue
        self.worker_id = worker_id
        self.poll_interval = poll_interval

        self.state = WorkerState.IDLE
        self._shutdown = threading.Event()

        self.tasks_completed = 0
        self.tasks_failed = 0

    def run(self):
        logger.debug(f"Worker {self.worker_id} started")

        while not self._shutdown.is_set():
            try:
                task = self.task_queue.get(timeout=self.poll_interval)
            except queue.Empty:
                continue  # Re-check the shutdown flag

            try:
                if task is None:
                    break  # Poison pill
                self._execute_task(task)
            finally:
                self.task_queue.task_done()

        self.state = WorkerState.STOPPED
        logger.debug(f"Worker {self.worker_id} stopped")

    def _execute_task(self, task: Task):
        self.state = WorkerState.BUSY
        start_time = time.time()

        try:
            if task.timeout and task.waited > task.timeout:
                logger.warning(
                    f"Task dropped after waiting {task.waited:.2f}s "
                    f"(timeout was {task.timeout}s)"
                )
                self.tasks_failed += 1
                return

            task.func(*task.args, **task.kwargs)

            elapsed = time.time() - start_time
            logger.debug(f"Worker {self.worker_id} completed task in {elapsed:.3f}s")
            self.tasks_completed += 1

        except Exception as e:
            elapsed = time.time() - start_time
            logger.exception(f"Worker {self.worker_id} task failed after {elapsed:.3f}s: {e}")
            self.tasks_failed += 1

        finally:
            self.state = WorkerState.IDLE

    def shutdown(self):
        """Ask the worker to exit after its current task."""
        self._shutdown.set()


class ThreadPool:
    """
    Bounded thread pool.

        pool = ThreadPool(min_workers=4, max_workers=16, max_queue_size=100)
        pool.start()

        if not pool.submit(handle_connection, args=(conn,), block=False):
            reject(conn)  # Queue full

        pool.shutdown(wait=True)

    Starts with min_workers threads and adds one whenever every worker is
    busy and work is waiting, up to max_workers.
    """

    def __init__(
        self,
        min_workers: int = 4,
        max_workers: int = 16,
        max_queue_size: int = 100,
        poll_interval: float = 1.0
    ):
        """
        Args:
            min_workers: Threads started by start() and kept for the
                pool's lifetime.
            max_workers: Upper bound on threads under load.
            max_queue_size: Tasks that may wait for a worker. Beyond this
                submit() blocks or, with block=False, returns False.
            poll_interval: How often idle workers re-check for shutdown.

        Raises:
            ValueError: If the worker bounds are inconsistent.
        """
        if min_workers < 1:
            raise ValueError("min_workers must be >= 1")
        if max_workers < min_workers:
            raise ValueError("max_workers must be >= min_workers")

        self.min_workers = min_workers
        self.max_workers = max_workers
        self.max_queue_size = max_queue_size
        self.poll_interval = poll_interval

        self._task_queue: "queue.Queue[Optional[Task]]" = queue.Queue(maxsize=max_queue_size)

        self._workers: List[Worker] = []
        self._lock = threading.Lock()  # Guards _workers
        self._started = False
        self._shutting_down = False
        self._next_worker_id = 0

    @property
    def is_running(self) -> bool:
        return self._started and not self._shutting_down

    def start(self):
        """Start min_workers threads. Calling it twice is a no-op."""
        if self._started:
            return

        logger.info(f"Starting thread pool with {self.min_workers} workers")

        self._shutting_down = False
        with self._lock:
            for _ in range(self.min_workers):
                self._spawn_worker()

        self._started = True

    def _spawn_worker(self) -> Worker:
        """Create and start one worker. Caller holds self._lock."""
        worker = Worker(
            task_queue=self._task_queue,
            worker_id=self._next_worker_id,
            poll_interval=self.poll_interval
        )
        self._next_worker_id += 1
        self._workers.append(worker)
        worker.start()
        return worker

    def submit(
        self,
        func: Callable[..., Any],
        args: tuple = (),
        kwargs: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
        block: bool = True,
        queue_timeout: Optional[float] = None
    ) -> bool:
        """
        Queue a task.

        Args:
            func: The function to execute.
            args: Positional arguments for func.
            kwargs: Keyword arguments for func.
            timeout: Drop the task if it waits longer than this.
            block: Wait for queue space when the queue is full.
            queue_timeout: How long to wait for space when blocking.

        Returns:
            True if the task was queued, False if the queue was full.

        Raises:
            RuntimeError: If the pool is not started or is shutting down.
        """
        if not self._started:
            raise RuntimeError("Thread pool not started")

        if self._shutting_down:
            raise RuntimeError("Thread pool is shutting down")

        task = Task(func=func, args=args, kwargs=kwargs or {}, timeout=timeout)

        try:
            self._task_queue.put(task, block=block, timeout=queue_timeout)
        except queue.Full:
            return False

        self._maybe_scale_up()
        return True

    def _maybe_scale_up(self):
        """Add a worker when all are busy, work is waiting and we're under max."""
        with self._lock:
            if len(self._workers) >= self.max_workers:
                return

            busy = self.busy_workers
            if busy == len(self._workers) and self._task_queue.qsize() > 0:
                logger.debug(
                    f"Scaling up: {len(self._workers)} -> {len(self._workers) + 1} workers"
                )
                self._spawn_worker()

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None):
        """
        Stop the pool.

        Args:
            wait: Let queued tasks finish first. If False they are abandoned.
            timeout: Upper bound on the wait for queued tasks.
        """
        if not self._started:
            return

        logger.info("Shutting down thread pool...")
        self._shutting_down = True

        if wait:
            deadline = time.time() + timeout if timeout else None
            while self._task_queue.unfinished_tasks:
                if deadline and time.time() > deadline:
                    logger.warning("Shutdown timeout, forcing stop")
                    break
                time.sleep(0.05)

        with self._lock:
            workers = list(self._workers)
            self._workers.clear()

        for worker in workers:
            worker.shutdown()
            try:
                self._task_queue.put(None, block=False)
            except queue.Full:
                pass  # The shutdown flag still stops the worker on its next poll

        for worker in workers:
            worker.join(timeout=self.poll_interval * 2)

        self._started = False
        logger.info("Thread pool shutdown complete")

    # =========================================================================
    # MONITORING
    # =========================================================================

    @property
    def worker_count(self) -> int:
        return len(self._workers)

    @property
    def busy_workers(self) -> int:
        return sum(1 for w in self._workers if w.state == WorkerState.BUSY)

    @property
    def stats(self) -> dict:
        """Worker and task counters, logged when the server shuts down."""
        return {
            "workers": {
                "total": self.worker_count,
                "busy": self.busy_workers,
            },
            "tasks": {
                "queued": self._task_queue.qsize(),
                "completed": sum(w.tasks_completed for w in self._workers),
                "failed": sum(w.tasks_failed for w in self._workers),
            },
        }
