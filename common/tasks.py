"""Bounded worker pool for cache population side effects.

Requests hand cache writes to a ``CacheTaskQueue`` and return without
waiting. Every task gets a ``Deadline``; errors are logged and dropped.
"""

import threading
import time
from concurrent.futures import ALL_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Callable

from fastapi import Request

from common.logger import get_logger

logger = get_logger(__name__)


class Deadline:
    def __init__(self, timeout: float):
        self.timeout = timeout
        self.expires_at = time.monotonic() + timeout

    def remaining(self) -> float:
        return max(0.0, self.expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        return time.monotonic() >= self.expires_at

    def check(self, what: str = "cache task") -> None:
        if self.expired:
            raise TimeoutError(f"{what} exceeded {self.timeout:.0f}s")

    def sleep(self, seconds: float) -> None:
        """Sleep without overrunning the deadline."""
        if seconds > 0:
            time.sleep(min(seconds, self.remaining()))
        self.check()


class CacheTaskQueue:
    def __init__(self, max_workers: int = 4, max_pending: int = 256, timeout: float = 60.0):
        self.timeout = timeout
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="cache-worker"
        )
        self._slots = threading.BoundedSemaphore(max_pending)
        self._lock = threading.Lock()
        self._pending: set[Future] = set()
        self._closed = False

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._pending)

    def submit(self, name: str, fn: Callable[..., None], *args) -> Future | None:
        """Queue ``fn(deadline, *args)``. Returns None if the task was dropped."""
        if self._closed:
            logger.warning("Cache queue closed, dropping task %s", name)
            return None
        if not self._slots.acquire(blocking=False):
            logger.warning("Cache queue full, dropping task %s", name)
            return None
        try:
            future = self._executor.submit(self._run, name, fn, args)
        except RuntimeError as e:
            self._slots.release()
            logger.warning("Could not schedule task %s: %s", name, e)
            return None
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._finished)
        return future

    def _run(self, name: str, fn: Callable[..., None], args: tuple) -> None:
        deadline = Deadline(self.timeout)
        try:
            fn(deadline, *args)
        except Exception:
            logger.exception("Cache task %s failed", name)

    def _finished(self, future: Future) -> None:
        self._slots.release()
        with self._lock:
            self._pending.discard(future)

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the tasks queued so far are done. True if they all finished."""
        with self._lock:
            snapshot = list(self._pending)
        if not snapshot:
            return True
        _, not_done = wait(snapshot, timeout=timeout, return_when=ALL_COMPLETED)
        return not not_done

    def shutdown(self, cancel_pending: bool = True) -> None:
        self._closed = True
        self._executor.shutdown(wait=not cancel_pending, cancel_futures=cancel_pending)
        logger.info("Cache queue stopped")


def get_cache_queue(request: Request) -> CacheTaskQueue:
    return request.app.state.cache_queue
