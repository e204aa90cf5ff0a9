"""
Bounded worker pools for supervised jobs and post-job cleanup.

Two separate pools:

WorkerPool (job slots, default N=4)
- A job acquires a slot BEFORE its process is spawned
- The slot is held by the drain-and-wait task and released only when
  that task has actually finished
- Held slots never exceed N, so drain tasks never queue behind each
  other and timeout accounting starts at process start

CleanupPool (default 2 workers)
- Short file-deletion tasks only
- Never shares threads with running jobs
- Best-effort: failures are logged, never raised
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Callable, List, Optional, TypeVar, Union

from ..settings import get_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class WorkerPool:
    """
    Job-slot pool for drain-and-wait tasks.

    Usage:
        if pool.acquire_slot(timeout):
            future = pool.submit_held(task)   # slot released when task ends
    """

    def __init__(self, max_jobs: int = 4):
        if max_jobs < 1:
            raise ValueError(f"max_jobs must be >= 1, got {max_jobs}")
        self.max_jobs = max_jobs
        self._slots = threading.BoundedSemaphore(max_jobs)
        self._executor = ThreadPoolExecutor(
            max_workers=max_jobs,
            thread_name_prefix="clipmorph-job",
        )
        self._lock = threading.Lock()
        self._held = 0
        self._peak_held = 0

    @property
    def held_slots(self) -> int:
        """Number of slots currently held."""
        with self._lock:
            return self._held

    @property
    def peak_held_slots(self) -> int:
        """Highest number of slots held at once since creation."""
        with self._lock:
            return self._peak_held

    def acquire_slot(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for a free job slot.

        Args:
            timeout: Seconds to wait (None = wait until one frees up)

        Returns:
            True if a slot was acquired
        """
        acquired = self._slots.acquire(timeout=timeout) if timeout is not None else self._slots.acquire()
        if acquired:
            with self._lock:
                self._held += 1
                self._peak_held = max(self._peak_held, self._held)
                logger.debug(f"[Pool] Slot acquired, held: {self._held}/{self.max_jobs}")
        return acquired

    def release_slot(self) -> None:
        """Return a slot to the pool."""
        with self._lock:
            self._held -= 1
            logger.debug(f"[Pool] Slot released, held: {self._held}/{self.max_jobs}")
        self._slots.release()

    def submit_held(self, fn: Callable[..., T], *args, **kwargs) -> "Future[T]":
        """
        Run fn on the pool under an already-acquired slot.

        The slot is released when fn returns or raises. If submission
        itself fails (pool shut down) the slot is released immediately.
        """

        def _run_and_release() -> T:
            try:
                return fn(*args, **kwargs)
            finally:
                self.release_slot()

        try:
            return self._executor.submit(_run_and_release)
        except RuntimeError:
            self.release_slot()
            raise

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


class CleanupPool:
    """Small executor for best-effort file deletion."""

    def __init__(self, max_workers: int = 2):
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="clipmorph-cleanup",
        )

    def schedule(self, *paths: Union[str, Path, None]) -> "Future[List[str]]":
        """
        Delete files in the background.

        None entries and already-missing files are ignored.

        Returns:
            Future resolving to the list of paths actually removed
        """
        targets = [Path(p) for p in paths if p is not None]
        return self._executor.submit(delete_files, targets)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


def delete_files(paths: List[Path]) -> List[str]:
    """
    Delete each path, logging (not raising) failures.

    Returns:
        Paths that existed and were removed
    """
    removed: List[str] = []
    for path in paths:
        try:
            if path.exists():
                path.unlink()
                removed.append(str(path))
        except OSError as e:
            logger.warning(f"[Cleanup] Error cleaning up temp file {path}: {e}")
    if removed:
        logger.debug(f"[Cleanup] Removed {len(removed)} file(s)")
    return removed


# Global pool instances
_default_worker_pool: Optional[WorkerPool] = None
_default_cleanup_pool: Optional[CleanupPool] = None
_pool_lock = threading.Lock()


def get_worker_pool() -> WorkerPool:
    """
    Get the default job-slot pool.

    Sized from settings.max_concurrent_jobs on first access.
    """
    global _default_worker_pool
    with _pool_lock:
        if _default_worker_pool is None:
            _default_worker_pool = WorkerPool(max_jobs=get_settings().max_concurrent_jobs)
        return _default_worker_pool


def get_cleanup_pool() -> CleanupPool:
    """
    Get the default cleanup pool.

    Sized from settings.cleanup_workers on first access.
    """
    global _default_cleanup_pool
    with _pool_lock:
        if _default_cleanup_pool is None:
            _default_cleanup_pool = CleanupPool(max_workers=get_settings().cleanup_workers)
        return _default_cleanup_pool
