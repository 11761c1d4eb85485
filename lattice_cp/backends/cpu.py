"""
CPU Backends: in-process loop, worker processes, worker threads

Parallelization strategy:
- One task per energy group (groups are data-independent)
- n_workers == 1 runs the tasks in order in the calling process
- CPUBackend dispatches to a multiprocessing Pool
- ThreadBackend dispatches to a thread pool; the numba kernels are
  compiled with nogil=True so threads run concurrently
- Pool.map / Executor.map return results in task order, so the result
  tensors are bit-identical to the sequential path
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from multiprocessing import Pool, cpu_count
from typing import Optional

from .base import GroupBackend

logger = logging.getLogger(__name__)


class CPUBackend(GroupBackend):
    """Process-parallel group backend.

    Parameters
    ----------
    n_workers : int or None
        Number of worker processes.  ``None`` -> ``os.cpu_count()``.
        With one worker no Pool is created.
    """

    def __init__(self, n_workers: Optional[int] = None):
        if n_workers is None:
            n_workers = cpu_count() or 1
        self._n_workers = max(1, int(n_workers))

    @property
    def n_workers(self) -> int:
        return self._n_workers

    def map_groups(self, func, tasks):
        tasks = list(tasks)
        n_proc = min(self._n_workers, len(tasks))
        if n_proc <= 1:
            return [func(task) for task in tasks]

        logger.debug("Dispatching %d group tasks to %d processes", len(tasks), n_proc)
        with Pool(processes=n_proc) as pool:
            return pool.map(func, tasks)

    def get_name(self) -> str:
        n = self._n_workers
        if n == 1:
            return "CPU (serial)"
        return f"CPU ({n} processes)"

    def is_available(self) -> bool:
        return True  # CPU is always available


class ThreadBackend(GroupBackend):
    """Thread-parallel group backend (shared memory, no pickling)."""

    def __init__(self, n_workers: Optional[int] = None):
        if n_workers is None:
            n_workers = cpu_count() or 1
        self._n_workers = max(1, int(n_workers))

    @property
    def n_workers(self) -> int:
        return self._n_workers

    def map_groups(self, func, tasks):
        tasks = list(tasks)
        n_threads = min(self._n_workers, len(tasks))
        if n_threads <= 1:
            return [func(task) for task in tasks]

        logger.debug("Dispatching %d group tasks to %d threads", len(tasks), n_threads)
        with ThreadPoolExecutor(max_workers=n_threads) as executor:
            return list(executor.map(func, tasks))

    def get_name(self) -> str:
        n = self._n_workers
        return f"Threads ({n} worker{'s' if n > 1 else ''})"

    def is_available(self) -> bool:
        return True
