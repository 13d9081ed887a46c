# jaxpgm/backends/numpy_backend.py
"""
Host (CPU) reference backend built on NumPy and SciPy.

Query rows are evaluated in chunks so a single (rows x centers) matrix
stays within the configured kernel memory budget. With more than one
thread, each dimension is submitted to a thread pool and `reduce_sum`
waits on the futures.
"""

from __future__ import annotations
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Optional, Sequence
import numpy as np

from .base import ComputeBackend, DeviceBuffer
from .kernels import gaussian_log_kernel_sum
from ..utils.config import chunk_rows, get_config


class NumpyBackend(ComputeBackend):
    """
    CPU backend.

    Parameters
    ----------
    num_threads : int, optional
        Threads used to evaluate dimensions concurrently; config default if None
    kernel_memory_mb : float, optional
        Scratch budget per chunk; config default if None
    """

    name = "numpy"

    def __init__(self, num_threads: Optional[int] = None, kernel_memory_mb: Optional[float] = None):
        super().__init__()
        config = get_config()
        self.num_threads = int(num_threads if num_threads is not None else config.num_threads)
        if self.num_threads < 1:
            raise ValueError("num_threads must be >= 1")
        self.kernel_memory_mb = float(kernel_memory_mb if kernel_memory_mb is not None else config.kernel_memory_mb)
        if self.kernel_memory_mb <= 0:
            raise ValueError("kernel_memory_mb must be positive")
        self._pool: Optional[ThreadPoolExecutor] = None

    def _put(self, host: np.ndarray) -> np.ndarray:
        return host.copy()

    def chunk_size(self, n_centers: int, itemsize: int) -> int:
        return chunk_rows(n_centers, itemsize, self.kernel_memory_mb)

    def _evaluate(self, centers: np.ndarray, bandwidth: float, queries: np.ndarray) -> np.ndarray:
        m = queries.shape[0]
        out = np.empty(m, dtype=queries.dtype)
        step = self.chunk_size(centers.shape[0], queries.dtype.itemsize)
        for s in range(0, m, step):
            e = min(s + step, m)
            out[s:e] = gaussian_log_kernel_sum(queries[s:e], centers, bandwidth)
        return out

    def dimension_logl(self, centers: DeviceBuffer, bandwidth: float, queries: np.ndarray) -> Any:
        self._check_buffer(centers)
        queries = np.asarray(queries, dtype=centers.dtype)
        if self.num_threads > 1:
            if self._pool is None:
                self._pool = ThreadPoolExecutor(max_workers=self.num_threads, thread_name_prefix="jaxpgm")
            return self._pool.submit(self._evaluate, centers.data, float(bandwidth), queries)
        return self._evaluate(centers.data, float(bandwidth), queries)

    def reduce_sum(self, contributions: Sequence[Any], dtype: np.dtype) -> np.ndarray:
        arrays = [c.result() if isinstance(c, Future) else c for c in contributions]
        if not arrays:
            raise ValueError("reduce_sum needs at least one contribution")
        total = np.zeros_like(arrays[0], dtype=dtype)
        for arr in arrays:
            total += arr
        return total

    def shutdown(self, wait: bool = True) -> None:
        """Stop the worker pool, if one was started. A later evaluation starts a new one."""
        pool, self._pool = self._pool, None
        if pool is not None:
            pool.shutdown(wait=wait)

    def __enter__(self) -> "NumpyBackend":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.shutdown()

    def __del__(self):
        if getattr(self, "_pool", None) is not None:
            self.shutdown(wait=False)
