# jaxpgm/utils/logging.py
"""
Timing and memory instrumentation.

Factors wrap `fit` and `logl` in `timeit` when `verbose` is configured.
Reports go to stdout; host memory is read with psutil and device memory
from JAX device statistics.
"""

from __future__ import annotations
from typing import Optional, Dict
import time
from contextlib import contextmanager

import psutil

from .jax_utils import get_devices

_MB = 1024.0 * 1024.0


class Timer:
    """
    Wall-clock timer with an optional host/device memory snapshot.

    Parameters
    ----------
    name : str
        Label printed in the report
    track_memory : bool
        Snapshot `memory_info()` at start and stop
    report : bool
        Print the report when used as a context manager
    """

    def __init__(self, name: str = "Timer", track_memory: bool = False, report: bool = True):
        self.name = name
        self.track_memory = track_memory
        self.report_on_exit = report
        self._t0: Optional[float] = None
        self._t1: Optional[float] = None
        self._mem0: Dict[str, float] = {}
        self._mem1: Dict[str, float] = {}

    def start(self) -> "Timer":
        if self.track_memory:
            self._mem0 = memory_info()
        self._t1 = None
        self._t0 = time.perf_counter()
        return self

    def stop(self) -> float:
        """Stop and return the elapsed seconds."""
        if self._t0 is None:
            raise RuntimeError(f"Timer '{self.name}' was never started")
        self._t1 = time.perf_counter()
        if self.track_memory:
            self._mem1 = memory_info()
        return self.elapsed

    @property
    def elapsed(self) -> float:
        if self._t0 is None:
            return 0.0
        return (self._t1 if self._t1 is not None else time.perf_counter()) - self._t0

    @property
    def memory_delta(self) -> Optional[Dict[str, float]]:
        """Change of every numeric `memory_info` field between start and stop."""
        if not (self._mem0 and self._mem1):
            return None
        return {k: self._mem1[k] - v for k, v in self._mem0.items() if k in self._mem1}

    def report(self) -> None:
        line = f"{self.name}: {self.elapsed:.6f}s"
        delta = self.memory_delta
        if delta:
            line += f" (rss {delta['rss_mb']:+.1f} MB"
            if delta.get("gpu_mb"):
                line += f", device {delta['gpu_mb']:+.1f} MB"
            line += ")"
        print(line)

    def __enter__(self) -> "Timer":
        return self.start()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()
        if self.report_on_exit:
            self.report()


@contextmanager
def timeit(name: str = "Operation", track_memory: bool = False, enabled: bool = True):
    """
    Time the enclosed block and print one report line.

    Yields the Timer, or None when `enabled` is False.

    Example
    -------
    >>> with timeit("ProductKDE.fit"):
    ...     kde.fit(df)
    """
    if not enabled:
        yield None
        return
    with Timer(name, track_memory=track_memory) as timer:
        yield timer


def memory_info() -> Dict[str, float]:
    """
    Process and system memory in MB.

    Keys: 'rss_mb', 'vms_mb', 'available_mb', 'percent_used' and 'gpu_mb'
    (bytes in use on the first GPU reporting statistics, 0 otherwise).
    """
    proc = psutil.Process().memory_info()
    system = psutil.virtual_memory()
    gpu = [s["mb_in_use"] for s in gpu_memory_info().values() if "mb_in_use" in s]
    return {
        "rss_mb": proc.rss / _MB,
        "vms_mb": proc.vms / _MB,
        "available_mb": system.available / _MB,
        "percent_used": float(system.percent),
        "gpu_mb": gpu[0] if gpu else 0.0,
    }


def gpu_memory_info() -> Dict[str, Dict[str, float]]:
    """Per-GPU memory statistics keyed 'gpu_<i>'; empty without GPUs."""
    info = {}
    for i, device in enumerate(get_devices("gpu")):
        try:
            stats = device.memory_stats() or {}
        except Exception as e:
            # not every runtime implements memory_stats
            info[f"gpu_{i}"] = {"error": str(e)}
            continue
        info[f"gpu_{i}"] = {
            "mb_in_use": stats.get("bytes_in_use", 0) / _MB,
            "mb_limit": stats.get("bytes_limit", 0) / _MB,
        }
    return info
