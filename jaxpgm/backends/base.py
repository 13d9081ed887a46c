# jaxpgm/backends/base.py
"""
Compute backend interface.

A backend owns device memory for kernel centers and runs the
per-dimension Gaussian log-kernel reduction on its device. Factors call
`dimension_logl` once per variable (fan-out) and `reduce_sum` once per
evaluation (the barrier that sums dimensions and returns host memory).
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence
import itertools
import numpy as np

_buffer_ids = itertools.count()


@dataclass
class DeviceBuffer:
    """
    Handle to a 1-D array uploaded to a backend.

    Attributes
    ----------
    data : Any
        Backend-native array (NumPy array or JAX device array); None once released
    dtype : np.dtype
        Element type of the uploaded values
    size : int
        Number of elements
    backend : str
        Name of the owning backend
    """
    data: Any
    dtype: np.dtype
    size: int
    backend: str
    buffer_id: int = field(default_factory=lambda: next(_buffer_ids))

    @property
    def released(self) -> bool:
        return self.data is None

    @property
    def nbytes(self) -> int:
        return int(self.size) * np.dtype(self.dtype).itemsize


class ComputeBackend(ABC):
    """Abstract compute backend."""

    name: str = "abstract"

    def __init__(self):
        self._live = {}

    # ---------- Memory ----------

    @property
    def device(self) -> str:
        """Device tag, e.g. 'cpu' or 'gpu:0'."""
        return "cpu"

    @property
    def live_buffers(self) -> int:
        """Number of buffers uploaded and not yet released."""
        return len(self._live)

    @property
    def live_bytes(self) -> int:
        return sum(buf.nbytes for buf in self._live.values())

    def upload(self, values: np.ndarray) -> DeviceBuffer:
        """Copy a 1-D host array to the device."""
        host = np.ascontiguousarray(values)
        if host.ndim != 1:
            raise ValueError(f"upload expects a 1-D array, got shape {host.shape}")
        buf = DeviceBuffer(
            data=self._put(host),
            dtype=host.dtype,
            size=int(host.shape[0]),
            backend=self.name,
        )
        self._live[buf.buffer_id] = buf
        return buf

    def release(self, buffer: Optional[DeviceBuffer]) -> None:
        """Free a buffer. Releasing twice, or releasing None, is a no-op."""
        if buffer is None or buffer.released:
            return
        if buffer.backend != self.name:
            raise ValueError(f"buffer belongs to backend '{buffer.backend}', not '{self.name}'")
        self._free(buffer.data)
        buffer.data = None
        self._live.pop(buffer.buffer_id, None)

    def _check_buffer(self, buffer: DeviceBuffer) -> None:
        if buffer.released:
            raise ValueError("buffer has been released")
        if buffer.backend != self.name:
            raise ValueError(f"buffer belongs to backend '{buffer.backend}', not '{self.name}'")

    @abstractmethod
    def _put(self, host: np.ndarray) -> Any:
        """Backend-specific transfer of a host array."""

    def _free(self, data: Any) -> None:
        """Backend-specific deallocation."""

    # ---------- Kernels ----------

    @abstractmethod
    def dimension_logl(self, centers: DeviceBuffer, bandwidth: float, queries: np.ndarray) -> Any:
        """
        One dimension's log-density contribution for every query value.

        Parameters
        ----------
        centers : DeviceBuffer
            Kernel centers of one variable, at least one element
        bandwidth : float
            Kernel standard deviation of that variable
        queries : (M,) np.ndarray
            Query values, same dtype as `centers`; NaN marks a missing value

        Returns
        -------
        Backend-native (M,) array
        """

    @abstractmethod
    def reduce_sum(self, contributions: Sequence[Any], dtype: np.dtype) -> np.ndarray:
        """
        Sum per-dimension contributions row-wise and return a host array.

        Blocks until every contribution is computed.
        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}(device='{self.device}', live_buffers={self.live_buffers})"
