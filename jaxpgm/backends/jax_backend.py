# jaxpgm/backends/jax_backend.py
"""
JAX backend: kernel centers live on a JAX device (GPU/TPU/CPU).

Centers are uploaded once per fit with `jax.device_put` and stay resident
until released. Per-dimension kernels are dispatched asynchronously;
`reduce_sum` sums them on device and blocks before copying the result to
the host.
"""

from __future__ import annotations
from typing import Any, Optional, Sequence
import warnings
import numpy as np

from .base import ComputeBackend, DeviceBuffer
from .kernels import jax_gaussian_log_kernel_sum
from ..utils.config import chunk_rows, get_config
from ..utils.jax_utils import JAX_AVAILABLE, resolve_device, x64_enabled, enable_x64

if JAX_AVAILABLE:
    try:
        import jax
        import jax.numpy as jnp
        from jax import jit
    except Exception:
        JAX_AVAILABLE = False


class JaxBackend(ComputeBackend):
    """
    Device backend using JAX.

    Parameters
    ----------
    device : str or jax.Device, optional
        'auto' | 'cpu' | 'gpu' | 'tpu', or a concrete device; config default if None
    device_id : int, optional
        Index among devices of the requested kind
    use_jit : bool, optional
        Compile the kernel with jax.jit; config default if None
    kernel_memory_mb : float, optional
        Scratch budget per chunk; config default if None
    """

    name = "jax"

    def __init__(
        self,
        device: Any = None,
        device_id: Optional[int] = None,
        use_jit: Optional[bool] = None,
        kernel_memory_mb: Optional[float] = None,
    ):
        if not JAX_AVAILABLE:
            raise RuntimeError("JaxBackend requires JAX; install with 'pip install jax jaxlib'")
        super().__init__()
        config = get_config()

        if device is None or isinstance(device, str):
            kind = device if device is not None else config.device
            index = device_id if device_id is not None else config.device_id
            self._device = resolve_device(kind, index)
        else:
            self._device = device

        self.use_jit = config.use_jax_jit if use_jit is None else bool(use_jit)
        self.kernel_memory_mb = float(kernel_memory_mb if kernel_memory_mb is not None else config.kernel_memory_mb)
        if self.kernel_memory_mb <= 0:
            raise ValueError("kernel_memory_mb must be positive")

        self._kernel = jit(jax_gaussian_log_kernel_sum) if self.use_jit else jax_gaussian_log_kernel_sum

    @property
    def device(self) -> str:
        return f"{self._device.platform}:{self._device.id}"

    @property
    def jax_device(self):
        return self._device

    # ---------- Memory ----------

    def _ensure_dtype_supported(self, dtype: np.dtype) -> None:
        if np.dtype(dtype) == np.float64 and not x64_enabled():
            warnings.warn("Enabling jax_enable_x64 to keep float64 data in double precision")
            enable_x64(True)

    def _put(self, host: np.ndarray):
        self._ensure_dtype_supported(host.dtype)
        return jax.device_put(host, self._device)

    def _free(self, data: Any) -> None:
        data.delete()

    def chunk_size(self, n_centers: int, itemsize: int) -> int:
        return chunk_rows(n_centers, itemsize, self.kernel_memory_mb)

    # ---------- Kernels ----------

    def dimension_logl(self, centers: DeviceBuffer, bandwidth: float, queries: np.ndarray):
        self._check_buffer(centers)
        dtype = np.dtype(centers.dtype)
        q = jax.device_put(np.asarray(queries, dtype=dtype), self._device)
        h = jnp.asarray(bandwidth, dtype=dtype)

        m = int(q.shape[0])
        step = self.chunk_size(centers.size, dtype.itemsize)
        if m <= step:
            return self._kernel(q, centers.data, h)

        out = [self._kernel(q[s:min(s + step, m)], centers.data, h) for s in range(0, m, step)]
        return jnp.concatenate(out, axis=0)

    def reduce_sum(self, contributions: Sequence[Any], dtype: np.dtype) -> np.ndarray:
        if not contributions:
            raise ValueError("reduce_sum needs at least one contribution")
        total = contributions[0]
        for c in contributions[1:]:
            total = total + c
        total = total.block_until_ready()
        return np.asarray(total, dtype=dtype)
