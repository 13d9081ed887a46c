# jaxpgm/utils/config.py
"""
Global package configuration.

One `PackageConfig` instance holds the defaults that backends and factors
read when they are built: which backend to use, where device buffers
live, how much scratch memory one kernel chunk may take and how many host
threads evaluate dimensions concurrently.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional
import warnings
import psutil

from .jax_utils import JAX_AVAILABLE, get_devices, enable_x64

if JAX_AVAILABLE:
    try:
        import jax
    except Exception:
        JAX_AVAILABLE = False


BACKENDS = ("auto", "numpy", "jax")
DEVICES = ("auto", "cpu", "gpu", "tpu")


def chunk_rows(n_centers: int, itemsize: int, memory_mb: float) -> int:
    """
    Query rows per kernel chunk.

    A chunk materializes a (rows, n_centers) matrix plus one temporary of
    the same size; at least one row is always returned.
    """
    bytes_per_row = 2 * max(int(n_centers), 1) * int(itemsize)
    return max(int(memory_mb * 1024 * 1024) // bytes_per_row, 1)


@dataclass
class PackageConfig:
    """
    Global configuration for jaxpgm.

    Attributes
    ----------
    backend : str
        'auto' | 'numpy' | 'jax'
    device : str
        'auto' | 'cpu' | 'gpu' | 'tpu'; used by the jax backend
    device_id : int, optional
        Index among devices of `device`
    kernel_memory_mb : float
        Scratch budget of one (queries x centers) chunk
    num_threads : int
        Host threads of the numpy backend
    use_jax_jit : bool
        Compile kernels with jax.jit
    enable_x64 : bool
        Turn on JAX 64-bit mode so float64 data stays float64 on device
    verbose : bool
        Print fit/evaluation timings
    """
    backend: str = "auto"
    device: str = "auto"
    device_id: Optional[int] = None
    kernel_memory_mb: float = 256.0
    num_threads: int = 1
    use_jax_jit: bool = True
    enable_x64: bool = True
    verbose: bool = False

    _system_memory_gb: float = field(init=False, default=0.0)
    _device_kinds: List[str] = field(init=False, default_factory=list)

    def __post_init__(self):
        self._probe_system()
        self._validate_config()
        self._apply_jax_config()

    def _probe_system(self):
        try:
            self._system_memory_gb = psutil.virtual_memory().total / 1024 ** 3
        except Exception:
            self._system_memory_gb = 8.0  # Conservative default
        self._device_kinds = ["cpu"] + [k for k in ("gpu", "tpu") if get_devices(k)]

    def _validate_config(self):
        """Check values; unavailable backends/devices fall back with a warning."""
        if self.backend not in BACKENDS:
            raise ValueError(f"backend must be one of {BACKENDS}, got '{self.backend}'")
        if self.backend == "jax" and not JAX_AVAILABLE:
            warnings.warn("backend 'jax' requested but JAX is not installed; using 'numpy'")
            self.backend = "numpy"

        if self.device not in DEVICES:
            raise ValueError(f"device must be one of {DEVICES}, got '{self.device}'")
        if self.device != "auto" and self.device not in self._device_kinds:
            warnings.warn(f"Device '{self.device}' not available, using 'cpu'")
            self.device = "cpu"

        if not self.kernel_memory_mb > 0:
            raise ValueError("kernel_memory_mb must be positive")
        if self.kernel_memory_mb > self._system_memory_gb * 1024 * 0.5:
            warnings.warn(
                f"kernel_memory_mb {self.kernel_memory_mb:.0f}MB exceeds 50% of "
                f"system memory ({self._system_memory_gb:.1f}GB)"
            )

        if int(self.num_threads) < 1:
            raise ValueError("num_threads must be >= 1")
        self.num_threads = int(self.num_threads)

    def _apply_jax_config(self):
        if not JAX_AVAILABLE:
            return
        try:
            if self.enable_x64:
                enable_x64(True)
            if self.device in ("gpu", "tpu"):
                devices = get_devices(self.device)
                jax.config.update("jax_default_device", devices[self.device_id or 0])
        except Exception as e:
            warnings.warn(f"JAX configuration failed: {e}")

    # ---------- Configuration methods ----------

    def set_device(self, device: str, device_id: Optional[int] = None) -> None:
        """Select the device kind (and index) used by new jax backends."""
        self.device = device
        self.device_id = device_id
        self._validate_config()
        self._apply_jax_config()

    # ---------- Utility methods ----------

    def get_recommended_chunk_size(self, n_centers: int, itemsize: int = 8) -> int:
        """Query rows per kernel chunk under `kernel_memory_mb`."""
        return chunk_rows(n_centers, itemsize, self.kernel_memory_mb)

    def get_system_info(self) -> Dict[str, Any]:
        return {
            "system_memory_gb": self._system_memory_gb,
            "device_kinds": list(self._device_kinds),
            "jax_available": JAX_AVAILABLE,
            "current_config": {
                "backend": self.backend,
                "device": self.device,
                "device_id": self.device_id,
                "kernel_memory_mb": self.kernel_memory_mb,
                "num_threads": self.num_threads,
                "use_jax_jit": self.use_jax_jit,
                "enable_x64": self.enable_x64,
            },
        }


# Global configuration instance
_global_config = PackageConfig()


def get_config() -> PackageConfig:
    """Get global package configuration."""
    return _global_config


def configure(**kwargs) -> None:
    """
    Update global settings.

    Unknown or private names are ignored with a warning. Values are
    validated after all updates are applied.

    Example
    -------
    >>> configure(backend="jax", device="gpu", kernel_memory_mb=512)
    """
    for key, value in kwargs.items():
        if key.startswith("_") or not hasattr(_global_config, key):
            warnings.warn(f"Unknown configuration parameter: {key}")
            continue
        setattr(_global_config, key, value)

    _global_config._validate_config()
    _global_config._apply_jax_config()


def reset_config() -> None:
    """Reset configuration to defaults."""
    global _global_config
    _global_config = PackageConfig()
