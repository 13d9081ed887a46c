"""
Compute backends for kernel evaluation.

Exports:
- ComputeBackend / DeviceBuffer: backend interface and device-memory handle
- NumpyBackend: CPU reference backend (NumPy + SciPy)
- JaxBackend: JAX device backend (GPU/TPU/CPU)
- get_backend / available_backends: backend selection
"""

from __future__ import annotations
from typing import List, Optional, Union

from .base import ComputeBackend, DeviceBuffer
from .numpy_backend import NumpyBackend
from .jax_backend import JaxBackend
from .kernels import gaussian_log_kernel_sum, jax_gaussian_log_kernel_sum, log_normalizer
from ..utils.config import get_config
from ..utils.jax_utils import JAX_AVAILABLE, default_device_kind

BackendLike = Union[None, str, ComputeBackend]


def available_backends() -> List[str]:
    """Names of the backends that can be built in this environment."""
    names = ["numpy"]
    if JAX_AVAILABLE:
        names.append("jax")
    return names


def get_backend(name: BackendLike = None) -> ComputeBackend:
    """
    Build (or pass through) a compute backend.

    Parameters
    ----------
    name : None, str or ComputeBackend
        None uses the configured backend. 'auto' selects 'jax' when JAX is
        installed and a GPU is visible, otherwise 'numpy'. A ComputeBackend
        instance is returned unchanged.
    """
    if isinstance(name, ComputeBackend):
        return name

    if name is None:
        name = get_config().backend
    name = str(name).lower()

    if name == "auto":
        name = "jax" if JAX_AVAILABLE and default_device_kind() != "cpu" else "numpy"

    if name == "numpy":
        return NumpyBackend()
    if name == "jax":
        if not JAX_AVAILABLE:
            raise RuntimeError("Backend 'jax' requested but JAX is not installed")
        return JaxBackend()
    raise ValueError(f"Unknown backend '{name}'; expected one of {['auto'] + available_backends()}")


__all__ = [
    "ComputeBackend",
    "DeviceBuffer",
    "NumpyBackend",
    "JaxBackend",
    "BackendLike",
    "available_backends",
    "get_backend",
    "gaussian_log_kernel_sum",
    "jax_gaussian_log_kernel_sum",
    "log_normalizer",
]
