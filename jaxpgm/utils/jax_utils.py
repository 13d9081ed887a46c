# jaxpgm/utils/jax_utils.py
"""
JAX availability guard and device helpers.

JAX is imported once here; every other module checks `JAX_AVAILABLE`
instead of importing JAX directly at module scope.
"""

from __future__ import annotations
from typing import Optional
import warnings

import numpy as np

try:
    import jax
    JAX_AVAILABLE = True
except Exception:
    JAX_AVAILABLE = False
    jax = None  # type: ignore


def get_jax_version() -> Optional[str]:
    """JAX version string, or None when JAX cannot be imported."""
    return getattr(jax, "__version__", None) if JAX_AVAILABLE else None


def get_devices(kind: Optional[str] = None) -> list:
    """
    Devices of one platform ('cpu' | 'gpu' | 'tpu'), or all devices.

    Returns [] without JAX or when the platform has no backend.
    """
    if not JAX_AVAILABLE:
        return []
    try:
        return list(jax.devices(kind)) if kind else list(jax.devices())
    except RuntimeError:
        # raised for platforms that were not initialised
        return []


def default_device_kind() -> str:
    """'gpu' if a GPU is visible, else 'tpu' if a TPU is, else 'cpu'."""
    for kind in ("gpu", "tpu"):
        if get_devices(kind):
            return kind
    return "cpu"


def resolve_device(kind: Optional[str] = None, device_id: Optional[int] = None):
    """
    Concrete JAX device for a kind and index.

    Parameters
    ----------
    kind : str, optional
        'auto' | 'cpu' | 'gpu' | 'tpu'; 'auto' if None
    device_id : int, optional
        Index among the devices of that kind; 0 if None

    A missing kind falls back to CPU with a warning. An index past the
    number of devices raises ValueError.
    """
    if not JAX_AVAILABLE:
        raise RuntimeError("JAX is not installed; no devices can be resolved")

    kind = (kind or "auto").lower()
    if kind == "auto":
        kind = default_device_kind()

    devices = get_devices(kind)
    if not devices:
        warnings.warn(f"No '{kind}' device available; kernel centers will be placed on cpu")
        kind, devices = "cpu", get_devices("cpu")

    index = 0 if device_id is None else int(device_id)
    if not 0 <= index < len(devices):
        raise ValueError(f"device_id {index} out of range for {len(devices)} '{kind}' device(s)")
    return devices[index]


def x64_enabled() -> bool:
    """True when JAX keeps float64 arrays in double precision."""
    if not JAX_AVAILABLE:
        return False
    return jax.dtypes.canonicalize_dtype(np.float64) == np.float64


def enable_x64(enable: bool = True) -> None:
    """Switch JAX 64-bit mode; float64 centers are downcast while it is off."""
    if JAX_AVAILABLE:
        jax.config.update("jax_enable_x64", bool(enable))
