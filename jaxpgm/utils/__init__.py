# jaxpgm/utils/__init__.py
"""
Utilities for jaxpgm.

Contains:
- jax_utils: JAX guard, device lookup, x64 mode
- config: package-wide backend/device/memory settings
- logging: timers and memory monitoring
- diagnostics: dependency and device availability checks
"""

from .jax_utils import (
    JAX_AVAILABLE,
    get_jax_version,
    get_devices,
    default_device_kind,
    resolve_device,
    x64_enabled,
    enable_x64,
)

from .config import (
    PackageConfig,
    chunk_rows,
    configure,
    get_config,
    reset_config,
)

from .logging import (
    Timer,
    timeit,
    memory_info,
    gpu_memory_info,
)

from .diagnostics import (
    check_system_requirements,
    get_feature_status,
    suggest_installation_commands,
)

__all__ = [
    "JAX_AVAILABLE",
    "get_jax_version",
    "get_devices",
    "default_device_kind",
    "resolve_device",
    "x64_enabled",
    "enable_x64",
    "PackageConfig",
    "chunk_rows",
    "configure",
    "get_config",
    "reset_config",
    "Timer",
    "timeit",
    "memory_info",
    "gpu_memory_info",
    "check_system_requirements",
    "get_feature_status",
    "suggest_installation_commands",
]
