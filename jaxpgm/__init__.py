"""
jaxpgm: kernel density factors for probabilistic graphical models.

Continuous factors used as scoring primitives by structure learning:
- Product KDE factor with pluggable bandwidth rules
- Missing-data-aware fitting (per-variable bandwidths, joint kernel centers)
- float32/float64 numerics with dtype checks on evaluation
- NumPy host backend and JAX device (GPU) backend

Core workflow:
1. Build a factor → ProductKDE(["a", "b"])
2. Fit on a pandas/pyarrow dataset → kde.fit(df)
3. Evaluate → kde.logl(test_df), kde.slogl(test_df)
"""

from __future__ import annotations

# Version info
__version__ = "0.1.0"
__author__ = "jaxpgm Contributors"

from .utils.jax_utils import JAX_AVAILABLE
from .utils.config import configure, get_config, reset_config
from .exceptions import (
    JaxPGMError,
    NotFittedError,
    DataTypeMismatchError,
    VariableSetError,
    DegenerateSampleWarning,
)
from .data import Dataset
from .backends import (
    ComputeBackend,
    NumpyBackend,
    JaxBackend,
    get_backend,
    available_backends,
)
from .factors import (
    BandwidthEstimator,
    NormalReferenceRule,
    ScottsBandwidth,
    CustomBandwidth,
    ProductKDE,
    ConditionalProductKDE,
)
from .utils.diagnostics import check_system_requirements

__all__ = [
    # Version
    "__version__",
    "JAX_AVAILABLE",
    # Configuration
    "configure",
    "get_config",
    "reset_config",
    # Errors
    "JaxPGMError",
    "NotFittedError",
    "DataTypeMismatchError",
    "VariableSetError",
    "DegenerateSampleWarning",
    # Data
    "Dataset",
    # Backends
    "ComputeBackend",
    "NumpyBackend",
    "JaxBackend",
    "get_backend",
    "available_backends",
    # Factors
    "BandwidthEstimator",
    "NormalReferenceRule",
    "ScottsBandwidth",
    "CustomBandwidth",
    "ProductKDE",
    "ConditionalProductKDE",
    # System utilities
    "check_system_requirements",
]
