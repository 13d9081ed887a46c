# jaxpgm/factors/product_kde.py
"""
Product kernel density estimation factor.

The joint density of d variables is modelled as the product of d
independent univariate Gaussian KDEs, so the log-density of a row is the
sum of per-dimension log-densities. Evaluation runs on a pluggable compute
backend (NumPy on the host or JAX on a device).
"""

from __future__ import annotations
from collections import Counter
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union
import warnings
import numpy as np
import pyarrow as pa

from .bandwidth import BandwidthEstimator, NormalReferenceRule
from ..backends import BackendLike, ComputeBackend, DeviceBuffer, get_backend
from ..data import Dataset, numpy_dtype
from ..exceptions import (
    DataTypeMismatchError,
    DegenerateSampleWarning,
    NotFittedError,
    VariableSetError,
)
from ..utils.config import get_config
from ..utils.logging import timeit


def check_variable_set(variables: Sequence[str]) -> List[str]:
    """Validate a variable set: non-empty, string names, no duplicates."""
    if isinstance(variables, str):
        raise VariableSetError("variables must be a sequence of names, not a single string")
    variables = list(variables)
    if not variables:
        raise VariableSetError("Variable set must not be empty")
    for v in variables:
        if not isinstance(v, str):
            raise VariableSetError(f"Variable names must be strings, got {type(v).__name__}")
    duplicates = sorted(v for v, count in Counter(variables).items() if count > 1)
    if duplicates:
        raise VariableSetError(f"Duplicate variable names: {duplicates}")
    return variables


class ProductKDE:
    """
    Product KDE factor over a set of continuous variables.

    Parameters
    ----------
    variables : sequence of str
        Ordered, unique variable names. The order only affects how
        `variables()` and `bandwidth` are reported; evaluation associates
        columns, bandwidths and centers by name.
    bandwidth_estimator : BandwidthEstimator, optional
        Per-dimension bandwidth rule; NormalReferenceRule() if None
    backend : None, str or ComputeBackend, optional
        Compute backend; resolved with `get_backend` at the first fit if not
        an instance

    Notes
    -----
    Missing data is handled in two passes. The bandwidth of each variable
    is estimated from every non-null value of that variable, while the
    kernel centers are only the rows that are non-null in all variables.
    """

    def __init__(
        self,
        variables: Sequence[str],
        bandwidth_estimator: Optional[BandwidthEstimator] = None,
        backend: BackendLike = None,
    ):
        self._variables = check_variable_set(variables)

        if bandwidth_estimator is None:
            bandwidth_estimator = NormalReferenceRule()
        if not isinstance(bandwidth_estimator, BandwidthEstimator):
            raise TypeError(
                f"bandwidth_estimator must be a BandwidthEstimator, got {type(bandwidth_estimator).__name__}"
            )
        self._estimator = bandwidth_estimator

        self._backend_spec = backend
        self._backend: Optional[ComputeBackend] = backend if isinstance(backend, ComputeBackend) else None

        self._samples: Dict[str, np.ndarray] = {}
        self._bandwidth: Dict[str, float] = {}
        self._buffers: Dict[str, DeviceBuffer] = {}
        self._dtype: Optional[pa.DataType] = None
        self._num_instances = 0
        self._fitted = False

    # ---------- Accessors ----------

    def variables(self) -> List[str]:
        return list(self._variables)

    def num_variables(self) -> int:
        return len(self._variables)

    def fitted(self) -> bool:
        return self._fitted

    def num_instances(self) -> int:
        """Number of kernel centers (jointly complete training rows)."""
        return self._num_instances

    def data_type(self) -> pa.DataType:
        """Arrow float type of the training data."""
        self._check_fitted()
        return self._dtype

    @property
    def bandwidth_estimator(self) -> BandwidthEstimator:
        return self._estimator

    @property
    def backend(self) -> Optional[ComputeBackend]:
        return self._backend

    def training_sample(self, variable: str) -> np.ndarray:
        """Copy of the kernel centers retained for `variable`."""
        self._check_fitted()
        if variable not in self._samples:
            raise ValueError(f"Variable '{variable}' is not part of this factor")
        return self._samples[variable].copy()

    @property
    def bandwidth(self) -> np.ndarray:
        """Kernel standard deviations, one per variable in `variables()` order."""
        self._check_fitted()
        return np.asarray([self._bandwidth[v] for v in self._variables], dtype=np.float64)

    @bandwidth.setter
    def bandwidth(self, value: Union[Sequence[float], Mapping[str, float], np.ndarray]) -> None:
        self._check_fitted()
        if isinstance(value, Mapping):
            unknown = set(value) - set(self._variables)
            if unknown:
                raise ValueError(f"Unknown variables in bandwidth mapping: {sorted(unknown)}")
            new = dict(self._bandwidth)
            new.update({v: float(h) for v, h in value.items()})
        else:
            arr = np.asarray(value, dtype=np.float64).ravel()
            if arr.shape[0] != len(self._variables):
                raise ValueError(
                    f"bandwidth must have {len(self._variables)} values, got {arr.shape[0]}"
                )
            new = {v: float(h) for v, h in zip(self._variables, arr)}

        for v, h in new.items():
            if not np.isfinite(h) or h <= 0:
                raise ValueError(f"bandwidth of '{v}' must be finite and positive, got {h}")
        self._assign_bandwidth(new)

    def _assign_bandwidth(self, values: Mapping[str, float]) -> None:
        # unvalidated: also used to copy estimator output between factors
        self._bandwidth.update({v: float(h) for v, h in values.items()})

    # ---------- Fit ----------

    def fit(self, dataset: Any) -> "ProductKDE":
        """
        Estimate bandwidths and retain kernel centers from `dataset`.

        Parameters
        ----------
        dataset : Dataset, pa.Table, pd.DataFrame or mapping of arrays
            Must contain every variable of the factor; extra columns are
            ignored. All variables must share one float width.

        Returns
        -------
        ProductKDE
            self
        """
        data = Dataset.wrap(dataset)
        config = get_config()

        with timeit(f"{self._name()}.fit", enabled=config.verbose):
            arrow_type = data.common_float_type(self._variables)
            dtype = numpy_dtype(arrow_type)
            columns = {v: data.values(v, dtype) for v in self._variables}

            # Pass 1: each bandwidth uses every non-null value of its own column
            bandwidth = {}
            for v in self._variables:
                mask = data.valid_mask(v)
                bandwidth[v] = float(self._estimator.estimate_univariate(columns[v][mask], v))

            # Pass 2: centers are the rows complete in every variable
            joint = data.combined_valid_mask(self._variables)
            samples = {v: np.ascontiguousarray(columns[v][joint]) for v in self._variables}
            num_instances = int(joint.sum())

            self._release_buffers()
            if self._backend is None:
                self._backend = get_backend(self._backend_spec)

            buffers = {}
            if num_instances > 0:
                buffers = {v: self._backend.upload(samples[v]) for v in self._variables}
            else:
                warnings.warn(
                    f"{self._name()} fitted with no jointly complete rows; evaluations will be NaN",
                    DegenerateSampleWarning,
                    stacklevel=2,
                )
            unusable = sorted(v for v, h in bandwidth.items() if not (np.isfinite(h) and h > 0))
            if num_instances > 0 and unusable:
                warnings.warn(
                    f"{self._name()} has no usable bandwidth for {unusable}; evaluations will be NaN",
                    DegenerateSampleWarning,
                    stacklevel=2,
                )

            self._samples = samples
            self._bandwidth = bandwidth
            self._buffers = buffers
            self._dtype = arrow_type
            self._num_instances = num_instances
            self._fitted = True

        return self

    # ---------- Evaluation ----------

    def logl(self, dataset: Any) -> np.ndarray:
        """
        Log-density of every row of `dataset`.

        Rows with a null in any variable of the factor evaluate to NaN.

        Raises
        ------
        NotFittedError
            If the factor has not been fitted.
        DataTypeMismatchError
            If a column width differs from the training data.
        """
        self._check_fitted()
        data = Dataset.wrap(dataset)
        dtype = self._check_query_types(data)

        with timeit(f"{self._name()}.logl", enabled=get_config().verbose):
            return self._logl(data, dtype)

    def slogl(self, dataset: Any) -> float:
        """
        Sum of `logl` over the rows that are not NaN.

        NaN when the factor has no usable kernel (see `has_usable_kernel`).
        """
        ll = self.logl(dataset)
        if not self.has_usable_kernel():
            return float("nan")
        return float(np.nansum(ll, dtype=np.float64))

    def has_usable_kernel(self) -> bool:
        """
        True when the fitted factor has at least one kernel center and
        every bandwidth is finite and positive. Otherwise every `logl`
        value is NaN.
        """
        self._check_fitted()
        if self._num_instances == 0:
            return False
        return all(np.isfinite(h) and h > 0 for h in self._bandwidth.values())

    def _logl(self, data: Dataset, dtype: np.dtype) -> np.ndarray:
        n_rows = data.num_rows
        if self._num_instances == 0:
            return np.full(n_rows, np.nan, dtype=dtype)
        if n_rows == 0:
            return np.empty(0, dtype=dtype)

        # Sorted order makes the floating-point sum independent of construction order
        contributions = [
            self._backend.dimension_logl(self._buffers[v], self._bandwidth[v], data.values(v, dtype))
            for v in sorted(self._variables)
        ]
        return self._backend.reduce_sum(contributions, dtype)

    # ---------- Resources ----------

    def release(self) -> None:
        """Free device buffers and return the factor to the unfitted state."""
        self._release_buffers()
        self._samples = {}
        self._bandwidth = {}
        self._dtype = None
        self._num_instances = 0
        self._fitted = False

    def _release_buffers(self) -> None:
        if self._backend is not None:
            for buf in self._buffers.values():
                self._backend.release(buf)
        self._buffers = {}

    def __del__(self):
        if getattr(self, "_buffers", None):
            self._release_buffers()

    # ---------- Helpers ----------

    def _check_fitted(self) -> None:
        if not self._fitted:
            raise NotFittedError("KDE factor not fitted.")

    def _check_query_types(self, data: Dataset) -> np.dtype:
        for v in self._variables:
            if data.data_type(v) != self._dtype:
                raise DataTypeMismatchError("Data type of training and test datasets is different.")
        return numpy_dtype(self._dtype)

    def _name(self) -> str:
        return type(self).__name__

    def __str__(self) -> str:
        return f"[{self._name()}] {', '.join(self._variables)}"

    def __repr__(self) -> str:
        state = f"fitted, N={self._num_instances}, dtype={self._dtype}" if self._fitted else "not fitted"
        return f"{self._name()}(variables={self._variables}, {state})"
