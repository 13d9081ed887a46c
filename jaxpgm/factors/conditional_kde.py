# jaxpgm/factors/conditional_kde.py
"""
Conditional product KDE: f(x | e) = f(x, e) / f(e).

Both densities are product KDEs sharing the same kernel centers (the rows
complete in the variable and all evidence) and the same per-variable
bandwidths.
"""

from __future__ import annotations
from typing import Any, List, Optional, Sequence
import numpy as np
import pyarrow as pa

from .bandwidth import BandwidthEstimator
from .product_kde import ProductKDE, check_variable_set
from ..backends import BackendLike, ComputeBackend, get_backend
from ..data import Dataset
from ..exceptions import VariableSetError


class ConditionalProductKDE:
    """
    Conditional density of one variable given evidence variables.

    Parameters
    ----------
    variable : str
        Conditioned variable
    evidence : sequence of str
        Conditioning variables; may be empty
    bandwidth_estimator : BandwidthEstimator, optional
        Passed to the joint factor
    backend : None, str or ComputeBackend, optional
        Shared by the joint and marginal factors
    """

    def __init__(
        self,
        variable: str,
        evidence: Sequence[str] = (),
        bandwidth_estimator: Optional[BandwidthEstimator] = None,
        backend: BackendLike = None,
    ):
        if not isinstance(variable, str):
            raise VariableSetError(f"variable must be a string, got {type(variable).__name__}")
        evidence = list(evidence)
        if variable in evidence:
            raise VariableSetError(f"Variable '{variable}' cannot be part of its own evidence")
        check_variable_set([variable] + evidence)

        self._variable = variable
        self._evidence = evidence

        # Resolve once so joint and marginal share device and buffer accounting
        if not isinstance(backend, ComputeBackend):
            backend = get_backend(backend)

        self._joint = ProductKDE([variable] + evidence, bandwidth_estimator, backend)
        self._marginal = ProductKDE(evidence, bandwidth_estimator, backend) if evidence else None

    # ---------- Accessors ----------

    def variable(self) -> str:
        return self._variable

    def evidence(self) -> List[str]:
        return list(self._evidence)

    def variables(self) -> List[str]:
        return [self._variable] + self._evidence

    def fitted(self) -> bool:
        return self._joint.fitted()

    def num_instances(self) -> int:
        return self._joint.num_instances()

    def data_type(self) -> pa.DataType:
        return self._joint.data_type()

    @property
    def joint(self) -> ProductKDE:
        """
        Joint factor over `variables()`. Its bandwidths are the source of
        truth: the marginal copies the evidence bandwidths before every
        evaluation.
        """
        return self._joint

    @property
    def marginal(self) -> Optional[ProductKDE]:
        return self._marginal

    @property
    def bandwidth(self) -> np.ndarray:
        """Bandwidths in `variables()` order."""
        return self._joint.bandwidth

    @bandwidth.setter
    def bandwidth(self, value) -> None:
        self._joint.bandwidth = value
        self._sync_marginal_bandwidth()

    # ---------- Fit / evaluate ----------

    def fit(self, dataset: Any) -> "ConditionalProductKDE":
        data = Dataset.wrap(dataset)
        self._joint.fit(data)
        if self._marginal is not None:
            complete = data.combined_valid_mask(self.variables())
            self._marginal.fit(data.take_rows(complete))
            self._sync_marginal_bandwidth()
        return self

    def _sync_marginal_bandwidth(self) -> None:
        if self._marginal is None or not self._marginal.fitted():
            return
        joint_bw = dict(zip(self._joint.variables(), self._joint.bandwidth))
        self._marginal._assign_bandwidth({v: joint_bw[v] for v in self._evidence})

    def logl(self, dataset: Any) -> np.ndarray:
        data = Dataset.wrap(dataset)
        # bandwidths written through `joint` directly are picked up here
        self._sync_marginal_bandwidth()
        ll = self._joint.logl(data)
        if self._marginal is not None:
            ll = ll - self._marginal.logl(data)
        return ll

    def slogl(self, dataset: Any) -> float:
        ll = self.logl(dataset)
        if not self._joint.has_usable_kernel():
            return float("nan")
        return float(np.nansum(ll, dtype=np.float64))

    def release(self) -> None:
        """Free device buffers of both factors."""
        self._joint.release()
        if self._marginal is not None:
            self._marginal.release()

    def __str__(self) -> str:
        if not self._evidence:
            return f"[CKDE] {self._variable}"
        return f"[CKDE] {self._variable} | {', '.join(self._evidence)}"

    def __repr__(self) -> str:
        return f"ConditionalProductKDE(variable='{self._variable}', evidence={self._evidence})"
