# jaxpgm/factors/bandwidth.py
"""
Bandwidth selection rules.

A bandwidth estimator exposes two explicit entry points: one for a single
variable (returns the kernel standard deviation) and one for several
variables (returns a bandwidth covariance matrix, used by multivariate
factors). Statistics are always computed in float64 regardless of the
width of the sample.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Callable, Optional, Sequence
import numpy as np


# ---------- Helpers ----------

def _univariate_std(sample: np.ndarray):
    x = np.asarray(sample, dtype=np.float64).ravel()
    n = int(x.size)
    if n < 2:
        return n, float("nan")
    return n, float(np.std(x, ddof=1))


def _covariance(sample: np.ndarray):
    x = np.asarray(sample, dtype=np.float64)
    if x.ndim == 1:
        x = x[:, None]
    if x.ndim != 2:
        raise ValueError(f"multivariate sample must be (n, d), got shape {x.shape}")
    n, d = x.shape
    if n < 2:
        return n, d, np.full((d, d), np.nan)
    return n, d, np.atleast_2d(np.cov(x, rowvar=False, ddof=1))


def scott_factor(n: int, d: int = 1) -> float:
    """Scott's factor n^{-1/(d+4)}."""
    return float(n) ** (-1.0 / (d + 4.0))


def normal_reference_factor(n: int, d: int = 1) -> float:
    """Normal reference factor (4/(d+2))^{1/(d+4)} * n^{-1/(d+4)}."""
    return (4.0 / (d + 2.0)) ** (1.0 / (d + 4.0)) * scott_factor(n, d)


# ---------- Estimators ----------

class BandwidthEstimator(ABC):
    """
    Strategy computing kernel bandwidths from a sample.

    Subclasses implement both forms so the same estimator can serve
    product (per-dimension) and multivariate factors.
    """

    @abstractmethod
    def estimate_univariate(self, sample: np.ndarray, variable: str) -> float:
        """
        Bandwidth (standard deviation) for one variable.

        Parameters
        ----------
        sample : np.ndarray
            Non-null observations of `variable`, shape (n,)
        variable : str
            Variable name

        Returns
        -------
        float
        """

    @abstractmethod
    def estimate_multivariate(self, sample: np.ndarray, variables: Sequence[str]) -> np.ndarray:
        """
        Bandwidth covariance matrix for several variables.

        Parameters
        ----------
        sample : np.ndarray
            Jointly complete rows, shape (n, d)
        variables : sequence of str
            Column names of `sample`, in order

        Returns
        -------
        np.ndarray
            Shape (d, d)
        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class NormalReferenceRule(BandwidthEstimator):
    """
    Normal reference rule (Silverman's refinement of Scott's factor).

    Univariate: h = (4/3)^{1/5} n^{-1/5} sigma.
    """

    def estimate_univariate(self, sample, variable):
        n, sigma = _univariate_std(sample)
        if n < 2:
            return sigma
        return normal_reference_factor(n, 1) * sigma

    def estimate_multivariate(self, sample, variables):
        n, d, cov = _covariance(sample)
        if n < 2:
            return cov
        return normal_reference_factor(n, d) ** 2 * cov


class ScottsBandwidth(BandwidthEstimator):
    """Scott's rule: h = n^{-1/5} sigma (covariance scaled by n^{-2/(d+4)})."""

    def estimate_univariate(self, sample, variable):
        n, sigma = _univariate_std(sample)
        if n < 2:
            return sigma
        return scott_factor(n, 1) * sigma

    def estimate_multivariate(self, sample, variables):
        n, d, cov = _covariance(sample)
        if n < 2:
            return cov
        return scott_factor(n, d) ** 2 * cov


class CustomBandwidth(BandwidthEstimator):
    """
    Wrap user callables as a bandwidth estimator.

    Parameters
    ----------
    univariate : callable
        ``univariate(sample, variable) -> float``
    multivariate : callable, optional
        ``multivariate(sample, variables) -> (d, d) array``
    """

    def __init__(
        self,
        univariate: Callable[[np.ndarray, str], float],
        multivariate: Optional[Callable[[np.ndarray, Sequence[str]], np.ndarray]] = None,
    ):
        if not callable(univariate):
            raise ValueError("univariate must be callable")
        if multivariate is not None and not callable(multivariate):
            raise ValueError("multivariate must be callable")
        self._univariate = univariate
        self._multivariate = multivariate

    def estimate_univariate(self, sample, variable):
        return float(self._univariate(sample, variable))

    def estimate_multivariate(self, sample, variables):
        if self._multivariate is None:
            raise NotImplementedError("CustomBandwidth was built without a multivariate estimator")
        out = np.atleast_2d(np.asarray(self._multivariate(sample, variables), dtype=np.float64))
        d = len(variables)
        if out.shape != (d, d):
            raise ValueError(f"multivariate bandwidth must have shape ({d}, {d}), got {out.shape}")
        return out
