# jaxpgm/backends/kernels.py
"""
Gaussian log-kernel routines for product KDE evaluation.

Each routine computes one dimension's contribution to the log-density of
a batch of query values:

    log( (1/N) sum_j exp(-(x - c_j)^2 / (2 h^2)) ) - log(sqrt(2 pi) h)

The inner sum is a max-subtracted log-sum-exp. NaN queries propagate to
NaN outputs.
"""

from __future__ import annotations
import math
import numpy as np
from scipy.special import logsumexp as _np_logsumexp

from ..utils.jax_utils import JAX_AVAILABLE

if JAX_AVAILABLE:
    try:
        import jax.numpy as jnp
        from jax.scipy.special import logsumexp as _jax_logsumexp
    except Exception:
        JAX_AVAILABLE = False


LOG_SQRT_2PI = 0.5 * math.log(2.0 * math.pi)


def log_normalizer(n_centers: int, bandwidth: float) -> float:
    """
    log(N) + log(sqrt(2 pi) h): the per-dimension constant subtracted from the log-sum-exp.

    A zero bandwidth gives -inf and a NaN bandwidth gives NaN.
    """
    with np.errstate(divide="ignore", invalid="ignore"):
        return float(math.log(n_centers) + np.log(np.float64(bandwidth)) + LOG_SQRT_2PI)


# ---------- NumPy / SciPy ----------

def gaussian_log_kernel_sum(queries: np.ndarray, centers: np.ndarray, bandwidth: float) -> np.ndarray:
    """
    One dimension's log-density for each query value (NumPy).

    Parameters
    ----------
    queries : (M,)
        Query values of one variable
    centers : (N,)
        Kernel centers of the same variable, N >= 1
    bandwidth : float
        Kernel standard deviation

    Returns
    -------
    (M,)
        Log-density contributions, same dtype as `queries`
    """
    dtype = queries.dtype
    h = dtype.type(bandwidth)
    # h == 0 or NaN propagates through IEEE arithmetic to NaN
    with np.errstate(divide="ignore", invalid="ignore"):
        z = (queries[:, None] - centers[None, :]) / h
        lse = _np_logsumexp(dtype.type(-0.5) * z * z, axis=1)
        out = lse - dtype.type(log_normalizer(centers.shape[0], bandwidth))
    return out.astype(dtype, copy=False)


# ---------- JAX ----------

def jax_gaussian_log_kernel_sum(queries, centers, bandwidth):
    """
    One dimension's log-density for each query value (JAX, jit-compatible).

    `bandwidth` may be a traced scalar; the number of centers is taken
    from the static shape of `centers`.
    """
    if not JAX_AVAILABLE:
        raise RuntimeError("JAX is not installed")
    dtype = queries.dtype
    h = jnp.asarray(bandwidth, dtype=dtype)
    z = (queries[:, None] - centers[None, :]) / h
    lse = _jax_logsumexp(-0.5 * z * z, axis=1)
    n = centers.shape[0]
    return (lse - jnp.log(jnp.asarray(n, dtype=dtype)) - jnp.log(h) - LOG_SQRT_2PI).astype(dtype)
