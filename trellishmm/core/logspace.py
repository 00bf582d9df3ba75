"""
Log-space probability arithmetic.

Probabilities are stored as natural logarithms throughout trellishmm.
LOG_ZERO is the log of probability 0 and acts as the identity for lnsum.
"""

import numpy as np
from numba import jit
from scipy.special import logsumexp

LOG_ZERO = -np.inf


@jit(nopython=True, cache=False)
def lnsum(a, b):
    """
    Add two probabilities given as logarithms: log(exp(a) + exp(b)).

    Stable for arbitrarily small inputs; LOG_ZERO on either side returns
    the other side unchanged.
    """
    if a == LOG_ZERO:
        return b
    if b == LOG_ZERO:
        return a
    if a >= b:
        return a + np.log1p(np.exp(b - a))
    return b + np.log1p(np.exp(a - b))


def log_normalize(acc: np.ndarray, axis: int = -1):
    """
    Normalize log-space accumulators along `axis` into log distributions.

    Returns:
        (normalized, empty) where `empty` flags the slices whose total mass
        was LOG_ZERO. Those slices are left as LOG_ZERO; the caller decides
        how to fill them.
    """
    acc = np.asarray(acc, dtype=np.float64)
    with np.errstate(invalid='ignore', divide='ignore'):
        denom = logsumexp(acc, axis=axis, keepdims=True)
    empty = ~np.isfinite(denom)
    safe_denom = np.where(empty, 0.0, denom)
    normalized = np.where(empty, LOG_ZERO, acc - safe_denom)
    return normalized, np.squeeze(empty, axis=axis)
