"""
Singular Value Hard Threshold (SVHT) rank estimation.

Approximately optimal truncation of a singular-value spectrum after
Gavish & Donoho (2014), "The Optimal Hard Threshold for Singular Values
is 4/sqrt(3)", for the case of an unknown noise level:

    tau* = omega(beta) * median(sigma)

where beta is the aspect ratio of the source matrix and omega(beta) is the
cubic approximation given in the paper.

On top of the plain estimator this module applies two numerical policies:

- The median is taken over the *effective* spectrum, i.e. the trailing run
  of entries that are numerically zero (<= 5 unit roundoffs) is ignored.
- The retained rank is capped so that the retained singular values do not
  cover more than 99.99% of the signal energy.

The functions are generic over the floating-point precision of the
spectrum: float32 spectra are evaluated in single precision with the single
precision unit roundoff, everything else in double precision.

References:
    - Gavish & Donoho (2014). https://arxiv.org/abs/1305.5870
"""

import numpy as np
from typing import Tuple


# Share of the signal energy the retained components may cover
BROAD_SHARE = 1.0 - 1e-4

# Multiple of the unit roundoff below which a singular value is noise floor
TOL_FACTOR = 5.0


# =============================================================================
# PRECISION
# =============================================================================

def _working_dtype(dtype) -> np.dtype:
    """float32 stays float32, everything else is evaluated in float64."""
    if np.dtype(dtype) == np.float32:
        return np.dtype(np.float32)
    return np.dtype(np.float64)


def machine_epsilon(dtype=np.float64) -> float:
    """
    Unit roundoff of the working precision: 2^-53 (double) or 2^-24 (single).
    """
    return float(np.finfo(_working_dtype(dtype)).eps) / 2.0


def tolerance(dtype=np.float64) -> float:
    """Noise-floor tolerance, 5 unit roundoffs."""
    return TOL_FACTOR * machine_epsilon(dtype)


def _as_spectrum(singular_values) -> np.ndarray:
    s = np.asarray(singular_values)
    return s.astype(_working_dtype(s.dtype), copy=False)


# =============================================================================
# BUILDING BLOCKS
# =============================================================================

def compute_omega(rows: int, cols: int) -> float:
    """
    Threshold coefficient omega(beta) for an unknown noise level.

    Parameters
    ----------
    rows, cols : int
        Shape of the matrix the spectrum was computed from.

    Returns
    -------
    float
        0.56 beta^3 - 0.95 beta^2 + 1.82 beta + 1.43, beta = min/max.
    """
    beta = min(rows, cols) / float(max(rows, cols))
    beta_sqr = beta * beta
    beta_cub = beta_sqr * beta
    return 0.56 * beta_cub - 0.95 * beta_sqr + 1.82 * beta + 1.43


def _effective_length(s: np.ndarray, tol) -> int:
    # Length of the prefix left after dropping the trailing noise floor.
    # An all-floor spectrum keeps its full length.
    for i in range(s.size - 1, -1, -1):
        if s[i] > tol:
            return i + 1
    return s.size


def effective_median(singular_values) -> float:
    """
    Median of the spectrum with its trailing noise floor removed.

    Rank-deficient inputs produce a long tail of numerically zero singular
    values which would otherwise drag the median (and with it the cutoff)
    towards zero.
    """
    s = _as_spectrum(singular_values)
    return float(_effective_median(s, s.dtype.type(tolerance(s.dtype))))


def _effective_median(s: np.ndarray, tol):
    n = _effective_length(s, tol)
    if n % 2 != 0:
        return s[(n - 1) // 2]
    mid = n // 2
    return (s[mid - 1] + s[mid]) / s.dtype.type(2)


def signal_energy(singular_values) -> float:
    """Sum of the leading run of singular values above the noise floor."""
    s = _as_spectrum(singular_values)
    return float(_signal_energy(s, s.dtype.type(tolerance(s.dtype))))


def _signal_energy(s: np.ndarray, tol):
    total = s.dtype.type(0)
    for value in s:
        if value <= tol:
            break
        total += value
    return total


def smallest_signal_value(singular_values) -> float:
    """
    Smallest singular value above the noise floor.

    Falls back to the leading value when the whole spectrum is floor.
    """
    s = _as_spectrum(singular_values)
    tol = s.dtype.type(tolerance(s.dtype))
    for i in range(s.size - 1, -1, -1):
        if s[i] > tol:
            return float(s[i])
    return float(s[0])


def _truncation_index(s: np.ndarray, cutoff, tol, early_exit: bool) -> int:
    if early_exit and s[0] < cutoff:
        return 0

    # idx of the last singular value > cutoff
    idx = s.size - 1
    for i in range(s.size):
        if s[i] <= cutoff:
            idx = i - 1
            break

    if idx > 0:
        cap = s.dtype.type(BROAD_SHARE) * _signal_energy(s, tol)
        running = s.dtype.type(0)
        last_idx = 0
        i = 0
        while i <= idx and running < cap:
            running += s[i]
            last_idx = i
            i += 1
        idx = min(idx, last_idx)

    return max(idx, 0) + 1


def _threshold(rows: int, cols: int, singular_values, early_exit: bool) -> int:
    s = _as_spectrum(singular_values)
    eps = s.dtype.type(machine_epsilon(s.dtype))
    if s[0] <= eps:
        return 0

    tol = s.dtype.type(tolerance(s.dtype))
    omega = s.dtype.type(compute_omega(rows, cols))
    cutoff = omega * _effective_median(s, tol)
    return _truncation_index(s, cutoff, tol, early_exit)


# =============================================================================
# PUBLIC ESTIMATORS
# =============================================================================

def threshold(rows: int, cols: int, singular_values) -> int:
    """
    Estimate the optimal truncation rank of a singular-value spectrum.

    Parameters
    ----------
    rows, cols : int
        Shape of the matrix the spectrum was computed from (both >= 1).
    singular_values : array_like
        Descending, non-negative singular values, length min(rows, cols)
        or a prefix of it. float32 input is evaluated in single precision.

    Returns
    -------
    int
        Rank r with 0 <= r <= len(singular_values). r == 0 means the
        spectrum carries no retainable signal, either because the matrix is
        numerically zero or because the leading singular value already
        falls below the cutoff.

    Notes
    -----
    The input is not validated; callers check it once at their boundary.
    The result is unchanged by uniform positive rescaling of the spectrum.
    """
    return _threshold(rows, cols, singular_values, early_exit=True)


def threshold_from_shape(shape: Tuple[int, int], singular_values) -> int:
    """
    SVHT rank for callers holding a matrix shape instead of (rows, cols).

    Unlike :func:`threshold` this variant has no "leading value below the
    cutoff" exit: when every singular value is <= cutoff it still retains
    one component and returns 1 where :func:`threshold` returns 0. The
    numerically-zero check (leading value <= unit roundoff) still gives 0.

    Parameters
    ----------
    shape : tuple of int
        (rows, cols) of the source matrix.
    singular_values : array_like
        Descending, non-negative singular values.

    Returns
    -------
    int
        Rank in [0, len(singular_values)].
    """
    rows, cols = shape
    return _threshold(rows, cols, singular_values, early_exit=False)
