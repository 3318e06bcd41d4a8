"""
Snapshot matrix utilities for DMD.

This module handles:
- Validation of snapshot matrices at the boundary of a fit
- Time-delay (Hankel) embedding
- Uniform time grids
"""

import numpy as np


# =============================================================================
# VALIDATION
# =============================================================================

def validate_snapshots(data, delta_t: float) -> np.ndarray:
    """
    Check a snapshot matrix and step size before fitting.

    Parameters
    ----------
    data : array_like, shape (n_features, n_snapshots)
        Snapshots as columns.
    delta_t : float
        Time step between consecutive snapshots.

    Returns
    -------
    np.ndarray
        The snapshots in working precision: float32/complex64 input is kept,
        other real input becomes float64 and other complex input complex128.
    """
    data = np.asarray(data)
    if data.ndim != 2:
        raise ValueError(f"Snapshot matrix must be 2-D, got shape {data.shape}")
    n_features, n_snapshots = data.shape
    if n_features < 1:
        raise ValueError("Snapshot matrix has no rows")
    if n_snapshots < 2:
        raise ValueError(f"At least two snapshots are required, got {n_snapshots}")

    if data.dtype not in (np.float32, np.complex64):
        data = data.astype(np.complex128 if np.iscomplexobj(data) else np.float64)
    if not np.all(np.isfinite(data)):
        raise ValueError("Snapshot matrix contains NaN or infinite values")

    if not np.isfinite(delta_t) or delta_t <= 0:
        raise ValueError(f"delta_t must be positive and finite, got {delta_t}")

    return data


# =============================================================================
# HANKEL EMBEDDING
# =============================================================================

def time_delay(matrix: np.ndarray, delays: int) -> np.ndarray:
    """
    Build a time-delay (Hankel) embedding of a snapshot matrix.

    Column j of the result stacks columns j, j+1, ..., j+delays of the
    input on top of each other.

    Parameters
    ----------
    matrix : np.ndarray, shape (n_features, n_snapshots)
        Snapshot matrix.
    delays : int
        Number of delayed copies to append (0 returns the input).

    Returns
    -------
    np.ndarray, shape (n_features * (delays + 1), n_snapshots - delays)
    """
    matrix = np.asarray(matrix)
    if matrix.ndim != 2:
        raise ValueError(f"Expected a 2-D matrix, got shape {matrix.shape}")
    rows, cols = matrix.shape
    if delays < 0 or delays >= cols:
        raise ValueError(f"delays must lie in [0, {cols - 1}], got {delays}")
    if delays == 0:
        return matrix

    n_cols = cols - delays
    H = np.empty((rows * (delays + 1), n_cols), dtype=matrix.dtype)
    for k in range(delays + 1):
        H[k * rows:(k + 1) * rows, :] = matrix[:, k:k + n_cols]
    return H


# =============================================================================
# TIME GRIDS
# =============================================================================

def uniform_times(t_start: float, delta_t: float, n_steps: int) -> np.ndarray:
    """Times t_start + k * delta_t for k = 0, ..., n_steps - 1."""
    if n_steps < 0:
        raise ValueError(f"n_steps must be non-negative, got {n_steps}")
    return t_start + delta_t * np.arange(n_steps, dtype=float)


def step_size(t_start: float, t_end: float, n_points: int) -> float:
    """Step of a closed uniform grid with n_points points on [t_start, t_end]."""
    if n_points < 2:
        raise ValueError(f"A grid needs at least two points, got {n_points}")
    return (t_end - t_start) / (n_points - 1)
