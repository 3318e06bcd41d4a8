"""
Error metrics for DMD reconstructions and forecasts.

This module handles:
- Element-wise relative errors
- Norm-based comparisons (Frobenius distance, norm ratio)
- A combined metrics dict for logging / YAML output
"""

import numpy as np


def relative_error(expected: np.ndarray, actual: np.ndarray) -> np.ndarray:
    """
    Element-wise relative error |actual - expected| / |expected|.

    Where the expected value is exactly zero the absolute error is used.
    """
    expected = np.asarray(expected)
    actual = np.asarray(actual)
    if expected.shape != actual.shape:
        raise ValueError(f"Shape mismatch: {expected.shape} vs {actual.shape}")

    abs_err = np.abs(actual - expected)
    denom = np.abs(expected)
    zero = denom == 0
    return np.where(zero, abs_err, abs_err / np.where(zero, 1.0, denom))


def mean_relative_error(rel_err: np.ndarray) -> float:
    """Average of an element-wise relative error matrix."""
    return float(np.mean(rel_err))


def frobenius_distance(a: np.ndarray, b: np.ndarray) -> float:
    """||a - b||_F."""
    return float(np.linalg.norm(np.asarray(a) - np.asarray(b)))


def norm_ratio(a: np.ndarray, b: np.ndarray) -> float:
    """Larger over smaller Frobenius norm (>= 1, 1 means equal norms)."""
    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    smaller = min(norm_a, norm_b)
    if smaller == 0:
        return 1.0 if norm_a == norm_b else float("inf")
    return float(max(norm_a, norm_b) / smaller)


def approx_equal(a: np.ndarray, b: np.ndarray, tol: float) -> bool:
    """True if the largest element-wise relative error is within tol."""
    return bool(np.max(relative_error(a, b), initial=0.0) <= tol)


def reconstruction_metrics(expected: np.ndarray, actual: np.ndarray) -> dict:
    """
    Compare a reconstruction or forecast against reference data.

    Parameters
    ----------
    expected : np.ndarray, shape (n_features, m)
        Reference snapshots.
    actual : np.ndarray, shape (n_features, m)
        Predicted snapshots.

    Returns
    -------
    dict
        Plain floats: 'rel_frobenius', 'frobenius_distance', 'norm_ratio',
        'mean_relative_error', 'max_relative_error'.
    """
    rel_err = relative_error(expected, actual)
    norm_expected = np.linalg.norm(expected)
    distance = frobenius_distance(expected, actual)
    return {
        'rel_frobenius': distance / norm_expected if norm_expected > 0 else distance,
        'frobenius_distance': distance,
        'norm_ratio': norm_ratio(expected, actual),
        'mean_relative_error': mean_relative_error(rel_err),
        'max_relative_error': float(np.max(rel_err, initial=0.0)),
    }
