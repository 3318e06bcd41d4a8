"""
Tests for SVHT rank estimation.

Verifies:
  1. Degenerate spectra (all zero, leading value below unit roundoff) give rank 0.
  2. The two call shapes agree except on the "leading value below cutoff" case.
  3. A sharp drop into a noise floor keeps exactly the signal components.
  4. The 99.99% energy cap trims components that barely clear the cutoff.
  5. Bounds, energy-cap and scale-invariance properties on random spectra.
  6. Single precision uses its own unit roundoff.

Usage:
    pytest tests/test_svht.py -v
"""

import numpy as np
import numpy.testing as npt
import pytest

from exactdmd.svht import (
    BROAD_SHARE,
    compute_omega,
    effective_median,
    machine_epsilon,
    signal_energy,
    smallest_signal_value,
    threshold,
    threshold_from_shape,
    tolerance,
)


def _random_spectrum(rng, n, zero_tail):
    s = np.sort(rng.exponential(size=n))[::-1].copy()
    if zero_tail:
        s[n - zero_tail:] = 0.0
    return s


# ═══════════════════════════════════════════════════════════════════════════
# Building blocks
# ═══════════════════════════════════════════════════════════════════════════

def test_machine_constants() -> None:
    assert machine_epsilon(np.float64) == 2.0 ** -53
    assert machine_epsilon(np.float32) == 2.0 ** -24
    assert tolerance(np.float64) == 5.0 * 2.0 ** -53
    assert tolerance(np.float32) == 5.0 * 2.0 ** -24
    # anything that is not float32 is evaluated in double precision
    assert machine_epsilon(np.int64) == 2.0 ** -53


def test_compute_omega() -> None:
    npt.assert_allclose(compute_omega(6, 6), 2.86, atol=1e-12)
    assert compute_omega(10, 200) == compute_omega(200, 10)
    # beta -> 0 approaches the constant term
    npt.assert_allclose(compute_omega(1, 10 ** 9), 1.43, atol=1e-8)


def test_effective_median_ignores_trailing_floor() -> None:
    npt.assert_allclose(effective_median([10.0, 9.0, 8.0, 0.0, 0.0, 0.0]), 9.0)
    npt.assert_allclose(effective_median([4.0, 3.0, 2.0, 1.0, 0.0]), 2.5)
    # an interior floor value does not shorten the spectrum: only the trailing run counts
    npt.assert_allclose(effective_median([4.0, 3.0, 1e-20, 1e-20, 1.0]), 1e-20)
    # all-floor spectrum falls back to the full length
    assert effective_median([0.0, 0.0, 0.0]) == 0.0


def test_signal_energy_stops_at_first_floor_value() -> None:
    npt.assert_allclose(signal_energy([3.0, 2.0, 0.0, 1.0]), 5.0)
    npt.assert_allclose(signal_energy([3.0, 2.0, 1.0]), 6.0)
    assert signal_energy([0.0, 0.0]) == 0.0


def test_smallest_signal_value() -> None:
    assert smallest_signal_value([3.0, 2.0, 1e-20]) == 2.0
    assert smallest_signal_value([3.0, 2.0, 1.0]) == 1.0
    assert smallest_signal_value([1e-20, 0.0]) == 1e-20


# ═══════════════════════════════════════════════════════════════════════════
# Degenerate spectra
# ═══════════════════════════════════════════════════════════════════════════

@pytest.mark.parametrize("n", [1, 2, 5, 64])
def test_zero_spectrum_gives_rank_zero(n) -> None:
    s = np.zeros(n)
    assert threshold(n, n + 3, s) == 0
    assert threshold_from_shape((n, n + 3), s) == 0


def test_leading_value_below_unit_roundoff_gives_rank_zero() -> None:
    s = np.array([1e-17, 1e-18, 0.0])
    assert threshold(3, 3, s) == 0
    assert threshold_from_shape((3, 3), s) == 0


def test_single_precision_uses_its_own_roundoff() -> None:
    s64 = np.array([4e-8, 0.0, 0.0, 0.0])
    s32 = s64.astype(np.float32)
    # 4e-8 is informative in double precision but below 2^-24
    assert threshold_from_shape((4, 4), s64) == 1
    assert threshold_from_shape((4, 4), s32) == 0


# ═══════════════════════════════════════════════════════════════════════════
# Call shapes
# ═══════════════════════════════════════════════════════════════════════════

def test_flat_spectrum_call_shapes_diverge() -> None:
    s = np.full(5, 5.0)
    # median 5, cutoff 2.86 * 5 = 14.3 > 5
    assert compute_omega(5, 5) * effective_median(s) > s[0]
    assert threshold(5, 5, s) == 0
    # the shape variant has no early exit and keeps one component
    assert threshold_from_shape((5, 5), s) == 1


def test_short_spectrum_median_dominated_by_signal() -> None:
    # With only three small trailing values the median sits between signal
    # values, the cutoff (~11.4) exceeds the leading value and nothing is kept.
    s = np.array([10.0, 9.0, 8.0, 0.001, 0.0009, 0.0008])
    assert threshold(6, 6, s) == 0
    assert threshold_from_shape((6, 6), s) == 1

    s_zero_tail = np.array([10.0, 9.0, 8.0, 0.0, 0.0, 0.0])
    assert threshold(6, 6, s_zero_tail) == 0


def test_sharp_drop_into_noise_floor() -> None:
    s = np.concatenate([[10.0, 9.0, 8.0], np.linspace(0.012, 0.008, 17)])
    assert threshold(20, 20, s) == 3
    assert threshold_from_shape((20, 20), s) == 3
    assert threshold(20, 20, s.astype(np.float32)) == 3


def test_retained_values_exceed_cutoff() -> None:
    # Wide matrix (beta ~ 0.02), slowly decaying spectrum
    s =np.array([5.0, 4.0, 3.0, 2.0, 1.0, 0.1, 0.05, 0.04, 0.03])
    r = threshold(9, 500, s)
    assert 1 <= r <= s.size
    cutoff = compute_omega(9, 500) * effective_median(s)
    assert np.all(s[:r] > cutoff)


# ═══════════════════════════════════════════════════════════════════════════
# Energy cap
# ═══════════════════════════════════════════════════════════════════════════

def test_energy_cap_trims_component_above_cutoff() -> None:
    s = np.concatenate([[1000.0, 0.05], np.full(7, 0.001)])
    cutoff = compute_omega(9, 9) * effective_median(s)
    # s[1] clears the statistical cutoff ...
    assert s[1] > cutoff
    assert s[2] <= cutoff
    # ... but s[0] alone already covers 99.99% of the signal energy
    assert s[0] >= BROAD_SHARE * signal_energy(s)
    assert threshold(9, 9, s) == 1
    assert threshold_from_shape((9, 9), s) == 1


# ═══════════════════════════════════════════════════════════════════════════
# Properties on random spectra
# ═══════════════════════════════════════════════════════════════════════════

def test_random_spectra_properties() -> None:
    rng = np.random.default_rng(7)
    for _ in range(300):
        n = int(rng.integers(1, 60))
        zero_tail = int(rng.integers(0, n)) if rng.random() < 0.5 else 0
        s = _random_spectrum(rng, n, zero_tail)
        rows = n
        cols = n + int(rng.integers(0, 200))
        if rng.random() < 0.5:
            rows, cols = cols, rows

        for rank in (threshold(rows, cols, s), threshold_from_shape((rows, cols), s)):
            assert 0 <= rank <= n

            if 1 < rank < n:
                total = signal_energy(s)
                cap = BROAD_SHARE * total
                assert s[:rank].sum() <= cap + s[rank - 1] + 1e-12 * total


def test_scale_invariance() -> None:
    rng = np.random.default_rng(11)
    for _ in range(100):
        n = int(rng.integers(2, 40))
        s = _random_spectrum(rng, n, int(rng.integers(0, n // 2 + 1)))
        rows, cols = n, n + int(rng.integers(0, 50))
        r = threshold(rows, cols, s)
        r_shape = threshold_from_shape((rows, cols), s)
        for k in (2.0 ** -10, 0.5, 8.0, 2.0 ** 7):
            assert threshold(rows, cols, k * s) == r
            assert threshold_from_shape((rows, cols), k * s) == r_shape


def test_scale_invariance_well_separated_spectrum() -> None:
    s = np.concatenate([[10.0, 9.0, 8.0], np.linspace(0.012, 0.008, 17)])
    for k in (1e-6, 0.37, 3.7, 1e5):
        assert threshold(20, 20, k * s) == 3


# ═══════════════════════════════════════════════════════════════════════════
# Purity
# ═══════════════════════════════════════════════════════════════════════════

def test_input_is_not_modified() -> None:
    s = np.concatenate([[10.0, 9.0, 8.0], np.linspace(0.012, 0.008, 17)])
    for arr in (s.copy(), s.astype(np.float32)):
        before = arr.copy()
        threshold(20, 20, arr)
        threshold_from_shape((20, 20), arr)
        npt.assert_array_equal(arr, before)
        assert arr.dtype == before.dtype


def test_accepts_plain_sequences() -> None:
    s = [10.0, 9.0, 8.0] + list(np.linspace(0.012, 0.008, 17))
    assert threshold(20, 20, s) == 3
    assert threshold(20, 20, tuple(s)) == 3
