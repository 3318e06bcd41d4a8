"""
Exact Dynamic Mode Decomposition.

This module contains:
- The linear-algebra seam (SVD and eigen-decomposition via numpy.linalg)
- ExactDMD: fit with SVHT rank selection, reconstruction and forecasting
- FittedDMD: a fitted model restored from disk
- Saving/loading fitted models

The fitted model represents the data as

    x(t) = sum_j b_j * phi_j * exp(omega_j * (t - t_start))

where omega_j = log(lambda_j) / delta_t are the continuous-time eigenvalues,
phi_j the exact DMD modes and b_j the amplitudes fitted to the first
snapshot.

References:
    - Tu et al. (2014). On dynamic mode decomposition: Theory and
      applications. Journal of Computational Dynamics.
"""

import logging
import numpy as np
from typing import Optional, Tuple

from .data import uniform_times, validate_snapshots, time_delay
from .modes import Modes, complex_dtype
from .svht import smallest_signal_value, threshold, tolerance


log = logging.getLogger(__name__)


# =============================================================================
# LINEAR ALGEBRA
# =============================================================================

def svd(matrix: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Thin SVD of a matrix.

    Returns
    -------
    s : np.ndarray, shape (k,)
        Singular values in descending order, k = min(rows, cols).
    U : np.ndarray, shape (rows, k)
    Vh : np.ndarray, shape (k, cols)
    """
    U, s, Vh = np.linalg.svd(matrix, full_matrices=False)
    return s, U, Vh


def eigen(matrix: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Eigenvalues and right eigenvectors (as columns) of a square matrix."""
    values, vectors = np.linalg.eig(matrix)
    return values, vectors


# =============================================================================
# PREDICTION
# =============================================================================

def _time_dynamics(omega: np.ndarray, amplitudes: np.ndarray, dt: np.ndarray) -> np.ndarray:
    """
    Temporal coefficients b_j * exp(omega_j * dt_k), shape (r, m).

    A zero discrete eigenvalue has omega = -inf; such a mode only contributes
    its amplitude at dt == 0.
    """
    finite = np.isfinite(omega)
    dynamics = np.zeros((omega.size, dt.size), dtype=amplitudes.dtype)
    dynamics[finite] = np.exp(np.outer(omega[finite], dt))
    dynamics[~finite] = (dt == 0)
    return dynamics * amplitudes[:, None]


class FittedDMD:
    """
    A fitted DMD model able to reconstruct and forecast states.

    Parameters
    ----------
    modes : Modes
        Continuous-time eigenvalues and lifted modes.
    amplitudes : np.ndarray, shape (r,)
        Mode amplitudes at t_start.
    delta_t : float
        Step of the training snapshots.
    t_start : float
        Time of the first training snapshot.
    real_valued : bool
        Return the real part of predictions (real-valued training data).
    """

    def __init__(self, modes: Modes, amplitudes: np.ndarray, delta_t: float,
                 t_start: float = 0.0, real_valued: bool = True):
        amplitudes = np.asarray(amplitudes, dtype=modes.phi.dtype)
        if amplitudes.shape != (modes.rank,):
            raise ValueError(
                f"Expected {modes.rank} amplitudes, got shape {amplitudes.shape}"
            )
        self._modes = modes
        self._amplitudes = amplitudes
        self._delta_t = float(delta_t)
        self._t_start = float(t_start)
        self._real_valued = bool(real_valued)

    @property
    def modes(self) -> Modes:
        return self._check_fitted()

    @property
    def rank(self) -> int:
        return self._check_fitted().rank

    @property
    def omega(self) -> np.ndarray:
        """Continuous-time eigenvalues."""
        return self._check_fitted().eigs

    @property
    def eigs(self) -> np.ndarray:
        """Discrete-time eigenvalues exp(omega * delta_t)."""
        omega = self.omega
        # split so that omega = -inf maps back to a zero eigenvalue
        return np.exp(omega.real * self._delta_t) * np.exp(1j * omega.imag * self._delta_t)

    @property
    def amplitudes(self) -> np.ndarray:
        self._check_fitted()
        return self._amplitudes

    @property
    def delta_t(self) -> float:
        return self._delta_t

    @property
    def t_start(self) -> float:
        return self._t_start

    @property
    def real_valued(self) -> bool:
        return self._real_valued

    def _check_fitted(self) -> Modes:
        if self._modes is None:
            raise RuntimeError("Model has not been computed yet; call compute() first")
        return self._modes

    def predict_at(self, times) -> np.ndarray:
        """
        Predict the state at arbitrary (possibly irregular) times.

        Parameters
        ----------
        times : array_like, shape (m,)
            Times at which to evaluate the model.

        Returns
        -------
        np.ndarray, shape (n_features, m)
            Predicted states; real when the training data was real.
        """
        modes = self._check_fitted()
        times = np.atleast_1d(np.asarray(times, dtype=float))
        real_dtype = modes.phi.real.dtype

        if modes.rank == 0:
            dtype = real_dtype if self._real_valued else modes.phi.dtype
            return np.zeros((modes.n_features, times.size), dtype=dtype)

        dt = (times - self._t_start).astype(real_dtype)
        states = modes.phi @ _time_dynamics(modes.eigs, self._amplitudes, dt)
        return states.real.copy() if self._real_valued else states

    def predict(self, t_start: float, n_steps: int) -> np.ndarray:
        """
        Predict n_steps states at t_start + k * delta_t.

        Parameters
        ----------
        t_start : float
            Time of the first predicted state.
        n_steps : int
            Number of predicted states.

        Returns
        -------
        np.ndarray, shape (n_features, n_steps)
        """
        return self.predict_at(uniform_times(t_start, self._delta_t, n_steps))


# =============================================================================
# EXACT DMD
# =============================================================================

class ExactDMD(FittedDMD):
    """
    Exact DMD of uniformly sampled snapshots with SVHT rank selection.

    Usage:
        dmd = ExactDMD(data, delta_t).compute()
        future = dmd.predict(t_end, 100)

    Parameters
    ----------
    data : array_like, shape (n_features, n_snapshots)
        Snapshots as columns, sampled every delta_t starting at t_start.
    delta_t : float
        Time step between snapshots.
    t_start : float
        Time of the first snapshot.
    rank : int, optional
        Fixed truncation rank. None selects the rank by SVHT.
    logger : logging.Logger, optional
        Logger for fit diagnostics (defaults to the module logger).
    """

    def __init__(self, data, delta_t: float, t_start: float = 0.0,
                 rank: Optional[int] = None, logger: Optional[logging.Logger] = None):
        data = validate_snapshots(data, delta_t)
        max_rank = min(data.shape[0], data.shape[1] - 1)
        if rank is not None and (isinstance(rank, bool)
                                 or not isinstance(rank, (int, np.integer))):
            raise TypeError(f"rank must be an integer or None, got {rank!r}")
        if rank is not None and not 0 <= rank <= max_rank:
            raise ValueError(f"rank must lie in [0, {max_rank}], got {rank}")

        self._data = data
        self._requested_rank = rank
        self._logger = logger or log
        self._singular_values = None
        self._modes = None
        self._amplitudes = None
        self._delta_t = float(delta_t)
        self._t_start = float(t_start)
        self._real_valued = not np.iscomplexobj(data)

    @classmethod
    def from_config(cls, data, cfg, logger: Optional[logging.Logger] = None) -> "ExactDMD":
        """
        Build an (uncomputed) model from a DMDConfig.

        Applies the configured precision and time-delay embedding to the raw
        snapshots before handing them to the constructor.
        """
        data = np.asarray(data)
        if cfg.precision == "float32":
            data = data.astype(np.complex64 if np.iscomplexobj(data) else np.float32)
        if cfg.delays:
            data = time_delay(data, cfg.delays)
        return cls(data, cfg.delta_t, t_start=cfg.t_start, rank=cfg.rank, logger=logger)

    @property
    def singular_values(self) -> np.ndarray:
        """Full singular spectrum of the first snapshot block."""
        self._check_fitted()
        return self._singular_values

    @property
    def data(self) -> np.ndarray:
        return self._data

    def compute(self) -> "ExactDMD":
        """
        Fit the model.

        Returns
        -------
        ExactDMD
            self, for chaining.
        """
        logger = self._logger
        X = self._data[:, :-1]
        Y = self._data[:, 1:]
        n_features = self._data.shape[0]
        cdtype = complex_dtype(self._data.dtype)

        logger.info(f"Fitting exact DMD: {n_features} features, {X.shape[1] + 1} snapshots, "
                    f"delta_t={self._delta_t:.6g}")

        s, U, Vh = svd(X)
        self._singular_values = s

        if self._requested_rank is None:
            r = threshold(X.shape[0], X.shape[1], s)
            logger.info(f"  SVHT rank: {r} (of {s.size} singular values)")
        else:
            r = self._requested_rank
            logger.info(f"  Fixed rank: {r} (of {s.size} singular values)")

        if r == 0:
            logger.warning("  No retainable signal in the snapshots; model has rank 0")
            self._modes = Modes.empty(n_features, cdtype)
            self._amplitudes = np.empty(0, dtype=cdtype)
            return self

        # numerical rank as in numpy.linalg.matrix_rank, with the SVHT noise floor
        rank_floor = s[0] * max(X.shape) * tolerance(s.dtype)
        if s[r - 1] <= rank_floor:
            raise ValueError(
                f"rank {r} exceeds the numerical rank of the snapshots "
                f"(s[{r - 1}] = {s[r - 1]:.3e} <= {rank_floor:.3e})"
            )

        logger.debug(f"  Condition estimate: {s[0] / smallest_signal_value(s[:r]):.4e}")

        # Reduced propagator A_tilde = U_r^H Y V_r S_r^-1
        U_r = U[:, :r]
        YVS = (Y @ Vh[:r].conj().T) / s[:r]
        A_tilde = U_r.conj().T @ YVS

        lam, W = eigen(A_tilde)
        lam = lam.astype(cdtype)
        W = W.astype(cdtype)

        # Exact modes in the observable space. Exact modes of a zero
        # eigenvalue vanish, so those fall back to the projected modes U_r w.
        phi = YVS @ W
        zero = np.abs(lam) <= r * tolerance(s.dtype)
        if np.any(zero):
            lam[zero] = 0
            phi[:, zero] = U_r @ W[:, zero]
            logger.info(f"  Zero eigenvalues: {int(np.sum(zero))} (projected modes)")

        with np.errstate(divide="ignore"):
            omega = np.log(lam) / self._delta_t

        x0 = self._data[:, 0].astype(cdtype)
        amplitudes = np.linalg.lstsq(phi, x0, rcond=None)[0]

        self._modes = Modes(omega, phi)
        self._amplitudes = np.asarray(amplitudes, dtype=cdtype)

        n_unstable = int(np.sum(np.abs(lam) > 1.0))
        logger.info(f"  Stable modes: {r - n_unstable}, Unstable modes: {n_unstable}")
        return self


# =============================================================================
# SAVE / LOAD
# =============================================================================

def save_model(model: FittedDMD, filepath: str):
    """Save a fitted model to an npz file."""
    modes = model.modes
    np.savez(
        filepath,
        omega=modes.eigs,
        phi=modes.phi,
        amplitudes=model.amplitudes,
        rank=modes.rank,
        delta_t=model.delta_t,
        t_start=model.t_start,
        real_valued=model.real_valued,
    )


def load_model(filepath: str) -> FittedDMD:
    """Load a fitted model saved with save_model."""
    with np.load(filepath) as d:
        modes = Modes(d['omega'], d['phi'])
        if modes.rank != int(d['rank']):
            raise ValueError(f"Corrupt model file {filepath}: rank mismatch")
        return FittedDMD(
            modes,
            d['amplitudes'],
            delta_t=float(d['delta_t']),
            t_start=float(d['t_start']),
            real_valued=bool(d['real_valued']),
        )
