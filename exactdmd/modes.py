"""
Container for the eigenvalues and lifted modes of a fitted DMD model.
"""

import numpy as np
from dataclasses import dataclass


def complex_dtype(dtype) -> np.dtype:
    """complex64 for single-precision input, complex128 otherwise."""
    if np.dtype(dtype) in (np.float32, np.complex64):
        return np.dtype(np.complex64)
    return np.dtype(np.complex128)


@dataclass(frozen=True, eq=False)
class Modes:
    """
    Eigenvalues of the reduced operator paired with their modes.

    Column j of `phi` is the mode belonging to `eigs[j]`. The modes live in
    the full (lifted) observable space, not in the reduced subspace.
    Both arrays are private read-only copies.

    Attributes
    ----------
    eigs : np.ndarray, shape (r,)
        Complex eigenvalues.
    phi : np.ndarray, shape (n_features, r)
        Complex mode matrix.
    """
    eigs: np.ndarray
    phi: np.ndarray

    def __post_init__(self):
        eigs = np.array(self.eigs)
        phi = np.array(self.phi)
        if eigs.ndim != 1:
            raise ValueError(f"eigs must be 1-D, got shape {eigs.shape}")
        if phi.ndim != 2:
            raise ValueError(f"phi must be 2-D, got shape {phi.shape}")
        if phi.shape[1] != eigs.size:
            raise ValueError(
                f"phi has {phi.shape[1]} columns but there are {eigs.size} eigenvalues"
            )

        cdtype = complex_dtype(np.result_type(eigs.dtype, phi.dtype))
        eigs = eigs.astype(cdtype)
        phi = phi.astype(cdtype)
        eigs.setflags(write=False)
        phi.setflags(write=False)
        object.__setattr__(self, "eigs", eigs)
        object.__setattr__(self, "phi", phi)

    @classmethod
    def empty(cls, n_features: int, dtype=np.complex128) -> "Modes":
        """Rank-0 result: no eigenvalues, an (n_features, 0) mode matrix."""
        cdtype = complex_dtype(dtype)
        return cls(np.empty(0, dtype=cdtype), np.empty((n_features, 0), dtype=cdtype))

    @property
    def rank(self) -> int:
        return int(self.eigs.size)

    @property
    def n_features(self) -> int:
        return int(self.phi.shape[0])

    def __len__(self) -> int:
        return self.rank
