"""
Exact Dynamic Mode Decomposition with automatic rank selection.

This package fits a low-rank linear operator to a sequence of snapshots,
extracts its eigenvalues and modes, and uses them to reconstruct or
extrapolate the state at arbitrary times. The truncation rank is chosen by
the Singular Value Hard Threshold (SVHT) of Gavish & Donoho.

Modules:
    svht        - SVHT rank estimation (single and double precision)
    modes       - Immutable eigenvalue/mode container
    core        - ExactDMD fit/predict, linear-algebra seam, save/load
    data        - Snapshot validation, time-delay embedding, time grids
    evaluation  - Reconstruction and forecast error metrics
    utils       - Configuration, run directories, logging

Usage:
    from exactdmd import ExactDMD

    dmd = ExactDMD(snapshots, delta_t=0.01).compute()
    print(dmd.rank, dmd.omega)
    future = dmd.predict(t_start=10.0, n_steps=100)

References:
    - Gavish & Donoho (2014). The optimal hard threshold for singular
      values is 4/sqrt(3).
    - Tu et al. (2014). On dynamic mode decomposition: Theory and
      applications.
"""

from .svht import (
    threshold,
    threshold_from_shape,
    compute_omega,
    effective_median,
    signal_energy,
    smallest_signal_value,
    machine_epsilon,
    tolerance,
)

from .modes import Modes

from .core import (
    ExactDMD,
    FittedDMD,
    svd,
    eigen,
    save_model,
    load_model,
)

from .data import (
    time_delay,
    uniform_times,
    step_size,
    validate_snapshots,
)

from .evaluation import (
    relative_error,
    mean_relative_error,
    frobenius_distance,
    norm_ratio,
    approx_equal,
    reconstruction_metrics,
)

from .utils import (
    DMDConfig,
    load_config,
    save_config,
    create_run_directory,
    get_output_paths,
    save_metrics,
    setup_logging,
)

__version__ = "0.1.0"
