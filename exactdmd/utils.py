"""
Utility functions for exact DMD runs.

This module provides:
- Configuration loading and saving (YAML)
- Run directory and output path management
- Logging setup
"""

import os
import yaml
import logging
from datetime import datetime
from dataclasses import dataclass
from typing import Optional


PRECISIONS = ("float64", "float32")


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass
class DMDConfig:
    """Configuration container for an exact DMD run."""

    # Run identification
    run_name: str = ""
    run_dir: str = ""

    # Paths
    output_base: str = ""

    # Sampling
    delta_t: float = 1.0
    t_start: float = 0.0

    # Decomposition
    rank: Optional[int] = None  # None = SVHT rank selection
    delays: int = 0  # Number of time-delay copies (0 = no Hankel embedding)
    precision: str = "float64"

    # Execution
    verbose: bool = True
    log_level: str = "INFO"


def load_config(config_path: str) -> DMDConfig:
    """
    Load configuration from YAML file.

    Parameters
    ----------
    config_path : str
        Path to YAML configuration file.

    Returns
    -------
    DMDConfig
        Populated configuration object.
    """
    with open(config_path, 'r') as f:
        raw = yaml.safe_load(f) or {}

    cfg = DMDConfig()
    cfg.run_name = raw.get("run_name", "")

    paths = raw.get("paths", {})
    cfg.output_base = paths.get("output_base", "")

    sampling = raw.get("sampling", {})
    cfg.delta_t = float(sampling.get("delta_t", 1.0))
    cfg.t_start = float(sampling.get("t_start", 0.0))

    dmd = raw.get("dmd", {})
    rank = dmd.get("rank")
    cfg.rank = None if rank in (None, "svht") else int(rank)
    cfg.delays = int(dmd.get("delays", 0))
    cfg.precision = dmd.get("precision", "float64")

    execution = raw.get("execution", {})
    cfg.verbose = execution.get("verbose", True)
    cfg.log_level = execution.get("log_level", "INFO")

    if cfg.delta_t <= 0:
        raise ValueError(f"sampling.delta_t must be positive, got {cfg.delta_t}")
    if cfg.rank is not None and cfg.rank < 0:
        raise ValueError(f"dmd.rank must be non-negative, got {cfg.rank}")
    if cfg.delays < 0:
        raise ValueError(f"dmd.delays must be non-negative, got {cfg.delays}")
    if cfg.precision not in PRECISIONS:
        raise ValueError(f"dmd.precision must be one of {PRECISIONS}, got {cfg.precision!r}")

    return cfg


def save_config(cfg: DMDConfig, output_path: str, step_name: str = None) -> str:
    """Save configuration to YAML file."""
    config_dict = {
        "run_name": cfg.run_name,
        "run_dir": cfg.run_dir,
        "paths": {"output_base": cfg.output_base},
        "sampling": {"delta_t": cfg.delta_t, "t_start": cfg.t_start},
        "dmd": {
            "rank": "svht" if cfg.rank is None else cfg.rank,
            "delays": cfg.delays,
            "precision": cfg.precision,
        },
        "execution": {"verbose": cfg.verbose, "log_level": cfg.log_level},
    }

    filename = f"config_{step_name}.yaml" if step_name else "config.yaml"
    filepath = os.path.join(output_path, filename)

    with open(filepath, 'w') as f:
        yaml.dump(config_dict, f, default_flow_style=False, sort_keys=False)

    return filepath


# =============================================================================
# RUN DIRECTORY MANAGEMENT
# =============================================================================

def create_run_directory(cfg: DMDConfig) -> str:
    """
    Create a fresh, timestamped directory for one DMD fit.

    Runs started within the same second get a numeric suffix
    (``_1``, ``_2``, ...) so an earlier fit is never overwritten. The
    directory is recorded in ``cfg.run_dir``.
    """
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    base = "_".join(part for part in (stamp, cfg.run_name) if part)

    candidate, suffix = base, 0
    while True:
        run_dir = os.path.join(cfg.output_base, candidate)
        try:
            os.makedirs(run_dir)
            break
        except FileExistsError:
            suffix += 1
            candidate = f"{base}_{suffix}"

    cfg.run_dir = run_dir
    return run_dir


def get_output_paths(run_dir: str) -> dict:
    """Get standard output file paths for a run."""
    return {
        "model": os.path.join(run_dir, "dmd_model.npz"),
        "config": os.path.join(run_dir, "config.yaml"),
        "metrics": os.path.join(run_dir, "dmd_metrics.yaml"),
        "predictions": os.path.join(run_dir, "dmd_predictions.npz"),
    }


def save_metrics(metrics: dict, filepath: str):
    """Write a flat metrics dict to YAML."""
    with open(filepath, 'w') as f:
        yaml.dump({k: float(v) for k, v in metrics.items()}, f, default_flow_style=False)


# =============================================================================
# LOGGING
# =============================================================================

LOG_FORMAT = '%(asctime)s [%(name)s] %(levelname)s: %(message)s'
LOG_DATEFMT = '%Y-%m-%d %H:%M:%S'


def _parse_level(log_level: str) -> int:
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level {log_level!r}")
    return level


def setup_logging(name: str, run_dir: str = "", log_level: str = "INFO") -> logging.Logger:
    """
    Configure the logger for a DMD run.

    Parameters
    ----------
    name : str
        Logger name. Pass "exactdmd" to also capture the fit diagnostics
        emitted by the library modules.
    run_dir : str, optional
        When given, everything down to DEBUG is also appended to
        ``<run_dir>/<name>.log``.
    log_level : str
        Console level ("DEBUG", "INFO", ...).

    Returns
    -------
    logging.Logger
        The configured logger. Handlers from an earlier call are closed
        and replaced.
    """
    level = _parse_level(log_level)
    logger = logging.getLogger(name)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT)
    handlers = [(logging.StreamHandler(), level)]
    if run_dir:
        log_file = os.path.join(run_dir, f"{name}.log")
        handlers.append((logging.FileHandler(log_file, mode='a'), logging.DEBUG))

    for handler, handler_level in handlers:
        handler.setLevel(handler_level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    # the logger passes everything its handlers may want
    logger.setLevel(min(handler_level for _, handler_level in handlers))
    return logger
