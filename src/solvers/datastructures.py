"""Data structures for solver configuration and results.

This module defines the configuration and result data structures
for the geometric VOF advection solver.

Structure:
- IsoAdvectorParameters: Input configuration (logged to MLflow at start)
- Metrics: Output results (logged to MLflow at end)
- TimeSeries: Per-step history
- InterfaceRecord / BoundaryInterfaceRecord: Transient per-step interface data
"""

import time
from dataclasses import asdict, dataclass, field, fields
from typing import List

import numpy as np
import pandas as pd


# ========================================================
# Parameters (Input Configuration)
# ========================================================


@dataclass
class IsoAdvectorParameters:
    """Geometric VOF advection parameters."""

    n_alpha_bounds: int = 3  # redistribution passes in the flux limiter
    iso_face_tol: float = 1e-10  # plane position tolerance of the cell cut
    surf_cell_tol: float = 1e-8  # alpha margin defining a surface cell
    grad_alpha_normal: bool = False  # smoothed grad(alpha) normals instead of point interpolation
    max_cut_iterations: int = 100
    snap_tol: float = 0.0
    clip: bool = True
    write_surf_cells: bool = False
    write_bounded_cells: bool = False
    write_iso_faces: bool = False
    debug: bool = False
    method: str = "isoAdvector"

    def __post_init__(self):
        if self.n_alpha_bounds < 0:
            raise ValueError(f"n_alpha_bounds must be non-negative, got {self.n_alpha_bounds}")
        if self.max_cut_iterations < 1:
            raise ValueError(f"max_cut_iterations must be positive, got {self.max_cut_iterations}")
        for name in ("iso_face_tol", "surf_cell_tol", "snap_tol"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative, got {getattr(self, name)}")
        if self.surf_cell_tol >= 0.5:
            raise ValueError(f"surf_cell_tol must be below 0.5, got {self.surf_cell_tol}")
        if self.snap_tol >= 0.5:
            raise ValueError(f"snap_tol must be below 0.5, got {self.snap_tol}")

    def to_dataframe(self):
        return pd.DataFrame([asdict(self)])

    def to_mlflow(self):
        return {k: str(v) for k, v in asdict(self).items()}


# ========================================================
# Metrics (Output Results)
# ========================================================


@dataclass
class Metrics:
    """Solver metrics - output results accumulated over the advected steps."""

    n_steps: int = 0
    n_surface_cells: int = 0
    n_bounded_cells: int = 0
    max_overshoot: float = 0.0  # largest alpha - 1 before bounding
    min_undershoot: float = 0.0  # smallest alpha before bounding
    parallel_inconsistencies: int = 0
    advection_time_seconds: float = 0.0
    wall_time_seconds: float = 0.0
    phase_volume: float = 0.0

    def to_dataframe(self):
        return pd.DataFrame([asdict(self)])

    def to_mlflow(self):
        return {k: float(v) for k, v in asdict(self).items()}


# ========================================================
# Time Series (Per-step History)
# ========================================================


@dataclass
class TimeSeries:
    """History of the advection (one value per step)."""

    time: List[float] = field(default_factory=list)
    dt: List[float] = field(default_factory=list)
    n_surface_cells: List[int] = field(default_factory=list)
    n_bounded_cells: List[int] = field(default_factory=list)
    alpha_min_before: List[float] = field(default_factory=list)
    alpha_max_before: List[float] = field(default_factory=list)
    alpha_min: List[float] = field(default_factory=list)
    alpha_max: List[float] = field(default_factory=list)
    phase_volume: List[float] = field(default_factory=list)

    def append(self, **values):
        for f in fields(self):
            getattr(self, f.name).append(values[f.name])

    def __len__(self):
        return len(self.time)

    def to_dataframe(self) -> pd.DataFrame:
        """Convert to DataFrame with one row per step."""
        return pd.DataFrame(asdict(self))

    def to_mlflow_batch(self):
        """(key, value, timestamp_ms, step) tuples for MlflowClient.log_batch."""
        timestamp = int(time.time() * 1000)
        batch = []
        for f in fields(self):
            if f.name == "time":
                continue
            for step, value in enumerate(getattr(self, f.name)):
                batch.append((f.name, float(value), timestamp, step))
        return batch


# ========================================================
# Interface records (transient, rebuilt every step)
# ========================================================


@dataclass
class InterfaceRecord:
    """Reconstructed interface of one surface cell."""

    iso_value: float
    iso_centre: np.ndarray
    normal: np.ndarray
    normal_speed: float


@dataclass
class BoundaryInterfaceRecord:
    """Downwind boundary face of a surface cell whose flux is computed after the cell loop."""

    face: int
    iso_value: float
    iso_centre: np.ndarray
    normal: np.ndarray
    normal_speed: float
