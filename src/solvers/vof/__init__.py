"""Geometric VOF advection (isoAdvector) with conservative flux bounding."""

from .diagnostics import read_cell_set, read_obj_faces, write_cell_set, write_iso_faces_obj
from .flux_estimator import FluxEstimator
from .flux_limiter import FluxLimiter
from .isoadvector import IsoAdvector
from .parallel import ParallelFluxSynchronizer, ProcessorChannel
from .surface_cells import SurfaceCellClassifier

__all__ = [
    "IsoAdvector",
    "FluxEstimator",
    "FluxLimiter",
    "ParallelFluxSynchronizer",
    "ProcessorChannel",
    "SurfaceCellClassifier",
    "write_cell_set",
    "read_cell_set",
    "write_iso_faces_obj",
    "read_obj_faces",
]
