"""Volume-of-fluid advection solvers.

Solver Hierarchy:
-----------------
IsoAdvector (geometric VOF advection of one volume fraction field)
├── FluxEstimator   (plane reconstruction and swept face volumes)
├── FluxLimiter     (conservative bounding of the face transport)
└── ParallelFluxSynchronizer (processor patch consistency)
"""

from .datastructures import (
    BoundaryInterfaceRecord,
    InterfaceRecord,
    IsoAdvectorParameters,
    Metrics,
    TimeSeries,
)
from solvers.vof import (
    FluxEstimator,
    FluxLimiter,
    IsoAdvector,
    ParallelFluxSynchronizer,
    SurfaceCellClassifier,
)


__all__ = [
    # Solver
    "IsoAdvector",
    "FluxEstimator",
    "FluxLimiter",
    "ParallelFluxSynchronizer",
    "SurfaceCellClassifier",
    # Data structures
    "IsoAdvectorParameters",
    "Metrics",
    "TimeSeries",
    "InterfaceRecord",
    "BoundaryInterfaceRecord",
]
