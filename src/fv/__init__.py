"""Finite volume kernels used by the VOF advection.

Face loops run as numba kernels on the flat owner/neighbour arrays of
MeshData; small per-cell helpers stay in numpy.
"""

from .assembly.divergence import compute_net_face_flux, net_flux, surface_integrate
from .boundary_conditions import BoundaryCondition, BoundaryField
from .core.helpers import interpolate_to_points, point_interpolation_weights
from .discretization.convection.upwind import compute_upwind_face_values, upwind_face_transport
from .discretization.gradient.gauss_gradient import compute_cell_gradients

__all__ = [
    "compute_net_face_flux",
    "net_flux",
    "surface_integrate",
    "BoundaryCondition",
    "BoundaryField",
    "interpolate_to_points",
    "point_interpolation_weights",
    "compute_upwind_face_values",
    "upwind_face_transport",
    "compute_cell_gradients",
]
