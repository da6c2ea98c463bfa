"""Interface geometry providers for the VOF flux estimator.

The flux estimator only needs three things from the interface geometry:
vertex values to reconstruct from, the cut of a cell for a given volume
fraction, and the time-integrated flux of the reconstructed surface through a
face. ``PlaneInterfaceGeometry`` reconstructs a plane per cell.
"""

from abc import ABC, abstractmethod

import numpy as np

from .iso_cut_cell import CellCut, IsoCutCell
from .iso_cut_face import IsoCutFace


# =============================================================================
# Abstract Base Class
# =============================================================================


class InterfaceGeometryProvider(ABC):
    """Abstract base class for interface reconstruction and face flux integration."""

    @abstractmethod
    def set_point_values(self, point_values: np.ndarray) -> None:
        """Use a point field (e.g. alpha interpolated to points) as vertex values."""
        pass

    @abstractmethod
    def set_cell_vertex_values(self, celli: int, normal: np.ndarray) -> None:
        """Set the vertex values of a cell to the signed distance along a normal."""
        pass

    @abstractmethod
    def classify_and_cut_cell(self, celli: int, alpha: float, tol: float, max_iter: int) -> CellCut:
        """Reconstruct the interface in a cell for the volume fraction alpha."""
        pass

    @abstractmethod
    def time_integrated_face_flux(
        self,
        facei: int,
        x0: np.ndarray,
        n0: np.ndarray,
        un0: float,
        f0: float,
        dt: float,
        phi: float,
        mag_sf: float,
    ) -> float:
        """Volume of the tracked phase passing through a face during dt."""
        pass


# =============================================================================
# Planar reconstruction
# =============================================================================


class PlaneInterfaceGeometry(InterfaceGeometryProvider):
    """Planar interface per cell, moving with constant normal speed during a step."""

    def __init__(self, mesh):
        self.mesh = mesh
        self.point_values = np.zeros(mesh.n_points)
        self.cut_cell = IsoCutCell(mesh, self.point_values)
        self.cut_face = IsoCutFace(mesh)

    def set_point_values(self, point_values):
        # In place, the cell cutter holds a reference to this array
        self.point_values[:] = point_values

    def set_cell_vertex_values(self, celli, normal):
        pts = self.mesh.cell_points[celli]
        self.point_values[pts] = (self.mesh.points[pts] - self.mesh.cell_centers[celli]) @ normal

    def classify_and_cut_cell(self, celli, alpha, tol, max_iter):
        return self.cut_cell.vof_cut_cell(celli, alpha, tol, max_iter)

    def time_integrated_face_flux(self, facei, x0, n0, un0, f0, dt, phi, mag_sf):
        return self.cut_face.time_integrated_face_flux(facei, x0, n0, un0, f0, dt, phi, mag_sf)
