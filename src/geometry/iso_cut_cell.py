"""Planar cutting of a polyhedral cell for a prescribed volume fraction.

The vertex values of a cell (alpha interpolated to the points, or a signed
distance along a smoothed normal) are fitted by a linear function
a + g . (x - x_c). The interface is the plane of constant value of that fit,
its unit normal n0 = -g/|g| points out of the tracked phase, and its position
is found so that the volume behind the plane equals alpha * V.
"""

import logging
from dataclasses import dataclass, field
from enum import IntEnum

import numpy as np
from scipy.optimize import brentq

from .polygon import order_planar_points, submerged_metrics

log = logging.getLogger(__name__)


class CellStatus(IntEnum):
    """Position of a cell relative to the isosurface (tracked phase is above)."""

    BELOW = -1
    CUT = 0
    ABOVE = 1


@dataclass
class CellCut:
    status: CellStatus
    iso_value: float = 0.0
    iso_face_centre: np.ndarray = field(default_factory=lambda: np.zeros(3))
    iso_face_area: np.ndarray = field(default_factory=lambda: np.zeros(3))
    iso_face_points: np.ndarray = field(default_factory=lambda: np.zeros((0, 3)))
    converged: bool = True

    @property
    def is_cut(self) -> bool:
        return self.status == CellStatus.CUT


class IsoCutCell:
    """Cell cutting on a mesh, reading vertex values from a shared point array."""

    def __init__(self, mesh, point_values):
        self.mesh = mesh
        self.point_values = point_values

    def _outward_faces(self, celli):
        """Vertex coordinates of each cell face, oriented out of the cell."""
        mesh = self.mesh
        polys = []
        for f in mesh.cell_faces[celli]:
            pts = mesh.points[mesh.faces[f]]
            polys.append(pts if mesh.owner_cells[f] == celli else pts[::-1])
        return polys

    def linear_fit(self, celli):
        """Least-squares fit a + g . (x - x_c) of the cell's vertex values."""
        pts = self.mesh.cell_points[celli]
        xc = self.mesh.cell_centers[celli]
        A = np.column_stack([np.ones(pts.shape[0]), self.mesh.points[pts] - xc])
        coef, *_ = np.linalg.lstsq(A, self.point_values[pts], rcond=None)
        return coef[0], coef[1:]

    def sub_volume(self, celli, x0, n0, polys=None):
        """Volume of the cell behind the plane through x0 with normal n0.

        Divergence theorem about a reference point on the plane, so the cap
        face of the clipped polyhedron does not contribute.
        """
        if polys is None:
            polys = self._outward_faces(celli)
        vol = 0.0
        for pts in polys:
            S, C = submerged_metrics(pts, x0, n0)
            if C is not None:
                vol += (C - x0) @ S
        return vol / 3.0

    def vof_cut_cell(self, celli, alpha1, tol, max_iter):
        """Find the plane that cuts off a volume fraction alpha1 of the cell.

        Parameters
        ----------
        celli : int
            Cell index
        alpha1 : float
            Target volume fraction
        tol : float
            Tolerance on the plane position relative to the cell extent along n0
        max_iter : int
            Iteration cap for the root search

        Returns
        -------
        CellCut
            status CUT with the iso-face data, or BELOW/ABOVE if the cell is not cut
        """
        if alpha1 <= 0.0:
            return CellCut(CellStatus.BELOW)
        if alpha1 >= 1.0:
            return CellCut(CellStatus.ABOVE)

        # No isosurface through a cell with (numerically) uniform vertex values
        f_v = self.point_values[self.mesh.cell_points[celli]]
        if np.ptp(f_v) <= 1e-12 * max(np.abs(f_v).max(), 1e-300):
            return CellCut(CellStatus.ABOVE if alpha1 >= 0.5 else CellStatus.BELOW)

        a, g = self.linear_fit(celli)
        mag_g = np.sqrt(g @ g)
        if mag_g < 1e-300:
            return CellCut(CellStatus.ABOVE if alpha1 >= 0.5 else CellStatus.BELOW)
        n0 = -g / mag_g

        mesh = self.mesh
        xc = mesh.cell_centers[celli]
        V = mesh.cell_volumes[celli]
        polys = self._outward_faces(celli)
        s_v = (mesh.points[mesh.cell_points[celli]] - xc) @ n0
        s_min, s_max = s_v.min(), s_v.max()

        def residual(d):
            return self.sub_volume(celli, xc + d * n0, n0, polys) / V - alpha1

        d, result = brentq(
            residual, s_min, s_max,
            xtol=max(tol * (s_max - s_min), 1e-300),
            maxiter=max_iter, full_output=True, disp=False,
        )
        if not result.converged:
            log.debug(f"Cell {celli}: plane search stopped after {result.iterations} iterations "
                      f"with alpha error {residual(d):.3e}")

        x_plane = xc + d * n0
        S_cap = np.zeros(3)
        cut_points = []
        for pts in polys:
            S, _ = submerged_metrics(pts, x_plane, n0)
            S_cap -= S
            s = (pts - x_plane) @ n0
            n = pts.shape[0]
            for i in range(n):
                j = (i + 1) % n
                if s[i] == 0.0:
                    cut_points.append(pts[i])
                elif (s[i] < 0.0 < s[j]) or (s[j] < 0.0 < s[i]):
                    t = s[i] / (s[i] - s[j])
                    cut_points.append(pts[i] + t * (pts[j] - pts[i]))

        if len(cut_points) < 3 or S_cap @ n0 <= 0.0:
            return CellCut(CellStatus.ABOVE if alpha1 >= 0.5 else CellStatus.BELOW, converged=result.converged)

        iso_points = _unique_points(np.array(cut_points), 1e-9 * (s_max - s_min))
        iso_points = order_planar_points(iso_points, n0)
        centre = _polygon_centre(iso_points, n0)

        return CellCut(
            status=CellStatus.CUT,
            iso_value=a - mag_g * d,
            iso_face_centre=centre,
            iso_face_area=S_cap,
            iso_face_points=iso_points,
            converged=result.converged,
        )


def _unique_points(pts, tol):
    unique = []
    for p in pts:
        if all(np.abs(p - q).max() > tol for q in unique):
            unique.append(p)
    return np.array(unique)


def _polygon_centre(pts, normal):
    """Area-weighted centroid of an ordered planar polygon."""
    if pts.shape[0] < 3:
        return pts.mean(axis=0)
    p_avg = pts.mean(axis=0)
    n = pts.shape[0]
    area = 0.0
    centre = np.zeros(3)
    for i in range(n):
        a = pts[i]
        b = pts[(i + 1) % n]
        tri = 0.5 * np.cross(b - a, p_avg - a) @ normal
        area += tri
        centre += tri * (a + b + p_avg) / 3.0
    if abs(area) < 1e-300:
        return p_avg
    return centre / area
