"""Evaluation of cell fields at arbitrary points inside a cell."""

import numpy as np

from fv.core.helpers import interpolate_to_points, point_interpolation_weights


class CellPointInterpolation:
    """Inverse-distance interpolation from a cell centre and its vertices.

    Point values are built once per field with ``update`` (cell -> point
    inverse-distance averaging), then ``interpolate`` blends the cell value
    with the values at the cell's vertices.

    Parameters
    ----------
    mesh : MeshData
    sync : callable, optional
        Completion of point sums on partition boundaries, see interpolate_to_points
    """

    def __init__(self, mesh, sync=None):
        self.mesh = mesh
        self.sync = sync
        self.weights = point_interpolation_weights(mesh)
        self.cell_values = None
        self.point_values = None

    def update(self, cell_values):
        self.cell_values = np.asarray(cell_values, dtype=np.float64)
        self.point_values = interpolate_to_points(self.mesh, self.cell_values, self.weights, self.sync)
        return self.point_values

    def interpolate(self, x, celli):
        if self.cell_values is None:
            raise RuntimeError("CellPointInterpolation.update must be called before interpolate")

        pts = self.mesh.cell_points[celli]
        xc = self.mesh.cell_centers[celli]

        d_c = np.sqrt((x - xc) @ (x - xc))
        d_v = np.linalg.norm(self.mesh.points[pts] - x, axis=1)
        tol = 1e-12 * self.mesh.cell_volumes[celli] ** (1.0 / 3.0)

        if d_c <= tol:
            return self.cell_values[celli]
        hit = np.flatnonzero(d_v <= tol)
        if hit.size:
            return self.point_values[pts[hit[0]]]

        w_c = 1.0 / d_c
        w_v = 1.0 / d_v
        values = self.point_values[pts]
        return (w_c * self.cell_values[celli] + w_v @ values) / (w_c + w_v.sum())
