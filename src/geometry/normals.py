import numpy as np

from fv.core.helpers import interpolate_to_points, point_interpolation_weights


def _normalise(vectors):
    mag = np.linalg.norm(vectors, axis=1)
    out = np.zeros_like(vectors)
    nz = mag > 1e-300
    out[nz] = vectors[nz] / mag[nz, None]
    return out


def normalise_and_smooth(mesh, cell_vectors, weights=None, sync=None):
    """
    Unit cell normals smoothed over one point layer.

    The normalised cell vectors are averaged to the points (inverse distance),
    normalised there, averaged back to each cell from its vertices with the
    same weights, and normalised again.
    """
    if weights is None:
        weights = point_interpolation_weights(mesh)
    point_ids, cell_ids, w = weights

    n_cell = _normalise(np.asarray(cell_vectors, dtype=np.float64))
    n_point = _normalise(interpolate_to_points(mesh, n_cell, weights, sync))

    sums = np.zeros((mesh.n_cells, 3))
    w_sum = np.zeros(mesh.n_cells)
    np.add.at(sums, cell_ids, w[:, None] * n_point[point_ids])
    np.add.at(w_sum, cell_ids, w)
    w_sum = np.where(w_sum > 0.0, w_sum, 1.0)

    return _normalise(sums / w_sum[:, None])
