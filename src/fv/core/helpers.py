import numpy as np


def point_interpolation_weights(mesh):
    """
    Inverse-distance weights from cell centres to mesh points.
    Returns flattened (point, cell, weight) triplets for use with np.add.at.
    """
    point_ids = []
    cell_ids = []
    for p, cells in enumerate(mesh.point_cells):
        point_ids.append(np.full(cells.shape[0], p, dtype=np.int64))
        cell_ids.append(cells)

    point_ids = np.concatenate(point_ids) if point_ids else np.zeros(0, dtype=np.int64)
    cell_ids = np.concatenate(cell_ids) if cell_ids else np.zeros(0, dtype=np.int64)
    dist = np.linalg.norm(mesh.points[point_ids] - mesh.cell_centers[cell_ids], axis=1)
    weights = 1.0 / np.maximum(dist, 1e-300)

    return point_ids, cell_ids, weights


def interpolate_to_points(mesh, values, weights=None, sync=None):
    """
    Interpolate a cell field (scalar or vector) to mesh points.

    sync, if given, is called with the local weighted sums and weight totals
    before normalisation so that points on partition boundaries can add the
    contributions of remote cells.
    """
    if weights is None:
        weights = point_interpolation_weights(mesh)
    point_ids, cell_ids, w = weights

    values = np.asarray(values, dtype=np.float64)
    sums = np.zeros((mesh.n_points,) + values.shape[1:], dtype=np.float64)
    w_sum = np.zeros(mesh.n_points, dtype=np.float64)

    if values.ndim == 1:
        np.add.at(sums, point_ids, w * values[cell_ids])
    else:
        np.add.at(sums, point_ids, w[:, None] * values[cell_ids])
    np.add.at(w_sum, point_ids, w)

    if sync is not None:
        sync(sums, w_sum)

    w_sum = np.where(w_sum > 0.0, w_sum, 1.0)
    if values.ndim == 1:
        return sums / w_sum
    return sums / w_sum[:, None]
