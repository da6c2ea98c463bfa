"""Polygon clipping against a plane.

The "submerged" side of a plane through x0 with unit normal n0 is
(x - x0) . n0 <= 0, i.e. the normal points out of the tracked phase.
"""

import numpy as np

from meshing.mesh_data import polygon_metrics


def clip_polygon(pts, x0, n0):
    """Part of a convex polygon on the submerged side of a plane (Sutherland-Hodgman)."""
    s = (pts - x0) @ n0
    n = pts.shape[0]
    clipped = []
    for i in range(n):
        j = (i + 1) % n
        if s[i] <= 0.0:
            clipped.append(pts[i])
        if (s[i] < 0.0 < s[j]) or (s[j] < 0.0 < s[i]):
            t = s[i] / (s[i] - s[j])
            clipped.append(pts[i] + t * (pts[j] - pts[i]))
    return np.array(clipped, dtype=np.float64).reshape(-1, 3)


def submerged_metrics(pts, x0, n0):
    """Area vector and centroid of the submerged part of a polygon (None if empty)."""
    clipped = clip_polygon(pts, x0, n0)
    if clipped.shape[0] < 3:
        return np.zeros(3), None
    return polygon_metrics(clipped)


def submerged_area(pts, x0, n0):
    S, _ = submerged_metrics(pts, x0, n0)
    return float(np.sqrt(S @ S))


def order_planar_points(pts, normal):
    """Sort points lying in a plane counter-clockwise about the plane normal."""
    centre = pts.mean(axis=0)
    e1 = pts[0] - centre
    e1 -= (e1 @ normal) * normal
    mag = np.sqrt(e1 @ e1)
    if mag < 1e-300:
        return pts
    e1 /= mag
    e2 = np.cross(normal, e1)
    rel = pts - centre
    angles = np.arctan2(rel @ e2, rel @ e1)
    return pts[np.argsort(angles)]
