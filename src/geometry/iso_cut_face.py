"""Time integral of the submerged area of a face swept by a moving plane."""

import numpy as np

from .polygon import submerged_area

SMALL = 1e-15


class IsoCutFace:
    def __init__(self, mesh):
        self.mesh = mesh

    def submerged_fraction(self, facei, x0, n0):
        """Fraction of the face area behind the plane through x0."""
        pts = self.mesh.points[self.mesh.faces[facei]]
        return submerged_area(pts, x0, n0) / self.mesh.face_areas[facei]

    def arrival_times(self, facei, x0, n0, un0):
        """Times at which the plane, moving with normal speed un0, passes each face vertex."""
        pts = self.mesh.points[self.mesh.faces[facei]]
        return ((pts - x0) @ n0) / un0

    def time_integrated_area(self, facei, x0, n0, un0, dt):
        """Integral over [0, dt] of the submerged face area.

        Between two vertex arrival times the submerged area is a quadratic
        function of time, so a two-point Gauss rule on each sub-interval is
        exact for planar faces. Only interior points are sampled: the area of a
        face parallel to the plane jumps at its arrival time.
        """
        pts = self.mesh.points[self.mesh.faces[facei]]

        def area(t):
            return submerged_area(pts, x0 + (un0 * t) * n0, n0)

        t_v = ((pts - x0) @ n0) / un0
        breaks = np.unique(np.concatenate(([0.0, dt], t_v[(t_v > 0.0) & (t_v < dt)])))

        total = 0.0
        for a, b in zip(breaks[:-1], breaks[1:]):
            h = b - a
            if h <= 0.0:
                continue
            mid = 0.5 * (a + b)
            offset = 0.5 * h / np.sqrt(3.0)
            total += 0.5 * h * (area(mid - offset) + area(mid + offset))
        return total

    def time_integrated_face_flux(self, facei, x0, n0, un0, f0, dt, phi, mag_sf):
        """Volume of the tracked phase carried through a face during dt.

        Parameters
        ----------
        facei : int
            Face index
        x0, n0 : ndarray (3,)
            Point on the isosurface and its unit normal (out of the tracked phase)
        un0 : float
            Normal speed of the isosurface
        f0 : float
            Isovalue of the surface (carried for diagnostics, the plane is fully
            defined by x0 and n0)
        dt : float
            Time step
        phi : float
            Volumetric face flux
        mag_sf : float
            Face area magnitude

        Returns
        -------
        float
            Transported volume, same sign as phi and |dVf| <= |phi * dt|
        """
        if abs(un0) <= 10 * SMALL:
            return phi * dt * self.submerged_fraction(facei, x0, n0)

        dVf = phi / mag_sf * self.time_integrated_area(facei, x0, n0, un0, dt)
        bound = abs(phi * dt)
        return float(np.clip(dVf, -bound, bound))
