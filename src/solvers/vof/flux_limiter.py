"""Conservative bounding of the face transport.

Cells that would end the step with alpha above one pass their surplus on
through downwind faces that can still carry more of the tracked phase.
Undershoots are treated the same way on the complementary phase, 1 - alpha,
with the complementary transport phi*dt - dVf. A fixed number of passes is
made; whatever remains is left to clipping.
"""

import logging

import numpy as np

from fv.assembly.divergence import net_flux, surface_integrate
from geometry.iso_cut_face import SMALL

log = logging.getLogger(__name__)

ALPHA_TOL = 1e-12


class FluxLimiter:
    """
    Parameters
    ----------
    mesh : MeshData
    synchronizer : ParallelFluxSynchronizer
    n_alpha_bounds : int
        Number of bounding passes
    debug : bool
        Per-cell traces and over/undershoot counts after every pass
    """

    def __init__(self, mesh, synchronizer, n_alpha_bounds=3, debug=False):
        self.mesh = mesh
        self.synchronizer = synchronizer
        self.n_alpha_bounds = n_alpha_bounds
        self.debug = debug
        self.phi = None
        self.dt = None
        self.cell_is_bounded = np.zeros(mesh.n_cells, dtype=bool)

    def net_flux(self, dVf, celli):
        return net_flux(self.mesh, dVf, celli)

    def downwind_faces(self, celli, phi=None):
        """Faces through which the cell loses fluid, in the cell's face order."""
        phi = self.phi if phi is None else phi
        faces = []
        for facei in self.mesh.cell_faces[celli]:
            if self.mesh.owner_cells[facei] == celli:
                if phi[facei] > 10 * SMALL:
                    faces.append(int(facei))
            elif phi[facei] < -10 * SMALL:
                faces.append(int(facei))
        return faces

    def _extrema(self, alpha, dVf):
        alpha_new = alpha - surface_integrate(self.mesh, dVf)
        max_minus_1 = self.synchronizer.global_max(float(alpha_new.max()) - 1.0)
        min_alpha = self.synchronizer.global_min(float(alpha_new.min()))
        return alpha_new, max_minus_1, min_alpha

    def limit_fluxes(self, alpha, phi, dVf, dt, check_bounding):
        """Redistribute dVf (in place) to keep alpha - surfaceIntegrate(dVf) in [0, 1].

        Returns
        -------
        dict
            Global min/max of the updated alpha before and after bounding
        """
        self.phi = phi
        self.dt = dt
        self.cell_is_bounded[:] = False

        _, max_minus_1, min_alpha = self._extrema(alpha, dVf)
        stats = {"alpha_min_before": min_alpha, "alpha_max_before": 1.0 + max_minus_1}
        log.info(f"isoAdvection: Before conservative bounding: min(alpha) = {min_alpha}, "
                 f"max(alpha) = 1 + {max_minus_1}")

        # The extrema are global, so all partitions take the same branches and syncs
        for n in range(self.n_alpha_bounds):
            if max_minus_1 <= ALPHA_TOL and min_alpha >= -ALPHA_TOL:
                break

            if max_minus_1 > ALPHA_TOL:
                if self.debug:
                    log.debug("Bound from above...")
                corrected = dVf.copy()
                faces = np.asarray(self.bound_from_above(alpha, corrected, check_bounding), dtype=np.int64)
                dVf[faces] = corrected[faces]
                self.synchronizer.sync_face_transport(dVf)

            if min_alpha < -ALPHA_TOL:
                if self.debug:
                    log.debug("Bound from below...")
                # phi and dVf share sign, so phi*dt - dVf is the transported volume of the other phase
                corrected = phi * dt - dVf
                faces = np.asarray(self.bound_from_above(1.0 - alpha, corrected, check_bounding), dtype=np.int64)
                dVf[faces] = phi[faces] * dt - corrected[faces]
                self.synchronizer.sync_face_transport(dVf)

            alpha_new, max_minus_1, min_alpha = self._extrema(alpha, dVf)

            if self.debug:
                n_over = self.synchronizer.global_sum(int(np.sum(alpha_new - 1.0 - ALPHA_TOL >= 0.0)))
                n_under = self.synchronizer.global_sum(int(np.sum(alpha_new + ALPHA_TOL <= 0.0)))
                log.debug(f"After bounding number {n + 1}: nOvershoots = {n_over} with max(alphaNew-1) = "
                          f"{max_minus_1} and nUndershoots = {n_under} with min(alphaNew) = {min_alpha}")

        stats.update(alpha_min=min_alpha, alpha_max=1.0 + max_minus_1)
        return stats

    def bound_from_above(self, alpha1, dVf, check_bounding):
        """Pass the surplus of overfilled cells on through their downwind faces.

        Parameters
        ----------
        alpha1 : ndarray
            Volume fraction of the phase being bounded
        dVf : ndarray
            Transport of that phase, modified in place
        check_bounding : ndarray of bool
            Cells to check

        Returns
        -------
        list of int
            Faces changed, each listed once
        """
        a_tol = 10 * SMALL
        mesh = self.mesh
        phi = self.phi
        dt = self.dt
        corrected_faces = []

        for celli in np.flatnonzero(check_bounding):
            celli = int(celli)
            Vi = mesh.cell_volumes[celli]
            alpha_overshoot = alpha1[celli] - self.net_flux(dVf, celli) / Vi - 1.0
            fluid_to_pass_on = alpha_overshoot * Vi
            n_faces_to_pass_fluid_through = 1
            first_loop = True

            # A round is only repeated after it saturated at least one face
            max_rounds = len(mesh.cell_faces[celli]) + 1
            rounds = 0

            while alpha_overshoot > a_tol and n_faces_to_pass_fluid_through > 0 and rounds < max_rounds:
                rounds += 1
                if self.debug:
                    log.debug(f"Bounding cell {celli} with alpha overshooting {alpha_overshoot}")
                self.cell_is_bounded[celli] = True

                faces = []
                dVf_max = []
                dVf_tot = 0.0
                for facei in self.downwind_faces(celli):
                    max_extra = abs(phi[facei] * dt - dVf[facei])
                    if max_extra / Vi > a_tol:
                        faces.append(facei)
                        dVf_max.append(max_extra)
                        dVf_tot += abs(phi[facei] * dt)

                n_faces_to_pass_fluid_through = 0
                for facei, max_extra in zip(faces, dVf_max):
                    share = fluid_to_pass_on * abs(phi[facei] * dt) / dVf_tot
                    if max_extra >= share:
                        n_faces_to_pass_fluid_through += 1
                    share = min(share, max_extra)
                    dVf[facei] += np.sign(phi[facei]) * share

                    if first_loop:
                        self.synchronizer.register_face(facei)
                        corrected_faces.append(facei)

                first_loop = False
                alpha_overshoot = alpha1[celli] - self.net_flux(dVf, celli) / Vi - 1.0
                fluid_to_pass_on = alpha_overshoot * Vi

                if self.debug:
                    log.debug(f"Cell {celli}: faces {faces}, new alpha {alpha_overshoot + 1.0}")

        return corrected_faces
