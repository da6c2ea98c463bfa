"""Geometric face transport of the surface cells.

For every surface cell the interface is reconstructed as a plane, moved with
the velocity interpolated to its centre, and the volume it sweeps through each
downwind face during the time step replaces the upwind estimate on that face.
"""

import logging

import numpy as np

from fv.core.helpers import interpolate_to_points, point_interpolation_weights
from fv.discretization.gradient.gauss_gradient import compute_cell_gradients
from geometry.interpolation import CellPointInterpolation
from geometry.iso_cut_face import SMALL
from geometry.normals import normalise_and_smooth
from solvers.datastructures import BoundaryInterfaceRecord, InterfaceRecord

from .surface_cells import SurfaceCellClassifier

log = logging.getLogger(__name__)


class FluxEstimator:
    """Time-integrated face transport from reconstructed planar interfaces.

    Parameters
    ----------
    mesh : MeshData
    geometry : InterfaceGeometryProvider
    params : IsoAdvectorParameters
    synchronizer : ParallelFluxSynchronizer
    alpha_boundary : BoundaryField, optional
        Evaluated boundary values of alpha, needed for gradient based normals
    """

    def __init__(self, mesh, geometry, params, synchronizer, alpha_boundary=None):
        self.mesh = mesh
        self.geometry = geometry
        self.params = params
        self.synchronizer = synchronizer
        self.alpha_boundary = alpha_boundary
        self.classifier = SurfaceCellClassifier(params.surf_cell_tol)

        self.weights = point_interpolation_weights(mesh)
        self.U_interp = CellPointInterpolation(mesh, sync=synchronizer.sync_point_values)

        # Rebuilt every step
        self.surface_cells = []
        self.interface_records = {}
        self.boundary_records = []
        self.iso_face_points = []
        self.check_bounding = np.zeros(mesh.n_cells, dtype=bool)
        self._marked_around = np.zeros(mesh.n_cells, dtype=bool)

    def reset(self):
        self.surface_cells.clear()
        self.interface_records.clear()
        self.boundary_records.clear()
        self.iso_face_points.clear()
        self.check_bounding[:] = False
        self._marked_around[:] = False

    def _mark_for_bounding(self, celli):
        self.check_bounding[celli] = True
        self._marked_around[celli] = True
        self.check_bounding[self.mesh.cell_cells[celli]] = True

    def set_vertex_values(self, alpha):
        """Point values for the reconstruction, or smoothed cell normals if grad_alpha_normal."""
        if self.params.grad_alpha_normal:
            if self.alpha_boundary is None:
                raise ValueError("grad_alpha_normal requires the boundary field of alpha")
            grad = compute_cell_gradients(self.mesh, alpha, self.alpha_boundary)
            return normalise_and_smooth(self.mesh, grad, self.weights, self.synchronizer.sync_point_values)

        ap = interpolate_to_points(self.mesh, alpha, self.weights, self.synchronizer.sync_point_values)
        self.geometry.set_point_values(ap)
        return None

    def estimate(self, alpha, phi, U, dVf, dt):
        """Overwrite dVf on the downwind faces of all surface cells.

        Parameters
        ----------
        alpha : ndarray (n_cells,)
        phi : ndarray (n_faces,)
            Volumetric face flux
        U : ndarray (n_cells, 3)
            Cell velocity
        dVf : ndarray (n_faces,)
            Transported volume, seeded with the upwind estimate; modified in place
        dt : float

        Returns
        -------
        int
            Number of surface cells over all partitions
        """
        mesh = self.mesh
        debug = self.params.debug
        self.reset()

        cell_normals = self.set_vertex_values(alpha)
        self.U_interp.update(U)

        for celli in np.flatnonzero(self.classifier.surface_cell_mask(alpha)):
            celli = int(celli)
            self.surface_cells.append(celli)
            self.check_bounding[celli] = True

            if debug:
                log.debug(f"Cell {celli} with alpha1 = {alpha[celli]} and 1-alpha1 = {1.0 - alpha[celli]}")

            if cell_normals is not None:
                self.geometry.set_cell_vertex_values(celli, cell_normals[celli])

            cut = self.geometry.classify_and_cut_cell(
                celli, alpha[celli], self.params.iso_face_tol, self.params.max_cut_iterations
            )
            if not cut.is_cut:
                continue

            f0 = cut.iso_value
            x0 = cut.iso_face_centre
            n0 = cut.iso_face_area / np.sqrt(cut.iso_face_area @ cut.iso_face_area)
            if self.params.write_iso_faces:
                self.iso_face_points.append(cut.iso_face_points)

            Un0 = float(self.U_interp.interpolate(x0, celli) @ n0)
            self.interface_records[celli] = InterfaceRecord(f0, x0, n0, Un0)

            if debug:
                log.debug(f"Cell {celli}: x0 = {x0}, n0 = {n0}, f0 = {f0}, Un0 = {Un0}")

            for facei in mesh.cell_faces[celli]:
                facei = int(facei)
                if mesh.is_internal_face(facei):
                    if celli == mesh.owner_cells[facei]:
                        downwind = phi[facei] > 10 * SMALL
                        other = mesh.neighbor_cells[facei]
                    else:
                        downwind = phi[facei] < -10 * SMALL
                        other = mesh.owner_cells[facei]

                    if downwind:
                        dVf[facei] = self.geometry.time_integrated_face_flux(
                            facei, x0, n0, Un0, f0, dt, phi[facei], mesh.face_areas[facei]
                        )

                    # The interface may enter the neighbour and its neighbours during the step
                    self._mark_for_bounding(other)
                else:
                    self.boundary_records.append(BoundaryInterfaceRecord(facei, f0, x0, n0, Un0))

        self._boundary_face_transport(phi, dVf, dt)
        self.synchronizer.sync_face_transport(dVf)
        self._sync_check_bounding()

        n_surface_cells = self.synchronizer.global_sum(len(self.surface_cells))
        log.info(f"Number of isoAdvector surface cells = {n_surface_cells}")
        return n_surface_cells

    def _sync_check_bounding(self):
        """Bounding marks that cut cells of a neighbouring partition place on this side.

        Per processor face the remote cell sends 2 if it is a cut surface cell
        (its neighbour here and that cell's neighbours are marked) and 1 if its
        neighbourhood was marked (its neighbour here is marked). A second
        exchange forwards neighbourhoods marked from the other side, whose
        cells may lie on a third partition.
        """
        if not self.synchronizer.parallel:
            return

        code = self._marked_around.astype(np.int64)
        code[list(self.interface_records)] = 2
        remote = self.synchronizer.exchange_patch_cell_values(code)

        owner = self.mesh.owner_cells
        for patchi, remote_code in remote.items():
            cells = owner[self.mesh.patches[patchi].faces()]
            self.check_bounding[cells[remote_code >= 1]] = True
            for celli in cells[remote_code == 2]:
                self._mark_for_bounding(celli)

        remote = self.synchronizer.exchange_patch_cell_values(self._marked_around.astype(np.int64))
        for patchi, remote_code in remote.items():
            cells = owner[self.mesh.patches[patchi].faces()]
            self.check_bounding[cells[remote_code == 1]] = True

    def _boundary_face_transport(self, phi, dVf, dt):
        """Outflow through boundary faces of surface cells, deferred until after the cell loop."""
        mesh = self.mesh
        for rec in self.boundary_records:
            patchi = mesh.which_patch(rec.face)
            if patchi >= 0 and mesh.patches[patchi].kind == "empty":
                continue
            phi_f = phi[rec.face]
            if phi_f > 10 * SMALL:
                dVf[rec.face] = self.geometry.time_integrated_face_flux(
                    rec.face, rec.iso_centre, rec.normal, rec.normal_speed, rec.iso_value,
                    dt, phi_f, mesh.face_areas[rec.face],
                )
                self.synchronizer.register_face(rec.face)
