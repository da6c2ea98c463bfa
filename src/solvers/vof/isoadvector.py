"""Geometric VOF advection of a volume fraction field (isoAdvector).

One call to ``advect`` moves alpha over one time step:

1. seed the face transport dVf with the upwind estimate phi * alpha_up * dt
2. replace it on the downwind faces of surface cells by the volume swept by
   the reconstructed plane
3. rescale alpha for mesh motion (optional)
4. redistribute dVf so the update stays inside [0, 1]
5. alpha -= surfaceIntegrate(dVf)
6. snap and clip what remains out of bounds
"""

import logging
import time
from pathlib import Path

import mlflow
import numpy as np

from fv.assembly.divergence import surface_integrate
from fv.boundary_conditions import BoundaryField
from fv.discretization.convection.upwind import upwind_face_transport
from geometry.iso_cut_face import SMALL
from geometry.provider import PlaneInterfaceGeometry
from solvers.datastructures import IsoAdvectorParameters, Metrics, TimeSeries

from .diagnostics import write_cell_set, write_iso_faces_obj
from .flux_estimator import FluxEstimator
from .flux_limiter import FluxLimiter
from .parallel import ParallelFluxSynchronizer

log = logging.getLogger(__name__)


class IsoAdvector:
    """Advection of alpha with geometric face fluxes and conservative bounding.

    Handles:
    - Upwind seeding and geometric flux estimation in surface cells
    - Conservative flux limiting and the clip/snap fallback
    - Processor patch synchronisation in decomposed runs
    - Per-step metrics and MLflow logging

    Parameters
    ----------
    mesh : MeshData
        Mesh (or partition of a decomposed mesh)
    alpha : ndarray (n_cells,)
        Volume fraction, modified in place by advect()
    phi : ndarray (n_faces,)
        Volumetric face flux
    U : ndarray (n_cells, 3)
        Cell velocity
    params : IsoAdvectorParameters, optional
        If not provided, kwargs are used to create params.
    boundary_conditions : dict, optional
        Patch name -> condition on alpha, see BoundaryField
    geometry : InterfaceGeometryProvider, optional
        Defaults to PlaneInterfaceGeometry
    comm : Communicator, optional
        Partition communicator, serial if not given
    **kwargs
        Configuration parameters passed to IsoAdvectorParameters if params is None.
    """

    Parameters = IsoAdvectorParameters

    def __init__(self, mesh, alpha, phi, U, params=None, boundary_conditions=None,
                 geometry=None, comm=None, **kwargs):
        if params is None:
            params = self.Parameters(**kwargs)
        self.params = params
        self.mesh = mesh

        if not isinstance(alpha, np.ndarray) or alpha.dtype != np.float64:
            raise ValueError("alpha must be a float64 numpy array, it is updated in place")
        self.alpha = self._check_field("alpha", alpha, (mesh.n_cells,))
        self.phi = self._check_field("phi", np.asarray(phi, dtype=np.float64), (mesh.n_faces,))
        self.U = self._check_field("U", np.asarray(U, dtype=np.float64), (mesh.n_cells, 3))
        self.dVf = np.zeros(mesh.n_faces)

        self.alpha_boundary = BoundaryField(mesh, boundary_conditions)
        self.geometry = geometry if geometry is not None else PlaneInterfaceGeometry(mesh)
        self.synchronizer = ParallelFluxSynchronizer(mesh, comm, debug=params.debug)
        self.estimator = FluxEstimator(mesh, self.geometry, params, self.synchronizer, self.alpha_boundary)
        self.limiter = FluxLimiter(mesh, self.synchronizer, params.n_alpha_bounds, debug=params.debug)

        self.metrics = Metrics()
        self.time_series = TimeSeries()
        self.advection_time = 0.0
        self.time = 0.0
        self.time_index = 0
        self._start_time = time.perf_counter()

        self.correct_boundary_conditions()

    @staticmethod
    def _check_field(name, values, shape):
        if values.shape != shape:
            raise ValueError(f"{name} has shape {values.shape}, expected {shape}")
        return values

    @property
    def comm(self):
        return self.synchronizer.comm

    # ------------------------------------------------------------------
    # Time step
    # ------------------------------------------------------------------

    def correct_boundary_conditions(self):
        """Re-evaluate the boundary values of alpha, including processor patches."""
        remote = self.synchronizer.exchange_patch_cell_values(self.alpha)
        self.alpha_boundary.evaluate(self.alpha, remote)

    def advect(self, dt, old_cell_volumes=None):
        """Advance alpha by one time step.

        Parameters
        ----------
        dt : float
            Time step
        old_cell_volumes : ndarray, optional
            Cell volumes at the start of the step on a moving mesh; alpha is
            rescaled by old/new volume before bounding.

        Returns
        -------
        alpha : ndarray
        """
        if dt <= 0:
            raise ValueError(f"Time step must be positive, got {dt}")
        advection_start = time.perf_counter()
        alpha = self.alpha
        mesh = self.mesh

        # Upwind seed, boundary values of alpha are needed first
        self.correct_boundary_conditions()
        self.dVf[:] = upwind_face_transport(mesh, self.phi, alpha, self.alpha_boundary, dt)

        # Geometric transport on the downwind faces of surface cells
        n_surface_cells = self.estimator.estimate(alpha, self.phi, self.U, self.dVf, dt)

        if old_cell_volumes is not None:
            old_cell_volumes = np.asarray(old_cell_volumes, dtype=np.float64)
            if old_cell_volumes.shape != (mesh.n_cells,):
                raise ValueError(f"old_cell_volumes has shape {old_cell_volumes.shape}, expected {(mesh.n_cells,)}")
            alpha *= old_cell_volumes / mesh.cell_volumes

        stats = self.limiter.limit_fluxes(alpha, self.phi, self.dVf, dt, self.estimator.check_bounding)

        alpha -= surface_integrate(mesh, self.dVf)
        self.correct_boundary_conditions()

        max_alpha_minus_1 = self.synchronizer.global_max(float(alpha.max()) - 1.0)
        min_alpha = self.synchronizer.global_min(float(alpha.min()))
        log.info(f"isoAdvection: After conservative bounding: min(alpha) = {min_alpha}, "
                 f"max(alpha) = 1 + {max_alpha_minus_1}")

        self.apply_brute_force_bounding()

        self.time += dt
        self.time_index += 1
        self.advection_time += time.perf_counter() - advection_start
        elapsed = time.perf_counter() - self._start_time
        log.info(f"isoAdvection: time consumption = {int(100 * self.advection_time / (elapsed + SMALL))}%")

        self._record_step(dt, n_surface_cells, stats)
        return alpha

    def apply_brute_force_bounding(self):
        """Snap alpha near 0 and 1 and clip to [0, 1] (non-conservative)."""
        alpha = self.alpha
        changed = False

        snap_tol = self.params.snap_tol
        if snap_tol > 0:
            full = alpha >= 1.0 - snap_tol
            alpha[:] = alpha * ((alpha >= snap_tol) & ~full) + full
            changed = True

        if self.params.clip:
            np.clip(alpha, 0.0, 1.0, out=alpha)
            changed = True

        if changed:
            self.correct_boundary_conditions()
        return alpha

    def _record_step(self, dt, n_surface_cells, stats):
        sync = self.synchronizer
        n_bounded = sync.global_sum(int(self.limiter.cell_is_bounded.sum()))
        phase_volume = sync.global_sum(float(self.alpha @ self.mesh.cell_volumes))
        alpha_min = sync.global_min(float(self.alpha.min()))
        alpha_max = sync.global_max(float(self.alpha.max()))

        self.time_series.append(
            time=self.time,
            dt=dt,
            n_surface_cells=n_surface_cells,
            n_bounded_cells=n_bounded,
            alpha_min_before=stats["alpha_min_before"],
            alpha_max_before=stats["alpha_max_before"],
            alpha_min=alpha_min,
            alpha_max=alpha_max,
            phase_volume=phase_volume,
        )

        m = self.metrics
        m.n_steps += 1
        m.n_surface_cells = n_surface_cells
        m.n_bounded_cells = n_bounded
        m.max_overshoot = max(m.max_overshoot, stats["alpha_max_before"] - 1.0)
        m.min_undershoot = min(m.min_undershoot, stats["alpha_min_before"])
        m.parallel_inconsistencies = sync.global_sum(sync.n_inconsistent)
        m.advection_time_seconds = self.advection_time
        m.wall_time_seconds = time.perf_counter() - self._start_time
        m.phase_volume = phase_volume

    def run(self, n_steps, dt, output_dir=None, write_interval=0):
        """Advect for n_steps, logging per-step metrics to an active MLflow run.

        Diagnostics are written every write_interval steps (and after the last
        step) when output_dir is given.
        """
        for i in range(n_steps):
            self.advect(dt)

            if mlflow.active_run() and self.comm.rank == 0:
                mlflow.log_metrics(
                    {
                        "n_surface_cells": self.metrics.n_surface_cells,
                        "n_bounded_cells": self.metrics.n_bounded_cells,
                        "phase_volume": self.metrics.phase_volume,
                        "alpha_max_before": self.time_series.alpha_max_before[-1],
                        "alpha_min_before": self.time_series.alpha_min_before[-1],
                    },
                    step=self.time_index,
                )

            last = i == n_steps - 1
            if output_dir is not None and (last or (write_interval and self.time_index % write_interval == 0)):
                self.write_diagnostics(output_dir)

        return self.metrics

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def surface_cells(self):
        return self.estimator.surface_cells

    @property
    def cell_is_bounded(self):
        return self.limiter.cell_is_bounded

    @property
    def check_bounding(self):
        return self.estimator.check_bounding

    def get_rho_phi(self, rho1, rho2, dt):
        """Mass flux (rho1 - rho2) * dVf / dt + rho2 * phi of the last step."""
        return (np.asarray(rho1) - np.asarray(rho2)) * self.dVf / dt + np.asarray(rho2) * self.phi

    def _cut(self, celli):
        return self.geometry.classify_and_cut_cell(
            celli, self.alpha[celli], self.params.iso_face_tol, self.params.max_cut_iterations
        )

    def cell_is_cut(self, celli) -> bool:
        return self._cut(celli).is_cut

    def get_surface_area(self, celli):
        """Iso-face area vector of a cell, zero if the cell is not cut."""
        cut = self._cut(celli)
        return cut.iso_face_area.copy() if cut.is_cut else np.zeros(3)

    def get_normal(self, celli):
        """Unit iso-face normal (out of the tracked phase), zero if the cell is not cut."""
        S = self.get_surface_area(celli)
        mag_S = np.sqrt(S @ S)
        return S / mag_S if mag_S > 0.0 else S

    def get_iso_face_centre(self, celli):
        cut = self._cut(celli)
        return cut.iso_face_centre.copy() if cut.is_cut else np.zeros(3)

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def write_diagnostics(self, output_dir, time_index=None):
        """Write the enabled cell sets and iso faces of the last step.

        Cell sets go to output_dir/[processor<rank>/]<time_index>/ and iso faces
        (gathered on rank 0 in a decomposed run) to output_dir/isoFaces/.
        """
        time_index = self.time_index if time_index is None else time_index
        output_dir = Path(output_dir)
        comm = self.comm
        case_dir = output_dir / f"processor{comm.rank}" if comm.parallel else output_dir
        written = []

        if self.params.write_surf_cells:
            written.append(write_cell_set(case_dir / str(time_index) / "surfCells", "surfCells", self.surface_cells))

        if self.params.write_bounded_cells:
            written.append(write_cell_set(
                case_dir / str(time_index) / "boundedCells", "boundedCells", np.flatnonzero(self.cell_is_bounded)
            ))

        if self.params.write_iso_faces:
            faces = list(self.estimator.iso_face_points)
            if comm.parallel:
                gathered = self.synchronizer.gather(faces, root=0)
                faces = [f for proc_faces in gathered for f in proc_faces] if gathered is not None else None
            if faces is not None:
                written.append(write_iso_faces_obj(output_dir / "isoFaces" / f"isoFaces_{time_index}.obj", faces))

        return written
