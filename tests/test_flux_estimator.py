"""Tests for surface cell detection and the geometric face transport."""

import numpy as np
import pytest

from conftest import face_between
from fv import BoundaryField, upwind_face_transport
from geometry import PlaneInterfaceGeometry
from solvers import FluxEstimator, IsoAdvectorParameters, ParallelFluxSynchronizer, SurfaceCellClassifier


class TestSurfaceCells:
    @pytest.mark.parametrize("alpha,expected", [(1e-9, False), (0.5, True), (1.0 - 1e-9, False), (2e-8, True)])
    def test_is_surface_cell(self, alpha, expected):
        classifier = SurfaceCellClassifier(1e-8)
        assert classifier.is_surface_cell(np.array([alpha]), 0) is expected

    def test_mask(self):
        classifier = SurfaceCellClassifier(1e-8)
        alpha = np.array([0.0, 1e-9, 0.3, 1.0 - 1e-9, 1.0])
        assert classifier.surface_cell_mask(alpha).tolist() == [False, False, True, False, False]


def make_estimator(case, **params):
    params = IsoAdvectorParameters(**params)
    alpha_boundary = BoundaryField(case.mesh, case.boundary_conditions)
    alpha_boundary.evaluate(case.alpha)
    estimator = FluxEstimator(
        case.mesh, PlaneInterfaceGeometry(case.mesh), params, ParallelFluxSynchronizer(case.mesh), alpha_boundary
    )
    dVf = upwind_face_transport(case.mesh, case.phi, case.alpha, alpha_boundary, 0.1)
    return estimator, dVf


class TestFluxEstimator:
    def test_column(self, column_case):
        mesh = column_case.mesh
        estimator, dVf = make_estimator(column_case, write_iso_faces=True)

        n_surface = estimator.estimate(column_case.alpha, column_case.phi, column_case.U, dVf, 0.1)

        assert n_surface == 1
        assert estimator.surface_cells == [3]
        # The interface at x = 3.5 does not reach x = 4 within the step
        assert dVf[face_between(mesh, 3, 4)] == pytest.approx(0.0, abs=1e-12)
        assert dVf[face_between(mesh, 2, 3)] == pytest.approx(0.1)
        # Surface cell, its neighbours and their neighbours
        assert estimator.check_bounding.tolist() == [False] + [True] * 5 + [False] * 4

        record = estimator.interface_records[3]
        assert record.iso_centre == pytest.approx([3.5, 0.5, 0.5], abs=1e-8)
        assert record.normal == pytest.approx([1.0, 0.0, 0.0], abs=1e-8)
        assert record.normal_speed == pytest.approx(1.0)
        assert len(estimator.iso_face_points) == 1
        # Empty side patches carry no transport
        assert all(mesh.patches[mesh.which_patch(r.face)].kind == "empty" for r in estimator.boundary_records)

    def test_interface_crossing_face(self, column_case):
        """Plane at x = 3.5 moving at unit speed reaches x = 4 at t = 0.5."""
        mesh = column_case.mesh
        estimator, dVf = make_estimator(column_case)

        estimator.estimate(column_case.alpha, column_case.phi, column_case.U, dVf, 0.8)

        assert dVf[face_between(mesh, 3, 4)] == pytest.approx(0.3)

    def test_outflow_boundary(self):
        from cases import column_case

        case = column_case(n_cells=4, length=4.0, interface=3.5)
        mesh = case.mesh
        estimator, dVf = make_estimator(case)
        xmax = mesh.patches[mesh.patch_index("xmax")].start

        estimator.estimate(case.alpha, case.phi, case.U, dVf, 0.8)

        assert estimator.surface_cells == [3]
        assert dVf[xmax] == pytest.approx(0.3)

    def test_gradient_normals(self, column_case):
        estimator, dVf = make_estimator(column_case, grad_alpha_normal=True)
        estimator.estimate(column_case.alpha, column_case.phi, column_case.U, dVf, 0.1)

        record = estimator.interface_records[3]
        assert record.normal == pytest.approx([1.0, 0.0, 0.0], abs=1e-8)
        assert record.iso_centre[0] == pytest.approx(3.5, abs=1e-8)

    def test_gradient_normals_need_boundary_field(self, column_case):
        params = IsoAdvectorParameters(grad_alpha_normal=True)
        mesh = column_case.mesh
        estimator = FluxEstimator(mesh, PlaneInterfaceGeometry(mesh), params, ParallelFluxSynchronizer(mesh))
        with pytest.raises(ValueError):
            estimator.set_vertex_values(column_case.alpha)

    def test_state_reset_every_step(self, column_case):
        estimator, dVf = make_estimator(column_case)
        estimator.estimate(column_case.alpha, column_case.phi, column_case.U, dVf, 0.1)

        alpha = np.zeros(column_case.mesh.n_cells)
        assert estimator.estimate(alpha, column_case.phi, column_case.U, dVf, 0.1) == 0
        assert estimator.surface_cells == []
        assert estimator.interface_records == {}
        assert not estimator.check_bounding.any()
