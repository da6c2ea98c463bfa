"""End-to-end tests of the isoAdvector time step."""

import numpy as np
import pytest

from conftest import face_between
from meshing import create_structured_mesh
from solvers import IsoAdvector, IsoAdvectorParameters
from solvers.vof import read_cell_set, read_obj_faces


def make_solver(case, **params):
    return IsoAdvector(
        case.mesh, case.alpha, case.phi, case.U, IsoAdvectorParameters(**params), case.boundary_conditions
    )


class TestColumn:
    def test_single_step(self, column_case):
        solver = make_solver(column_case)
        alpha = solver.advect(0.1)

        expected = np.array([1.0, 1.0, 1.0, 0.6, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0])
        assert alpha == pytest.approx(expected, abs=1e-9)
        assert alpha is column_case.alpha
        assert np.all((alpha >= 0.0) & (alpha <= 1.0))

        assert solver.time == pytest.approx(0.1)
        assert solver.time_index == 1
        assert solver.metrics.n_steps == 1
        assert solver.metrics.n_surface_cells == 1
        assert solver.surface_cells == [3]
        assert len(solver.time_series) == 1
        # Inflow of the tracked phase through xmin
        assert solver.metrics.phase_volume == pytest.approx(3.6, abs=1e-9)

    def test_inflow_face(self, column_case):
        solver = make_solver(column_case)
        solver.advect(0.1)
        xmin = column_case.mesh.patches[column_case.mesh.patch_index("xmin")].start
        assert solver.phi[xmin] == pytest.approx(-1.0)
        assert solver.dVf[xmin] == pytest.approx(-0.1)

    def test_interface_moves_with_flow(self, column_case):
        solver = make_solver(column_case)
        solver.run(10, 0.1)
        assert column_case.alpha == pytest.approx([1.0] * 4 + [0.5] + [0.0] * 5, abs=1e-8)
        assert solver.time_index == 10

    def test_mass_flux(self, column_case):
        solver = make_solver(column_case)
        solver.advect(0.1)
        rho_phi = solver.get_rho_phi(1000.0, 1.0, 0.1)
        mesh = column_case.mesh
        assert rho_phi[face_between(mesh, 2, 3)] == pytest.approx(1000.0)
        assert rho_phi[face_between(mesh, 5, 6)] == pytest.approx(1.0)

    def test_accessors(self, column_case):
        solver = make_solver(column_case)
        solver.advect(0.1)
        assert solver.cell_is_cut(3)
        assert not solver.cell_is_cut(0)
        assert solver.get_normal(3) == pytest.approx([1.0, 0.0, 0.0], abs=1e-8)
        assert np.array_equal(solver.get_surface_area(0), np.zeros(3))
        assert np.array_equal(solver.get_iso_face_centre(7), np.zeros(3))


class TestDisc:
    def test_conservative_without_clipping(self, disc_case):
        volume0 = disc_case.alpha @ disc_case.mesh.cell_volumes
        solver = make_solver(disc_case, clip=False)
        solver.run(5, 0.01)

        assert disc_case.alpha @ disc_case.mesh.cell_volumes == pytest.approx(volume0, rel=1e-12)
        assert solver.time_series.phase_volume[-1] == pytest.approx(volume0, rel=1e-12)

    def test_bounded_with_clipping(self, disc_case):
        solver = make_solver(disc_case)
        solver.run(5, 0.01)
        assert disc_case.alpha.min() >= 0.0
        assert disc_case.alpha.max() <= 1.0
        assert solver.metrics.n_surface_cells > 0

    def test_translation_moves_centroid(self, disc_case):
        mesh = disc_case.mesh
        centroid0 = (disc_case.alpha * mesh.cell_volumes) @ mesh.cell_centers / (disc_case.alpha @ mesh.cell_volumes)
        solver = make_solver(disc_case)
        solver.run(10, 0.01)
        alpha = solver.alpha
        centroid = (alpha * mesh.cell_volumes) @ mesh.cell_centers / (alpha @ mesh.cell_volumes)
        assert centroid[:2] - centroid0[:2] == pytest.approx([0.1, 0.05], abs=1e-2)


class TestBruteForceBounding:
    @pytest.fixture
    def solver(self):
        mesh = create_structured_mesh(8)
        alpha = np.zeros(mesh.n_cells)
        phi = np.zeros(mesh.n_faces)
        U = np.zeros((mesh.n_cells, 3))
        return IsoAdvector(mesh, alpha, phi, U, snap_tol=1e-6)

    def test_snap_and_clip(self, solver):
        solver.alpha[:] = [0.0, 5e-7, 0.3, 1.0 - 1e-6, 1.0 - 5e-7, 1.0, 1.2, -0.1]
        solver.apply_brute_force_bounding()
        assert solver.alpha.tolist() == [0.0, 0.0, 0.3, 1.0, 1.0, 1.0, 1.0, 0.0]

    def test_idempotent(self, solver, rng):
        solver.alpha[:] = rng.uniform(-0.1, 1.1, solver.mesh.n_cells)
        solver.alpha[:2] = [1e-6, 1.0 - 1e-6]
        once = solver.apply_brute_force_bounding().copy()
        twice = solver.apply_brute_force_bounding()
        assert np.array_equal(once, twice)

    def test_no_clip_keeps_overshoot(self):
        mesh = create_structured_mesh(2)
        alpha = np.array([1.2, -0.1])
        solver = IsoAdvector(mesh, alpha, np.zeros(mesh.n_faces), np.zeros((2, 3)), clip=False)
        solver.apply_brute_force_bounding()
        assert alpha.tolist() == [1.2, -0.1]


class TestValidation:
    def test_alpha_must_be_float_array(self, column_case):
        with pytest.raises(ValueError):
            IsoAdvector(column_case.mesh, column_case.alpha.tolist(), column_case.phi, column_case.U)
        with pytest.raises(ValueError):
            IsoAdvector(column_case.mesh, column_case.alpha.astype(np.float32), column_case.phi, column_case.U)

    def test_shapes(self, column_case):
        with pytest.raises(ValueError):
            IsoAdvector(column_case.mesh, column_case.alpha, column_case.phi[:-1], column_case.U)
        with pytest.raises(ValueError):
            IsoAdvector(column_case.mesh, column_case.alpha, column_case.phi, column_case.U[:, :2])

    def test_time_step(self, column_case):
        solver = make_solver(column_case)
        with pytest.raises(ValueError):
            solver.advect(0.0)

    def test_old_cell_volumes_shape(self, column_case):
        solver = make_solver(column_case)
        with pytest.raises(ValueError):
            solver.advect(0.1, old_cell_volumes=np.ones(3))

    def test_unknown_patch(self, column_case):
        with pytest.raises(KeyError):
            IsoAdvector(column_case.mesh, column_case.alpha, column_case.phi, column_case.U,
                        boundary_conditions={"inlet": 1.0})


def test_static_mesh_volume_ratio(column_case):
    """Old volumes equal to the current ones leave the step unchanged."""
    reference = column_case.alpha.copy()
    solver = make_solver(column_case)
    solver.advect(0.1, old_cell_volumes=column_case.mesh.cell_volumes.copy())

    other = IsoAdvector(column_case.mesh, reference, column_case.phi, column_case.U,
                        boundary_conditions=column_case.boundary_conditions)
    other.advect(0.1)
    assert np.array_equal(column_case.alpha, reference)


def test_moving_mesh_volume_ratio(column_case):
    """Cells that were 10 % smaller scale alpha by 0.9 before the transport is applied."""
    solver = make_solver(column_case)
    alpha = solver.advect(0.1, old_cell_volumes=0.9 * column_case.mesh.cell_volumes)

    # Upwind and plane transport are estimated from the unscaled field
    expected = np.array([0.9, 0.9, 0.9, 0.45 + 0.1, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0])
    assert alpha == pytest.approx(expected, abs=1e-9)


class TestDivergentFlux:
    """Disc in a face flux with random divergence: cells can be compressed beyond alpha = 1."""

    @pytest.fixture
    def case(self, disc_case, rng):
        mesh = disc_case.mesh
        n_int = mesh.n_internal_faces
        disc_case.phi[:n_int] += 0.5 * rng.uniform(-1.0, 1.0, n_int) * mesh.face_areas[:n_int]
        return disc_case

    def test_conservative_before_fallback(self, case):
        mesh = case.mesh
        volume0 = case.alpha @ mesh.cell_volumes
        solver = make_solver(case, clip=False)

        outflow = 0.0
        for _ in range(5):
            solver.advect(0.01)
            outflow += solver.dVf[mesh.n_internal_faces:].sum()

        assert case.alpha @ mesh.cell_volumes == pytest.approx(volume0 - outflow, rel=1e-12)
        assert max(solver.time_series.alpha_max_before) > 1.0

    def test_bounded_after_fallback(self, case):
        solver = make_solver(case)
        solver.run(5, 0.01)
        assert case.alpha.min() >= 0.0
        assert case.alpha.max() <= 1.0
        assert np.all(np.abs(solver.dVf) <= np.abs(solver.phi * 0.01) + 1e-15)


class TestDiagnostics:
    def test_write_cell_sets_and_iso_faces(self, column_case, tmp_path):
        solver = make_solver(column_case, write_surf_cells=True, write_bounded_cells=True, write_iso_faces=True)
        solver.advect(0.1)
        written = solver.write_diagnostics(tmp_path)

        assert len(written) == 3
        assert read_cell_set(tmp_path / "1" / "surfCells").tolist() == [3]
        assert read_cell_set(tmp_path / "1" / "boundedCells").size == 0

        faces = read_obj_faces(tmp_path / "isoFaces" / "isoFaces_1.obj")
        assert len(faces) == 1
        assert faces[0].shape == (4, 3)
        assert faces[0][:, 0] == pytest.approx(np.full(4, 3.5), abs=1e-8)

    def test_nothing_enabled(self, column_case, tmp_path):
        solver = make_solver(column_case)
        solver.advect(0.1)
        assert solver.write_diagnostics(tmp_path) == []

    def test_run_write_interval(self, column_case, tmp_path):
        solver = make_solver(column_case, write_surf_cells=True)
        solver.run(3, 0.1, output_dir=tmp_path, write_interval=2)
        assert sorted(p.name for p in tmp_path.iterdir()) == ["2", "3"]


class TestParameters:
    @pytest.mark.parametrize(
        "kwargs",
        [
            {"n_alpha_bounds": -1},
            {"max_cut_iterations": 0},
            {"iso_face_tol": -1e-3},
            {"surf_cell_tol": 0.5},
            {"snap_tol": 0.6},
        ],
    )
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            IsoAdvectorParameters(**kwargs)

    def test_mlflow_params_are_strings(self):
        params = IsoAdvectorParameters().to_mlflow()
        assert params["n_alpha_bounds"] == "3"
        assert all(isinstance(v, str) for v in params.values())

    def test_time_series_batch(self, column_case):
        solver = make_solver(column_case)
        solver.run(2, 0.1)
        df = solver.time_series.to_dataframe()
        assert len(df) == 2
        assert df["time"].tolist() == pytest.approx([0.1, 0.2])
        batch = solver.time_series.to_mlflow_batch()
        keys = {key for key, *_ in batch}
        assert "time" not in keys
        assert {"n_surface_cells", "alpha_max_before", "phase_volume"} <= keys
        assert len(batch) == 2 * len(keys)
