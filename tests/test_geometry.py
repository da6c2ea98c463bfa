"""Tests for plane reconstruction in cells and the swept volume through faces."""

import numpy as np
import pytest
from scipy.integrate import trapezoid

from geometry import (
    CellPointInterpolation,
    CellStatus,
    IsoCutCell,
    IsoCutFace,
    PlaneInterfaceGeometry,
    clip_polygon,
    normalise_and_smooth,
    order_planar_points,
    submerged_area,
)
from meshing import create_structured_mesh

UNIT_SQUARE = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [1.0, 1.0, 0.0], [0.0, 1.0, 0.0]])


class TestPolygon:
    def test_clip_square(self):
        x0 = np.array([0.25, 0.0, 0.0])
        n0 = np.array([1.0, 0.0, 0.0])
        clipped = clip_polygon(UNIT_SQUARE, x0, n0)
        assert clipped.shape == (4, 3)
        assert np.all(clipped[:, 0] <= 0.25 + 1e-15)
        assert submerged_area(UNIT_SQUARE, x0, n0) == pytest.approx(0.25)

    def test_clip_diagonal(self):
        n0 = np.array([1.0, 1.0, 0.0]) / np.sqrt(2.0)
        assert submerged_area(UNIT_SQUARE, np.array([0.5, 0.5, 0.0]), n0) == pytest.approx(0.5)
        assert submerged_area(UNIT_SQUARE, np.zeros(3), n0) == pytest.approx(0.0)

    def test_fully_submerged_and_dry(self):
        n0 = np.array([0.0, 1.0, 0.0])
        assert submerged_area(UNIT_SQUARE, np.array([0.0, 2.0, 0.0]), n0) == pytest.approx(1.0)
        assert clip_polygon(UNIT_SQUARE, np.array([0.0, -1.0, 0.0]), n0).shape[0] == 0

    def test_order_planar_points(self, rng):
        shuffled = UNIT_SQUARE[rng.permutation(4)]
        ordered = order_planar_points(shuffled, np.array([0.0, 0.0, 1.0]))
        S = sum(np.cross(ordered[i], ordered[(i + 1) % 4]) for i in range(4)) / 2.0
        assert np.allclose(S, [0.0, 0.0, 1.0])


class TestIsoCutCell:
    def test_axis_aligned_cut(self, unit_cube):
        cutter = IsoCutCell(unit_cube, unit_cube.points[:, 0].copy())
        cut = cutter.vof_cut_cell(0, 0.3, 1e-10, 100)

        assert cut.status == CellStatus.CUT
        assert cut.converged
        assert cut.iso_face_centre == pytest.approx([0.7, 0.5, 0.5], abs=1e-8)
        # Area vector points out of the tracked phase, which lies at x > 0.7
        assert cut.iso_face_area == pytest.approx([-1.0, 0.0, 0.0], abs=1e-8)
        assert cut.iso_value == pytest.approx(0.7, abs=1e-8)
        assert cut.iso_face_points.shape == (4, 3)

    @pytest.mark.parametrize("alpha", [0.01, 0.37, 0.5, 0.93])
    def test_oblique_cut_recovers_volume(self, box_mesh, alpha):
        values = box_mesh.points @ np.array([1.0, 2.0, 0.5])
        cutter = IsoCutCell(box_mesh, values)
        cut = cutter.vof_cut_cell(13, alpha, 1e-12, 200)

        assert cut.is_cut
        n0 = cut.iso_face_area / np.linalg.norm(cut.iso_face_area)
        assert n0 == pytest.approx(-np.array([1.0, 2.0, 0.5]) / np.sqrt(5.25), abs=1e-8)
        V = box_mesh.cell_volumes[13]
        assert cutter.sub_volume(13, cut.iso_face_centre, n0) / V == pytest.approx(alpha, abs=1e-8)

    def test_empty_and_full_cells(self, unit_cube):
        cutter = IsoCutCell(unit_cube, unit_cube.points[:, 0].copy())
        assert cutter.vof_cut_cell(0, 0.0, 1e-10, 100).status == CellStatus.BELOW
        assert cutter.vof_cut_cell(0, 1.0, 1e-10, 100).status == CellStatus.ABOVE

    def test_uniform_vertex_values_are_not_cut(self, unit_cube):
        cutter = IsoCutCell(unit_cube, np.full(unit_cube.n_points, 0.4))
        assert cutter.vof_cut_cell(0, 0.4, 1e-10, 100).status == CellStatus.BELOW
        assert cutter.vof_cut_cell(0, 0.6, 1e-10, 100).status == CellStatus.ABOVE


class TestIsoCutFace:
    @pytest.fixture
    def xmax_face(self, unit_cube):
        return unit_cube.patches[unit_cube.patch_index("xmax")].start

    def test_plane_sweeping_face(self, unit_cube, xmax_face):
        """The plane reaches x = 1 halfway through the step, the face is then fully submerged."""
        cutter = IsoCutFace(unit_cube)
        x0 = np.array([0.5, 0.5, 0.5])
        n0 = np.array([1.0, 0.0, 0.0])
        assert cutter.time_integrated_area(xmax_face, x0, n0, 1.0, 1.0) == pytest.approx(0.5)
        assert cutter.time_integrated_face_flux(xmax_face, x0, n0, 1.0, 0.5, 1.0, 2.0, 1.0) == pytest.approx(1.0)

    def test_oblique_plane_matches_quadrature(self, unit_cube, xmax_face):
        cutter = IsoCutFace(unit_cube)
        n0 = np.array([1.0, 1.0, 0.3])
        n0 /= np.linalg.norm(n0)
        x0 = np.array([0.6, 0.2, 0.5])
        un0, dt = 0.8, 0.9

        t = np.linspace(0.0, dt, 4001)
        area = [cutter.submerged_fraction(xmax_face, x0 + un0 * ti * n0, n0) for ti in t]
        expected = trapezoid(area, t)

        assert cutter.time_integrated_area(xmax_face, x0, n0, un0, dt) == pytest.approx(expected, abs=1e-6)

    def test_stationary_plane(self, unit_cube, xmax_face):
        cutter = IsoCutFace(unit_cube)
        x0 = np.array([1.0, 0.25, 0.5])
        n0 = np.array([0.0, 1.0, 0.0])
        dVf = cutter.time_integrated_face_flux(xmax_face, x0, n0, 0.0, 0.0, 0.1, 3.0, 1.0)
        assert dVf == pytest.approx(3.0 * 0.1 * 0.25)

    def test_bounded_by_face_flux(self, unit_cube, xmax_face):
        cutter = IsoCutFace(unit_cube)
        x0 = np.array([2.0, 0.5, 0.5])
        n0 = np.array([1.0, 0.0, 0.0])
        dVf = cutter.time_integrated_face_flux(xmax_face, x0, n0, 1.0, 0.0, 0.5, 0.8, 1.0)
        assert dVf == pytest.approx(0.4)
        assert abs(dVf) <= 0.8 * 0.5


class TestPlaneInterfaceGeometry:
    def test_point_values_shared_with_cutter(self, unit_cube):
        geometry = PlaneInterfaceGeometry(unit_cube)
        geometry.set_point_values(unit_cube.points[:, 1])
        cut = geometry.classify_and_cut_cell(0, 0.25, 1e-10, 100)
        assert cut.iso_face_centre[1] == pytest.approx(0.75, abs=1e-8)

    def test_cell_vertex_values_from_normal(self, unit_cube):
        geometry = PlaneInterfaceGeometry(unit_cube)
        geometry.set_cell_vertex_values(0, np.array([0.0, 0.0, 1.0]))
        cut = geometry.classify_and_cut_cell(0, 0.4, 1e-10, 100)
        assert cut.iso_face_area == pytest.approx([0.0, 0.0, -1.0], abs=1e-8)
        assert cut.iso_face_centre[2] == pytest.approx(0.6, abs=1e-8)


class TestInterpolation:
    def test_requires_update_and_reproduces_constant(self, box_mesh):
        interp = CellPointInterpolation(box_mesh)
        with pytest.raises(RuntimeError):
            interp.interpolate(box_mesh.cell_centers[0], 0)

        values = np.full(box_mesh.n_cells, 2.0)
        interp.update(values)
        assert interp.interpolate(box_mesh.cell_centers[13], 13) == pytest.approx(2.0)
        assert interp.interpolate(np.array([1.2, 1.4, 1.9]), 13) == pytest.approx(2.0)

    def test_vector_field(self, box_mesh):
        interp = CellPointInterpolation(box_mesh)
        U = np.tile([1.0, 0.5, 0.0], (box_mesh.n_cells, 1))
        interp.update(U)
        assert interp.interpolate(np.array([1.1, 1.1, 1.1]), 13) == pytest.approx([1.0, 0.5, 0.0])


def test_smoothed_normals_are_unit():
    mesh = create_structured_mesh(4, 4, 1, Lz=0.25)
    grad = np.tile([0.0, 3.0, 0.0], (mesh.n_cells, 1))
    normals = normalise_and_smooth(mesh, grad)
    assert np.allclose(normals, [0.0, 1.0, 0.0])
