"""Pytest configuration and fixtures for the VOF advection tests."""

import sys
from pathlib import Path

import numpy as np
import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

EMPTY_YZ = {name: "empty" for name in ("ymin", "ymax", "zmin", "zmax")}


@pytest.fixture
def unit_cube():
    """Single unit cube cell."""
    from meshing import create_structured_mesh

    return create_structured_mesh(1, 1, 1)


@pytest.fixture
def box_mesh():
    """3x3x3 unit cubes."""
    from meshing import create_structured_mesh

    return create_structured_mesh(3, 3, 3, Lx=3.0, Ly=3.0, Lz=3.0)


@pytest.fixture
def column_mesh():
    """Four unit cells along x, one cell thick, y and z patches empty."""
    from meshing import create_structured_mesh

    return create_structured_mesh(4, Lx=4.0, Ly=1.0, Lz=1.0, patch_kinds=EMPTY_YZ)


@pytest.fixture
def column_case():
    """Ten unit cells moving along +x at unit speed, interface at x = 3.5."""
    from cases import column_case

    return column_case()


@pytest.fixture
def disc_case():
    """Translated disc on a 16x16 mesh, away from the boundaries."""
    from cases import disc_case

    return disc_case(n=16, radius=0.2, centre=(0.4, 0.4), velocity=(1.0, 0.5, 0.0))


def face_between(mesh, a, b):
    """Index of the internal face shared by cells a and b."""
    for f in mesh.cell_faces[a]:
        if f < mesh.n_internal_faces and {mesh.owner_cells[f], mesh.neighbor_cells[f]} == {a, b}:
            return int(f)
    raise KeyError(f"Cells {a} and {b} share no face")


@pytest.fixture
def rng():
    return np.random.default_rng(1234)
