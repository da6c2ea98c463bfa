"""Advection test cases: mesh, initial alpha, velocity, face flux and boundary conditions."""

from dataclasses import dataclass, field

import numpy as np

from meshing import create_structured_mesh, uniform_face_flux


@dataclass
class Case:
    mesh: object
    alpha: np.ndarray
    U: np.ndarray
    phi: np.ndarray
    boundary_conditions: dict = field(default_factory=dict)
    name: str = ""


def column_case(n_cells=10, length=10.0, velocity=1.0, interface=3.5, inlet_alpha=1.0):
    """1-D column filled below x = interface, moving along +x with an inflow of the tracked phase."""
    mesh = create_structured_mesh(
        n_cells, Lx=length, Ly=length / n_cells, Lz=length / n_cells,
        patch_kinds={name: "empty" for name in ("ymin", "ymax", "zmin", "zmax")},
    )
    x_left = mesh.cell_centers[:, 0] - 0.5 * mesh.dx
    alpha = np.clip((interface - x_left) / mesh.dx, 0.0, 1.0)

    U = np.tile([velocity, 0.0, 0.0], (mesh.n_cells, 1))
    phi = uniform_face_flux(mesh, U[0])
    return Case(mesh, alpha, U, phi, {"xmin": inlet_alpha}, name="column")


def disc_alpha(mesh, centre, radius, n_sub=8):
    """Volume fraction of a disc (cylinder along z) by sub-cell sampling on a structured mesh."""
    s = (np.arange(n_sub) + 0.5) / n_sub - 0.5
    sx, sy = np.meshgrid(s * mesh.dx, s * mesh.dy, indexing="ij")
    xs = mesh.cell_centers[:, 0, None] + sx.ravel()[None, :]
    ys = mesh.cell_centers[:, 1, None] + sy.ravel()[None, :]
    inside = (xs - centre[0]) ** 2 + (ys - centre[1]) ** 2 <= radius ** 2
    return inside.mean(axis=1)


def disc_case(n=32, radius=0.2, centre=(0.3, 0.3), velocity=(1.0, 0.5, 0.0), rotation=False, omega=2 * np.pi):
    """2-D disc on the unit square, translated by a uniform velocity or rotated about the domain centre.

    Solid body rotation evaluated at face centres is discretely divergence free
    on a Cartesian mesh.
    """
    mesh = create_structured_mesh(n, n, 1, Lx=1.0, Ly=1.0, Lz=1.0 / n,
                                  patch_kinds={"zmin": "empty", "zmax": "empty"})
    alpha = disc_alpha(mesh, centre, radius)

    if rotation:
        def velocity_at(x):
            return np.column_stack([-omega * (x[:, 1] - 0.5), omega * (x[:, 0] - 0.5), np.zeros(x.shape[0])])

        U = velocity_at(mesh.cell_centers)
        phi = np.einsum("ij,ij->i", velocity_at(mesh.face_centers), mesh.vector_S_f)
    else:
        U = np.tile(np.asarray(velocity, dtype=np.float64), (mesh.n_cells, 1))
        phi = uniform_face_flux(mesh, velocity)

    return Case(mesh, alpha, U, phi, {}, name="disc")


CASES = {
    "column": column_case,
    "disc": disc_case,
}


def build_case(name, **kwargs):
    if name not in CASES:
        raise ValueError(f"Unknown case '{name}', expected one of {sorted(CASES)}")
    return CASES[name](**kwargs)
