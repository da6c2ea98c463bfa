"""Structured hexahedral box meshes.

Cells are numbered with x fastest: ``cell = i + nx * (j + ny * k)``.
Internal faces follow the upper-triangular owner/neighbour ordering: each cell
lists its faces towards higher-numbered neighbours (+x, +y, +z) in turn.
Boundary faces are grouped into the patches xmin, xmax, ymin, ymax, zmin, zmax.
"""

import numpy as np

from .mesh_data import BoundaryPatch, MeshData

PATCH_NAMES = ("xmin", "xmax", "ymin", "ymax", "zmin", "zmax")


def create_structured_mesh(
    nx,
    ny=1,
    nz=1,
    Lx=1.0,
    Ly=1.0,
    Lz=1.0,
    origin=(0.0, 0.0, 0.0),
    patch_kinds=None,
):
    """Build an axis-aligned box mesh of nx * ny * nz hexahedra.

    Parameters
    ----------
    nx, ny, nz : int
        Number of cells in each direction
    Lx, Ly, Lz : float
        Domain extents
    origin : tuple
        Coordinates of the (xmin, ymin, zmin) corner
    patch_kinds : dict, optional
        Patch kind per patch name ("patch", "wall" or "empty"). Defaults to "patch".

    Returns
    -------
    MeshData
    """
    patch_kinds = dict(patch_kinds or {})
    x = origin[0] + np.linspace(0.0, Lx, nx + 1)
    y = origin[1] + np.linspace(0.0, Ly, ny + 1)
    z = origin[2] + np.linspace(0.0, Lz, nz + 1)

    X, Y, Z = np.meshgrid(x, y, z, indexing="ij")
    # Point index = i + (nx+1) * (j + (ny+1) * k)
    points = np.column_stack(
        [X.transpose(2, 1, 0).ravel(), Y.transpose(2, 1, 0).ravel(), Z.transpose(2, 1, 0).ravel()]
    )

    def pid(i, j, k):
        return i + (nx + 1) * (j + (ny + 1) * k)

    def cid(i, j, k):
        return i + nx * (j + ny * k)

    # Vertex loops with normals along +x, +y, +z
    def x_face(i, j, k):
        return [pid(i, j, k), pid(i, j + 1, k), pid(i, j + 1, k + 1), pid(i, j, k + 1)]

    def y_face(i, j, k):
        return [pid(i, j, k), pid(i, j, k + 1), pid(i + 1, j, k + 1), pid(i + 1, j, k)]

    def z_face(i, j, k):
        return [pid(i, j, k), pid(i + 1, j, k), pid(i + 1, j + 1, k), pid(i, j + 1, k)]

    faces, owner, neighbour = [], [], []

    # ––– internal faces –––––––––––––––––––––––––––––––––––––––––––––––––
    for k in range(nz):
        for j in range(ny):
            for i in range(nx):
                c = cid(i, j, k)
                if i + 1 < nx:
                    faces.append(x_face(i + 1, j, k))
                    owner.append(c)
                    neighbour.append(cid(i + 1, j, k))
                if j + 1 < ny:
                    faces.append(y_face(i, j + 1, k))
                    owner.append(c)
                    neighbour.append(cid(i, j + 1, k))
                if k + 1 < nz:
                    faces.append(z_face(i, j, k + 1))
                    owner.append(c)
                    neighbour.append(cid(i, j, k + 1))

    # ––– boundary faces –––––––––––––––––––––––––––––––––––––––––––––––––
    boundary = {name: [] for name in PATCH_NAMES}
    for k in range(nz):
        for j in range(ny):
            boundary["xmin"].append((x_face(0, j, k)[::-1], cid(0, j, k)))
            boundary["xmax"].append((x_face(nx, j, k), cid(nx - 1, j, k)))
    for k in range(nz):
        for i in range(nx):
            boundary["ymin"].append((y_face(i, 0, k)[::-1], cid(i, 0, k)))
            boundary["ymax"].append((y_face(i, ny, k), cid(i, ny - 1, k)))
    for j in range(ny):
        for i in range(nx):
            boundary["zmin"].append((z_face(i, j, 0)[::-1], cid(i, j, 0)))
            boundary["zmax"].append((z_face(i, j, nz), cid(i, j, nz - 1)))

    patches = []
    for name in PATCH_NAMES:
        patches.append(
            BoundaryPatch(name=name, start=len(faces), size=len(boundary[name]),
                          kind=patch_kinds.get(name, "patch"))
        )
        for fp, c in boundary[name]:
            faces.append(fp)
            owner.append(c)
            neighbour.append(-1)

    mesh = MeshData(points, faces, owner, neighbour, patches=patches, n_cells=nx * ny * nz)

    # --- Structured Grid Info ---
    mesh.nx, mesh.ny, mesh.nz = nx, ny, nz
    mesh.dx, mesh.dy, mesh.dz = Lx / nx, Ly / ny, Lz / nz
    return mesh


def uniform_face_flux(mesh, U):
    """Volumetric face flux phi = U . S_f of a uniform velocity."""
    return mesh.vector_S_f @ np.asarray(U, dtype=np.float64)
