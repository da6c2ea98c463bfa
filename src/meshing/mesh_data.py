"""
MeshData: Core data layout for finite volume VOF advection (3D, polyhedral).

This class holds static geometry, connectivity and boundary patches, and
precomputes the metrics needed by the advection kernels.

Indexing Conventions:
- Faces are numbered internal faces first (0 to n_internal_faces-1), followed
  by boundary faces grouped into contiguous patches.
- All face-based arrays (e.g., vector_S_f, owner_cells) use face indexing (0 to n_faces-1).
- All cell-based arrays (e.g., cell_volumes, cell_centers) use cell indexing (0 to n_cells-1).
- neighbor_cells[f] = -1 for boundary faces.
- vector_S_f[f] points out of the owner cell (owner -> neighbour, or outward on boundaries).

Processor Patches:
- A patch of kind "processor" pairs this partition (my_rank) with neighbour_rank.
- Both sides order the patch faces identically. The lower rank stores the face
  vertices in its outward orientation; the higher rank stores them reversed.
- shared_points maps every other rank that touches this partition (through a
  face, an edge or only a corner) to the local ids of the common points, in
  ascending global point order on both sides.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

import numpy as np


PATCH_KINDS = ("patch", "wall", "empty", "processor")


@dataclass
class BoundaryPatch:
    """Contiguous range of boundary faces."""

    name: str
    start: int
    size: int
    kind: str = "patch"
    my_rank: int = -1
    neighbour_rank: int = -1

    @property
    def is_processor(self) -> bool:
        return self.kind == "processor"

    @property
    def is_owner(self) -> bool:
        """True on the lower-rank side of a processor patch."""
        return self.my_rank < self.neighbour_rank

    def faces(self) -> np.ndarray:
        return np.arange(self.start, self.start + self.size)


def polygon_metrics(pts):
    """Area vector and centroid of a (possibly non-planar) polygon.

    Triangle fan around the vertex average, centroid weighted by the projected
    triangle areas.
    """
    n = pts.shape[0]
    if n == 3:
        S = 0.5 * np.cross(pts[1] - pts[0], pts[2] - pts[0])
        return S, pts.mean(axis=0)

    p_avg = pts.mean(axis=0)
    S = np.zeros(3)
    tri_S = np.empty((n, 3))
    tri_C = np.empty((n, 3))
    for i in range(n):
        a = pts[i]
        b = pts[(i + 1) % n]
        tri_S[i] = 0.5 * np.cross(b - a, p_avg - a)
        tri_C[i] = (a + b + p_avg) / 3.0
        S += tri_S[i]

    mag_S = np.sqrt(S @ S)
    if mag_S < 1e-300:
        return S, p_avg

    weights = tri_S @ (S / mag_S)
    return S, (weights @ tri_C) / weights.sum()


class MeshData:
    def __init__(
        self,
        points,
        faces,
        owner_cells,
        neighbor_cells,
        patches: Optional[List[BoundaryPatch]] = None,
        n_cells: Optional[int] = None,
        shared_points: Optional[Dict[int, np.ndarray]] = None,
    ):
        # --- Raw topology ---
        self.points = np.asarray(points, dtype=np.float64)
        self.faces = [np.asarray(f, dtype=np.int64) for f in faces]
        self.owner_cells = np.asarray(owner_cells, dtype=np.int64)
        self.neighbor_cells = np.asarray(neighbor_cells, dtype=np.int64)
        self.patches = list(patches) if patches is not None else []
        self.shared_points = dict(shared_points) if shared_points is not None else {}

        self.n_faces = len(self.faces)
        self.n_points = self.points.shape[0]
        internal = np.flatnonzero(self.neighbor_cells >= 0)
        self.n_internal_faces = internal.shape[0]
        if self.n_internal_faces and internal[-1] != self.n_internal_faces - 1:
            raise ValueError("Internal faces must be numbered before boundary faces")

        if n_cells is None:
            n_cells = int(self.owner_cells.max()) + 1 if self.n_faces else 0
        self.n_cells = n_cells

        # --- Topological Info ---
        self.internal_faces = internal
        self.boundary_faces = np.arange(self.n_internal_faces, self.n_faces)
        self._check_patches()

        # Patch id per boundary face (indexed by f - n_internal_faces)
        self.boundary_patch_ids = np.full(self.boundary_faces.shape[0], -1, dtype=np.int64)
        for patchi, patch in enumerate(self.patches):
            self.boundary_patch_ids[patch.start - self.n_internal_faces:
                                    patch.start - self.n_internal_faces + patch.size] = patchi

        self._build_addressing()
        self._compute_geometry()

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------

    def _check_patches(self):
        expected = self.n_internal_faces
        for patch in self.patches:
            if patch.kind not in PATCH_KINDS:
                raise ValueError(f"Unknown patch kind '{patch.kind}' for patch {patch.name}")
            if patch.start != expected:
                raise ValueError(f"Patch {patch.name} starts at {patch.start}, expected {expected}")
            expected += patch.size
        if self.patches and expected != self.n_faces:
            raise ValueError(f"Patches cover {expected} faces, mesh has {self.n_faces}")

    def _build_addressing(self):
        cell_faces = [[] for _ in range(self.n_cells)]
        cell_cells = [[] for _ in range(self.n_cells)]
        cell_points = [set() for _ in range(self.n_cells)]

        for f in range(self.n_faces):
            P = self.owner_cells[f]
            cell_faces[P].append(f)
            cell_points[P].update(self.faces[f].tolist())
            N = self.neighbor_cells[f]
            if N >= 0:
                cell_faces[N].append(f)
                cell_points[N].update(self.faces[f].tolist())
                cell_cells[P].append(N)
                cell_cells[N].append(P)

        self.cell_faces = [np.array(cf, dtype=np.int64) for cf in cell_faces]
        self.cell_cells = [np.array(cc, dtype=np.int64) for cc in cell_cells]
        self.cell_points = [np.array(sorted(cp), dtype=np.int64) for cp in cell_points]

        point_cells = [[] for _ in range(self.n_points)]
        for c, cp in enumerate(self.cell_points):
            for p in cp:
                point_cells[p].append(c)
        self.point_cells = [np.array(pc, dtype=np.int64) for pc in point_cells]

    def _compute_geometry(self):
        # --- Face Geometry ---
        self.vector_S_f = np.zeros((self.n_faces, 3))
        self.face_centers = np.zeros((self.n_faces, 3))
        for f, fp in enumerate(self.faces):
            self.vector_S_f[f], self.face_centers[f] = polygon_metrics(self.points[fp])
        self.face_areas = np.linalg.norm(self.vector_S_f, axis=1)

        # --- Cell Geometry (pyramid decomposition about the face-centre average) ---
        self.cell_volumes = np.zeros(self.n_cells)
        self.cell_centers = np.zeros((self.n_cells, 3))
        for c, cf in enumerate(self.cell_faces):
            c_est = self.face_centers[cf].mean(axis=0)
            sign = np.where(self.owner_cells[cf] == c, 1.0, -1.0)
            pyr_vol = sign * np.einsum("ij,ij->i", self.vector_S_f[cf], self.face_centers[cf] - c_est) / 3.0
            pyr_ctr = 0.75 * self.face_centers[cf] + 0.25 * c_est
            vol = pyr_vol.sum()
            self.cell_volumes[c] = vol
            self.cell_centers[c] = pyr_vol @ pyr_ctr / vol if abs(vol) > 1e-300 else c_est

        # --- Interpolation Factors: g_f = weight of the neighbour cell ---
        self.face_interp_factors = np.ones(self.n_faces)
        for f in self.internal_faces:
            n_hat = self.vector_S_f[f] / self.face_areas[f]
            d_P = abs((self.face_centers[f] - self.cell_centers[self.owner_cells[f]]) @ n_hat)
            d_N = abs((self.cell_centers[self.neighbor_cells[f]] - self.face_centers[f]) @ n_hat)
            self.face_interp_factors[f] = d_P / (d_P + d_N)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def is_internal_face(self, facei: int) -> bool:
        return facei < self.n_internal_faces

    def which_patch(self, facei: int) -> int:
        """Patch index of a boundary face, -1 for internal faces."""
        if facei < self.n_internal_faces:
            return -1
        return int(self.boundary_patch_ids[facei - self.n_internal_faces])

    def patch_face_index(self, facei: int) -> int:
        """Patch-local index of a boundary face."""
        return facei - self.patches[self.which_patch(facei)].start

    def processor_patches(self) -> List[int]:
        """Indices of non-empty processor patches."""
        return [i for i, p in enumerate(self.patches) if p.is_processor and p.size > 0]

    def patch_index(self, name: str) -> int:
        for i, patch in enumerate(self.patches):
            if patch.name == name:
                return i
        raise KeyError(f"No patch named '{name}'")

    @property
    def total_volume(self) -> float:
        return float(self.cell_volumes.sum())
