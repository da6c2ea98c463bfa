"""Domain decomposition of a MeshData into partitions with processor patches.

Faces shared by two partitions become processor patch faces on both sides.
Each side stores the face with the outward orientation of its own cell, so
the vertex list on one side is the reverse of the other, and face-based
fields change sign between the global and a local view where the global
owner lives on the other partition (``face_flip``).

Points are shared with every partition whose cells touch them, which for a
block decomposition includes partitions meeting along an edge or at a corner.
"""

from dataclasses import dataclass
from typing import List

import numpy as np

from .mesh_data import BoundaryPatch, MeshData


@dataclass
class SubMesh:
    """One partition together with its addressing back into the global mesh."""

    rank: int
    mesh: MeshData
    cell_addressing: np.ndarray
    face_addressing: np.ndarray
    face_flip: np.ndarray
    point_addressing: np.ndarray

    def scatter_cell_field(self, values):
        return np.asarray(values)[self.cell_addressing].copy()

    def scatter_face_field(self, values):
        """Local copy of a global face field; flux-like values flip sign on flipped faces."""
        local = np.asarray(values, dtype=np.float64)[self.face_addressing]
        return np.where(self.face_flip, -local, local)


def slab_partition(mesh, n_parts, axis=0):
    """Cell-to-partition map cutting the domain into equal slabs along an axis."""
    coord = mesh.cell_centers[:, axis]
    order = np.argsort(coord, kind="stable")
    cell_to_part = np.empty(mesh.n_cells, dtype=np.int64)
    for part, chunk in enumerate(np.array_split(order, n_parts)):
        cell_to_part[chunk] = part
    return cell_to_part


def block_partition(mesh, n_blocks):
    """Cell-to-partition map cutting the bounding box into a grid of equal blocks.

    Parameters
    ----------
    mesh : MeshData
    n_blocks : sequence of int
        Number of blocks along x, y and z; missing entries default to 1

    Returns
    -------
    ndarray (n_cells,)
        Rank ix + nx * (iy + ny * iz) of the block containing each cell centre
    """
    n_blocks = list(n_blocks) + [1] * (3 - len(n_blocks))
    lo = mesh.points.min(axis=0)
    extent = np.maximum(mesh.points.max(axis=0) - lo, 1e-300)

    index = np.floor((mesh.cell_centers - lo) / extent * n_blocks).astype(np.int64)
    index = np.clip(index, 0, np.array(n_blocks) - 1)
    return index[:, 0] + n_blocks[0] * (index[:, 1] + n_blocks[1] * index[:, 2])


def decompose_mesh(mesh: MeshData, cell_to_part) -> List[SubMesh]:
    """Split a mesh into partitions.

    Parameters
    ----------
    mesh : MeshData
        Global mesh
    cell_to_part : array_like
        Partition (rank) of each global cell

    Returns
    -------
    list of SubMesh
        One entry per rank, ordered by rank
    """
    cell_to_part = np.asarray(cell_to_part, dtype=np.int64)
    n_parts = int(cell_to_part.max()) + 1
    n_int = mesh.n_internal_faces
    own_part = cell_to_part[mesh.owner_cells[:n_int]]
    nei_part = cell_to_part[mesh.neighbor_cells[:n_int]]

    # Global points touched by the cells of each partition
    part_points = []
    for rank in range(n_parts):
        cell_pts = [mesh.cell_points[c] for c in np.flatnonzero(cell_to_part == rank)]
        part_points.append(np.unique(np.concatenate(cell_pts)) if cell_pts else np.zeros(0, dtype=np.int64))

    submeshes = []
    for rank in range(n_parts):
        cells = np.flatnonzero(cell_to_part == rank)
        global_to_local = np.full(mesh.n_cells, -1, dtype=np.int64)
        global_to_local[cells] = np.arange(cells.shape[0])

        faces, owner, neighbour, addressing, flip = [], [], [], [], []

        # ––– internal faces –––––––––––––––––––––––––––––––––––––––––––––––
        for f in np.flatnonzero((own_part == rank) & (nei_part == rank)):
            faces.append(mesh.faces[f])
            owner.append(global_to_local[mesh.owner_cells[f]])
            neighbour.append(global_to_local[mesh.neighbor_cells[f]])
            addressing.append(f)
            flip.append(False)

        patches = []

        # ––– physical patches –––––––––––––––––––––––––––––––––––––––––––––
        for patch in mesh.patches:
            if patch.is_processor:
                raise ValueError("Cannot decompose an already decomposed mesh")
            start = len(faces)
            for f in patch.faces():
                if cell_to_part[mesh.owner_cells[f]] == rank:
                    faces.append(mesh.faces[f])
                    owner.append(global_to_local[mesh.owner_cells[f]])
                    neighbour.append(-1)
                    addressing.append(f)
                    flip.append(False)
            patches.append(BoundaryPatch(patch.name, start, len(faces) - start, patch.kind))

        # ––– processor patches ––––––––––––––––––––––––––––––––––––––––––––
        for other in range(n_parts):
            if other == rank:
                continue
            shared = np.flatnonzero(
                ((own_part == rank) & (nei_part == other)) | ((own_part == other) & (nei_part == rank))
            )
            if shared.size == 0:
                continue
            start = len(faces)
            for f in shared:
                owned_here = own_part[f] == rank
                local_cell = mesh.owner_cells[f] if owned_here else mesh.neighbor_cells[f]
                faces.append(mesh.faces[f] if owned_here else mesh.faces[f][::-1])
                owner.append(global_to_local[local_cell])
                neighbour.append(-1)
                addressing.append(f)
                flip.append(not owned_here)
            patches.append(
                BoundaryPatch(
                    f"procBoundary{rank}to{other}", start, len(faces) - start,
                    kind="processor", my_rank=rank, neighbour_rank=other,
                )
            )

        # ––– points –––––––––––––––––––––––––––––––––––––––––––––––––––––––
        point_addressing = np.unique(np.concatenate(faces)) if faces else np.zeros(0, dtype=np.int64)
        point_map = np.full(mesh.n_points, -1, dtype=np.int64)
        point_map[point_addressing] = np.arange(point_addressing.shape[0])
        local_faces = [point_map[fp] for fp in faces]

        # Points shared with any other partition, also through an edge or a corner only
        shared_points = {}
        for other in range(n_parts):
            if other == rank:
                continue
            common = np.intersect1d(point_addressing, part_points[other])
            if common.size:
                shared_points[other] = point_map[common]

        local_mesh = MeshData(
            mesh.points[point_addressing], local_faces, owner, neighbour,
            patches=patches, n_cells=cells.shape[0], shared_points=shared_points,
        )
        submeshes.append(
            SubMesh(
                rank=rank,
                mesh=local_mesh,
                cell_addressing=cells,
                face_addressing=np.array(addressing, dtype=np.int64),
                face_flip=np.array(flip, dtype=bool),
                point_addressing=point_addressing,
            )
        )

    return submeshes


def reconstruct_cell_field(submeshes, local_fields, n_cells):
    """Assemble a global cell field from per-partition fields."""
    first = np.asarray(local_fields[0])
    out = np.zeros((n_cells,) + first.shape[1:], dtype=first.dtype)
    for sub, values in zip(submeshes, local_fields):
        out[sub.cell_addressing] = values
    return out
