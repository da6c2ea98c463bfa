"""Polyhedral mesh data, structured box meshes and domain decomposition."""

from .mesh_data import BoundaryPatch, MeshData
from .simple_structured import create_structured_mesh, uniform_face_flux
from .decompose import SubMesh, block_partition, decompose_mesh, reconstruct_cell_field, slab_partition

__all__ = [
    "BoundaryPatch",
    "MeshData",
    "create_structured_mesh",
    "uniform_face_flux",
    "SubMesh",
    "decompose_mesh",
    "reconstruct_cell_field",
    "slab_partition",
    "block_partition",
]
