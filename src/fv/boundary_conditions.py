"""Boundary values of cell-centred scalar fields.

Supported conditions per patch:
- fixedValue   : prescribed value
- zeroGradient : owner cell value (default, also used for walls and empty patches)
- processor    : value of the cell on the other side of the partition boundary
"""

from dataclasses import dataclass

import numpy as np


@dataclass
class BoundaryCondition:
    kind: str = "zeroGradient"
    value: float = 0.0

    def __post_init__(self):
        if self.kind not in ("fixedValue", "zeroGradient"):
            raise ValueError(f"Unsupported boundary condition '{self.kind}'")


def _as_condition(entry):
    if isinstance(entry, BoundaryCondition):
        return entry
    if isinstance(entry, (int, float)):
        return BoundaryCondition("fixedValue", float(entry))
    return BoundaryCondition(**dict(entry))


class BoundaryField:
    """Boundary face values of a cell field, stored for all boundary faces.

    Parameters
    ----------
    mesh : MeshData
    conditions : dict, optional
        Patch name -> BoundaryCondition, dict(kind=..., value=...) or a number
        (shorthand for fixedValue). Unlisted non-processor patches are zeroGradient.
    """

    def __init__(self, mesh, conditions=None):
        self.mesh = mesh
        conditions = dict(conditions or {})
        n_boundary = mesh.n_faces - mesh.n_internal_faces

        self.conditions = []
        self.coupled = np.zeros(n_boundary, dtype=np.bool_)
        for patch in mesh.patches:
            if patch.is_processor:
                self.conditions.append(None)
                self.coupled[self._slice(patch)] = True
            else:
                self.conditions.append(_as_condition(conditions.pop(patch.name, BoundaryCondition())))
        if conditions:
            raise KeyError(f"Boundary conditions given for unknown patches: {sorted(conditions)}")

        self.values = np.zeros(n_boundary)

    def _slice(self, patch):
        start = patch.start - self.mesh.n_internal_faces
        return slice(start, start + patch.size)

    def evaluate(self, internal, remote=None):
        """Recompute boundary values from the internal field.

        Parameters
        ----------
        internal : ndarray
            Cell values
        remote : dict, optional
            Processor patch index -> values of the remote cells adjacent to its faces
        """
        owner = self.mesh.owner_cells
        for patchi, patch in enumerate(self.mesh.patches):
            sl = self._slice(patch)
            faces = patch.faces()
            bc = self.conditions[patchi]
            if bc is None:
                if remote is not None and patchi in remote:
                    self.values[sl] = remote[patchi]
                else:
                    self.values[sl] = internal[owner[faces]]
            elif bc.kind == "fixedValue":
                self.values[sl] = bc.value
            else:
                self.values[sl] = internal[owner[faces]]
        return self.values

    def patch_values(self, patchi):
        return self.values[self._slice(self.mesh.patches[patchi])]
