import numpy as np


class SurfaceCellClassifier:
    """Cells whose volume fraction lies strictly inside (tol, 1 - tol)."""

    def __init__(self, surf_cell_tol=1e-8):
        self.surf_cell_tol = surf_cell_tol

    def is_surface_cell(self, alpha, celli) -> bool:
        a = alpha[celli]
        return bool(self.surf_cell_tol < a < 1.0 - self.surf_cell_tol)

    def surface_cell_mask(self, alpha):
        alpha = np.asarray(alpha)
        return (alpha > self.surf_cell_tol) & (alpha < 1.0 - self.surf_cell_tol)
