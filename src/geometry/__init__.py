"""Planar interface reconstruction and swept-volume face fluxes."""

from .interpolation import CellPointInterpolation
from .iso_cut_cell import CellCut, CellStatus, IsoCutCell
from .iso_cut_face import IsoCutFace
from .normals import normalise_and_smooth
from .polygon import clip_polygon, order_planar_points, submerged_area, submerged_metrics
from .provider import InterfaceGeometryProvider, PlaneInterfaceGeometry

__all__ = [
    "CellPointInterpolation",
    "CellCut",
    "CellStatus",
    "IsoCutCell",
    "IsoCutFace",
    "normalise_and_smooth",
    "clip_polygon",
    "order_planar_points",
    "submerged_area",
    "submerged_metrics",
    "InterfaceGeometryProvider",
    "PlaneInterfaceGeometry",
]
