"""Diagnostic output: cell sets as plain text and iso faces as Wavefront OBJ."""

import logging
from pathlib import Path

import numpy as np

log = logging.getLogger(__name__)


def write_cell_set(path, name, cells):
    """Write cell indices as a named list, one index per line."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    cells = np.asarray(cells, dtype=np.int64)
    lines = [f"// cellSet {name}", str(cells.shape[0]), "("]
    lines += [str(c) for c in cells]
    lines.append(")")
    path.write_text("\n".join(lines) + "\n")
    return path


def read_cell_set(path):
    lines = [ln.strip() for ln in Path(path).read_text().splitlines()]
    lines = [ln for ln in lines if ln and not ln.startswith("//")]
    n = int(lines[0])
    return np.array([int(c) for c in lines[2:2 + n]], dtype=np.int64)


def write_iso_faces_obj(path, faces):
    """Write iso-face polygons (list of (n, 3) point arrays) to an OBJ file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    vertex_lines = []
    face_lines = []
    n_written = 0
    for pts in faces:
        pts = np.asarray(pts, dtype=np.float64)
        if pts.shape[0] < 3:
            continue
        vertex_lines += [f"v {x:.12g} {y:.12g} {z:.12g}" for x, y, z in pts]
        face_lines.append("f " + " ".join(str(n_written + i + 1) for i in range(pts.shape[0])))
        n_written += pts.shape[0]
    path.write_text("\n".join(vertex_lines + face_lines) + "\n")
    log.info(f"isoAdvection: writing iso faces to file: {path}")
    return path


def read_obj_faces(path):
    """Polygons of an OBJ file as a list of (n, 3) arrays."""
    vertices = []
    faces = []
    for line in Path(path).read_text().splitlines():
        parts = line.split()
        if not parts:
            continue
        if parts[0] == "v":
            vertices.append([float(v) for v in parts[1:4]])
        elif parts[0] == "f":
            faces.append([int(i.split("/")[0]) - 1 for i in parts[1:]])
    vertices = np.array(vertices, dtype=np.float64).reshape(-1, 3)
    return [vertices[f] for f in faces]
