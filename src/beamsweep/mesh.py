"""Triangulated surfaces produced by a sweep.

Stitching emits a raw triangle soup, an ``(T, 3, 3)`` array of corner
positions.  :func:`finalize_mesh` turns that into an indexed
:class:`Mesh` with shared vertices and smooth per-vertex normals.  None of
the finishing steps move geometry.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator, Optional, Sequence, Tuple

import numpy as np

from beamsweep.geometry_utils import Vec3, to_vec3, triangle_normal

Color = Tuple[float, float, float, float]
TriTuple = Tuple[Vec3, Vec3, Vec3, Vec3]

DEFAULT_TOLERANCE = 1e-9


@dataclass(eq=False)
class Mesh:
    """Indexed triangle mesh with optional normals and a flat colour.

    Attributes:
        vertices: ``(V, 3)`` vertex positions
        faces: ``(F, 3)`` vertex indices, counter-clockwise seen from outside
        normals: ``(V, 3)`` unit vertex normals, or ``None``
        color: Flat RGBA colour of the whole mesh, or ``None``
        name: Label used by exporters
        tag: Slice type label shared by the run, if any
    """
    vertices: np.ndarray = field(default_factory=lambda: np.zeros((0, 3), dtype=float))
    faces: np.ndarray = field(default_factory=lambda: np.zeros((0, 3), dtype=np.int64))
    normals: Optional[np.ndarray] = None
    color: Optional[Color] = None
    name: str = "mesh"
    tag: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return len(self.faces) == 0

    @property
    def vertex_count(self) -> int:
        return len(self.vertices)

    @property
    def face_count(self) -> int:
        return len(self.faces)

    @property
    def triangles(self) -> np.ndarray:
        """Corner positions as a ``(F, 3, 3)`` array."""
        return self.vertices[self.faces]

    @property
    def bounds(self) -> Optional[np.ndarray]:
        """``[[xmin, ymin, zmin], [xmax, ymax, zmax]]`` or ``None`` when empty."""
        if len(self.vertices) == 0:
            return None
        return np.vstack([self.vertices.min(axis=0), self.vertices.max(axis=0)])

    def to_trimesh(self):
        """Return a ``trimesh.Trimesh`` sharing this mesh's arrays."""
        import trimesh

        kwargs = {}
        if self.normals is not None:
            kwargs["vertex_normals"] = self.normals
        return trimesh.Trimesh(vertices=self.vertices, faces=self.faces, process=False, **kwargs)

    @classmethod
    def from_trimesh(cls, tm, *, color: Optional[Color] = None, name: str = "mesh",
                     tag: Optional[str] = None) -> "Mesh":
        vertices = np.asarray(tm.vertices, dtype=float)
        faces = np.asarray(tm.faces, dtype=np.int64)
        return cls(vertices=vertices, faces=faces,
                   normals=compute_vertex_normals(vertices, faces),
                   color=color, name=name, tag=tag)


def _as_triangles(triangles) -> np.ndarray:
    arr = np.asarray(triangles, dtype=float)
    if arr.size == 0:
        return np.zeros((0, 3, 3), dtype=float)
    if arr.ndim != 3 or arr.shape[1:] != (3, 3):
        raise ValueError(f"expected an (T, 3, 3) triangle array, got shape {arr.shape}")
    return arr


def face_normals(vertices: np.ndarray, faces: np.ndarray, *, unit: bool = True) -> np.ndarray:
    """Per-face normals from the right-hand rule.

    With ``unit=False`` each normal's length is twice the face area.
    Degenerate faces give zero vectors.
    """
    tri = vertices[faces]
    n = np.cross(tri[:, 1] - tri[:, 0], tri[:, 2] - tri[:, 0])
    if not unit:
        return n
    length = np.linalg.norm(n, axis=1)
    out = np.zeros_like(n)
    ok = length > 0.0
    out[ok] = n[ok] / length[ok, None]
    return out


def compute_vertex_normals(vertices: np.ndarray, faces: np.ndarray) -> np.ndarray:
    """Area-weighted average of the adjacent face normals, normalised.

    Vertices not used by any non-degenerate face get a zero normal.
    """
    normals = np.zeros((len(vertices), 3), dtype=float)
    if len(faces) == 0:
        return normals
    weighted = face_normals(vertices, faces, unit=False)
    for corner in range(3):
        np.add.at(normals, faces[:, corner], weighted)
    length = np.linalg.norm(normals, axis=1)
    ok = length > 0.0
    normals[ok] /= length[ok, None]
    return normals


def index_triangles(triangles, tolerance: float = DEFAULT_TOLERANCE) -> Tuple[np.ndarray, np.ndarray]:
    """Deduplicate triangle corners into ``(vertices, faces)``.

    Corners are merged when they quantise to the same ``tolerance`` grid
    cell.  Vertices keep the order of their first appearance.
    """
    tri = _as_triangles(triangles)
    if len(tri) == 0:
        return np.zeros((0, 3), dtype=float), np.zeros((0, 3), dtype=np.int64)
    flat = tri.reshape(-1, 3)
    keys = np.round(flat / tolerance).astype(np.int64)
    _, first, inverse = np.unique(keys, axis=0, return_index=True, return_inverse=True)
    inverse = np.asarray(inverse).reshape(-1)
    order = np.argsort(first, kind="stable")
    remap = np.empty(len(order), dtype=np.int64)
    remap[order] = np.arange(len(order), dtype=np.int64)
    vertices = flat[first[order]]
    faces = remap[inverse].reshape(-1, 3)
    return vertices, faces


def reorder_for_cache(faces: np.ndarray) -> np.ndarray:
    """Sort faces by their lowest, then highest, vertex index.

    Consecutive faces then touch nearby vertices, which suits
    post-transform vertex caches.  Winding is unchanged.
    """
    if len(faces) == 0:
        return faces
    lo = faces.min(axis=1)
    hi = faces.max(axis=1)
    return faces[np.lexsort((hi, lo))]


def finalize_mesh(triangles, *, tolerance: float = DEFAULT_TOLERANCE, reorder: bool = False,
                  color: Optional[Color] = None, name: str = "mesh",
                  tag: Optional[str] = None) -> Mesh:
    """Index a raw triangle soup and compute smooth vertex normals.

    Parameters
    ----------
    triangles : array-like, shape (T, 3, 3)
        Corner positions as emitted by stitching.
    tolerance : float
        Vertex merge quantum.
    reorder : bool
        Reorder faces for cache locality.

    Returns
    -------
    Mesh
        Faces whose corners merge into fewer than three distinct vertices
        are dropped.
    """
    vertices, faces = index_triangles(triangles, tolerance)
    if len(faces):
        keep = ((faces[:, 0] != faces[:, 1])
                & (faces[:, 1] != faces[:, 2])
                & (faces[:, 0] != faces[:, 2]))
        faces = faces[keep]
    if reorder:
        faces = reorder_for_cache(faces)
    normals = compute_vertex_normals(vertices, faces)
    return Mesh(vertices=vertices, faces=faces, normals=normals, color=color, name=name, tag=tag)


def merge_meshes(meshes: Sequence[Mesh], *, name: str = "combined") -> Mesh:
    """Concatenate meshes without welding their vertices.

    The result takes the colour and tag of the first mesh.
    """
    meshes = [m for m in meshes if m is not None]
    if not meshes:
        return Mesh(name=name)
    vertices = []
    faces = []
    normals = []
    offset = 0
    for m in meshes:
        vertices.append(m.vertices)
        faces.append(m.faces + offset)
        normals.append(m.normals if m.normals is not None
                       else compute_vertex_normals(m.vertices, m.faces))
        offset += len(m.vertices)
    return Mesh(
        vertices=np.concatenate(vertices, axis=0),
        faces=np.concatenate(faces, axis=0).astype(np.int64),
        normals=np.concatenate(normals, axis=0),
        color=meshes[0].color,
        name=name,
        tag=meshes[0].tag,
    )


def mesh_view(obj) -> Iterator[TriTuple]:
    """Yield triangles of a mesh (or meshes) as ``(normal, v0, v1, v2)``.

    Normals are unit vectors. Vertices are returned as ``(x, y, z)`` tuples.
    Faces with degenerate geometry (zero area) are skipped silently.
    """
    meshes: Iterable[Mesh]
    if isinstance(obj, Mesh):
        meshes = [obj]
    elif isinstance(obj, (list, tuple)) and all(isinstance(m, Mesh) for m in obj):
        meshes = obj
    else:
        raise ValueError("mesh_view expects a Mesh or a sequence of meshes")

    for mesh in meshes:
        verts = mesh.vertices
        for idx0, idx1, idx2 in mesh.faces:
            v0 = to_vec3(verts[idx0])
            v1 = to_vec3(verts[idx1])
            v2 = to_vec3(verts[idx2])
            calc_normal = triangle_normal(v0, v1, v2)
            if calc_normal is None:
                continue
            yield calc_normal, v0, v1, v2


def convex_hull(mesh: Mesh, *, name: Optional[str] = None) -> Mesh:
    """Convex hull of a mesh's vertices, for picking and collision proxies."""
    import trimesh

    if len(mesh.vertices) < 4:
        raise ValueError("convex hull needs at least four vertices")
    hull = trimesh.convex.convex_hull(np.asarray(mesh.vertices, dtype=float))
    return Mesh.from_trimesh(hull, color=mesh.color, name=name or f"{mesh.name}_hull", tag=mesh.tag)


__all__ = [
    "Mesh",
    "DEFAULT_TOLERANCE",
    "face_normals",
    "compute_vertex_normals",
    "index_triangles",
    "reorder_for_cache",
    "finalize_mesh",
    "merge_meshes",
    "mesh_view",
    "convex_hull",
]
