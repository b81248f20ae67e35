"""Wavefront OBJ export with a side material library."""

from __future__ import annotations

import re
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

from beamsweep.mesh import Mesh, compute_vertex_normals

_FALLBACK_COLOR = (0.7, 0.7, 0.7, 1.0)
_NAME_RE = re.compile(r'[^A-Za-z0-9_.-]+')


def _material_name(mesh: Mesh, index: int) -> str:
    base = _NAME_RE.sub('_', mesh.name or 'mesh').strip('_') or 'mesh'
    return f"{base}_{index}"


def write_mtl(materials: Sequence[Tuple[str, Tuple[float, float, float, float]]], path) -> None:
    """Write diffuse materials as ``newmtl``/``Kd``/``d`` blocks."""
    with open(path, 'w', encoding='ascii') as stream:
        print("# beamsweep materials", file=stream)
        for name, color in materials:
            r, g, b, a = color
            print(f"newmtl {name}", file=stream)
            print("Ka 0.000000 0.000000 0.000000", file=stream)
            print(f"Kd {r:.6f} {g:.6f} {b:.6f}", file=stream)
            print("Ks 0.000000 0.000000 0.000000", file=stream)
            print(f"d {a:.6f}", file=stream)
            print("illum 1", file=stream)
            print("", file=stream)


def write_obj(meshes: Union[Mesh, Sequence[Mesh]], path, *,
              mtl_name: Optional[str] = None) -> Tuple[Path, Path]:
    """Write meshes to an OBJ file and a sibling MTL file.

    Each mesh becomes one ``o`` block with its own material.  Vertex
    normals are written as ``vn`` records and referenced by every face
    (``f v//vn``).  Indices are 1-based and global across blocks.

    Parameters
    ----------
    meshes : Mesh or sequence of Mesh
        Meshes to export; empty meshes are skipped.
    path : str or path-like
        Target ``.obj`` path.
    mtl_name : str, optional
        File name of the material library, written next to ``path``.
        Defaults to ``path`` with an ``.mtl`` suffix.

    Returns
    -------
    tuple of Path
        ``(obj_path, mtl_path)``
    """
    if isinstance(meshes, Mesh):
        meshes = [meshes]
    obj_path = Path(path)
    mtl_path = obj_path.with_name(mtl_name) if mtl_name else obj_path.with_suffix('.mtl')

    materials: List[Tuple[str, Tuple[float, float, float, float]]] = []
    offset = 1
    with open(obj_path, 'w', encoding='ascii') as stream:
        print("# beamsweep", file=stream)
        print(f"mtllib {mtl_path.name}", file=stream)
        for index, mesh in enumerate(meshes):
            if mesh is None or mesh.is_empty:
                continue
            normals = mesh.normals
            if normals is None:
                normals = compute_vertex_normals(mesh.vertices, mesh.faces)
            material = _material_name(mesh, index)
            materials.append((material, tuple(mesh.color) if mesh.color is not None else _FALLBACK_COLOR))

            print(f"o {material}", file=stream)
            for x, y, z in mesh.vertices:
                print(f"v {x:.6f} {y:.6f} {z:.6f}", file=stream)
            for x, y, z in normals:
                print(f"vn {x:.6f} {y:.6f} {z:.6f}", file=stream)
            print(f"usemtl {material}", file=stream)
            print("s 1", file=stream)
            for a, b, c in mesh.faces:
                a, b, c = a + offset, b + offset, c + offset
                print(f"f {a}//{a} {b}//{b} {c}//{c}", file=stream)
            offset += len(mesh.vertices)

    write_mtl(materials, mtl_path)
    return obj_path, mtl_path


__all__ = ['write_obj', 'write_mtl']
