"""STL export for swept meshes."""

from __future__ import annotations

import struct
from typing import Iterable, List, Sequence, Union

from beamsweep.geometry_utils import Triangle, triangles_from_mesh
from beamsweep.mesh import Mesh, mesh_view

_HEADER_SIZE = 80
_STRUCT_TRIANGLE = struct.Struct('<12fH')


def _as_mesh_list(meshes: Union[Mesh, Sequence[Mesh]]) -> List[Mesh]:
    if isinstance(meshes, Mesh):
        return [meshes]
    return list(meshes)


def write_stl(meshes: Union[Mesh, Sequence[Mesh]], path_or_file, *, binary: bool = True,
              name: str = 'beamsweep') -> int:
    """Write one or more meshes to a single STL solid.

    ``path_or_file`` can be a filesystem path or an open binary/text stream.
    Returns the number of triangles written.
    """

    triangles = list(triangles_from_mesh(mesh_view(_as_mesh_list(meshes))))

    if binary:
        _write_binary(triangles, path_or_file, name)
    else:
        _write_ascii(triangles, path_or_file, name)
    return len(triangles)


def _write_binary(triangles: List[Triangle], path_or_file, name: str) -> None:
    close_when_done = False
    if hasattr(path_or_file, 'write'):
        stream = path_or_file
    else:
        stream = open(path_or_file, 'wb')
        close_when_done = True

    try:
        header = (name[:_HEADER_SIZE]).encode('ascii', errors='replace')
        header = header.ljust(_HEADER_SIZE, b' ')
        stream.write(header)
        stream.write(struct.pack('<I', len(triangles)))

        for tri in triangles:
            stream.write(_STRUCT_TRIANGLE.pack(*tri.normal, *tri.v0, *tri.v1, *tri.v2, 0))
    finally:
        if close_when_done:
            stream.close()


def _write_ascii(triangles: Iterable[Triangle], path_or_file, name: str) -> None:
    close_when_done = False
    if hasattr(path_or_file, 'write'):
        stream = path_or_file
    else:
        stream = open(path_or_file, 'w', encoding='ascii')
        close_when_done = True

    try:
        print(f"solid {name}", file=stream)
        for tri in triangles:
            print(f"  facet normal {tri.normal[0]:.6e} {tri.normal[1]:.6e} {tri.normal[2]:.6e}", file=stream)
            print("    outer loop", file=stream)
            for v in (tri.v0, tri.v1, tri.v2):
                print(f"      vertex {v[0]:.6e} {v[1]:.6e} {v[2]:.6e}", file=stream)
            print("    endloop", file=stream)
            print("  endfacet", file=stream)
        print(f"endsolid {name}", file=stream)
    finally:
        if close_when_done:
            stream.close()


__all__ = ['write_stl']
