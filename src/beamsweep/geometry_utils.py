"""Common geometric helpers shared by the sweep core and the exporters."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Sequence, Tuple

Vec3 = Tuple[float, float, float]

epsilon = 1e-12


@dataclass(frozen=True)
class Triangle:
    """Immutable triangle representation in XYZ space."""

    normal: Vec3
    v0: Vec3
    v1: Vec3
    v2: Vec3


def to_vec3(point_like: Sequence[float]) -> Vec3:
    """Return the XYZ components of a point or vector as a tuple."""

    if len(point_like) < 3:
        raise ValueError("value must have at least three components")
    return float(point_like[0]), float(point_like[1]), float(point_like[2])


def _cross(a: Sequence[float], b: Sequence[float]) -> Vec3:
    return (
        a[1] * b[2] - a[2] * b[1],
        a[2] * b[0] - a[0] * b[2],
        a[0] * b[1] - a[1] * b[0],
    )


def triangle_normal(v0: Vec3, v1: Vec3, v2: Vec3) -> Vec3 | None:
    """Return the unit normal of a triangle or ``None`` if degenerate."""

    ax, ay, az = v1[0] - v0[0], v1[1] - v0[1], v1[2] - v0[2]
    bx, by, bz = v2[0] - v0[0], v2[1] - v0[1], v2[2] - v0[2]
    n = _cross((ax, ay, az), (bx, by, bz))
    length = math.sqrt(n[0] * n[0] + n[1] * n[1] + n[2] * n[2])
    if length <= epsilon:
        return None
    return (n[0] / length, n[1] / length, n[2] / length)


def triangles_from_mesh(mesh: Iterable[Tuple[Vec3, Vec3, Vec3, Vec3]]) -> Iterable[Triangle]:
    """Convert ``mesh_view`` output into ``Triangle`` instances."""

    for normal, v0, v1, v2 in mesh:
        yield Triangle(normal=normal, v0=v0, v1=v1, v2=v2)


__all__ = [
    "Triangle",
    "Vec3",
    "epsilon",
    "to_vec3",
    "triangle_normal",
    "triangles_from_mesh",
]
