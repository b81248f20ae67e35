"""Per-slice orientation frames.

Frames are seeded from a fixed "up" helper vector rather than from the
path curvature.  This keeps them well defined on straight runs, where a
Frenet frame is not, at the cost of arbitrary rotation about the tangent
between neighbouring slices.  That rotation is removed afterwards by
:mod:`beamsweep.twist`.
"""

from __future__ import annotations

import math
from typing import Optional, Sequence

import numpy as np

from beamsweep.model import Frame

WORLD_UP = (0.0, 1.0, 0.0)
WORLD_RIGHT = (1.0, 0.0, 0.0)
DEFAULT_TANGENT = (0.0, 0.0, 1.0)

MIN_TANGENT_SQ = 1e-12
PARALLEL_LIMIT = 0.9
MIN_ROLL = 1e-6


def normalize(v: Sequence[float]) -> np.ndarray:
    """Return ``v`` scaled to unit length.

    Raises ``ValueError`` for a zero-length vector.
    """
    arr = np.asarray(v, dtype=float)
    length = float(np.linalg.norm(arr))
    if length <= 0.0 or not math.isfinite(length):
        raise ValueError(f"cannot normalize degenerate vector {arr.tolist()}")
    return arr / length


def rotate_about_axis(v: Sequence[float], axis: Sequence[float], angle: float) -> np.ndarray:
    """Rotate ``v`` about the unit vector ``axis`` by ``angle`` radians.

    Right-hand rule (Rodrigues' formula).
    """
    v = np.asarray(v, dtype=float)
    k = np.asarray(axis, dtype=float)
    c = math.cos(angle)
    s = math.sin(angle)
    return v * c + np.cross(k, v) * s + k * float(np.dot(k, v)) * (1.0 - c)


def path_tangent(center: Sequence[float],
                 previous: Optional[Sequence[float]] = None,
                 last_tangent: Optional[Sequence[float]] = None,
                 default_tangent: Sequence[float] = DEFAULT_TANGENT) -> np.ndarray:
    """Backward-difference tangent with fallbacks for degenerate input.

    Coincident centres fall back to ``last_tangent``; with no usable
    history ``default_tangent`` is used.
    """
    if previous is not None:
        delta = np.asarray(center, dtype=float) - np.asarray(previous, dtype=float)
        if float(np.dot(delta, delta)) >= MIN_TANGENT_SQ:
            return delta / float(np.linalg.norm(delta))
    if last_tangent is not None:
        return normalize(last_tangent)
    return normalize(default_tangent)


def compute_frame(center: Sequence[float],
                  previous: Optional[Sequence[float]] = None,
                  roll: float = 0.0,
                  *,
                  last_tangent: Optional[Sequence[float]] = None,
                  world_up: Sequence[float] = WORLD_UP,
                  world_right: Sequence[float] = WORLD_RIGHT,
                  default_tangent: Sequence[float] = DEFAULT_TANGENT) -> Frame:
    """Compute the orthonormal frame of a slice.

    Args:
        center: Slice centre
        previous: Centre of the previous slice, ``None`` for the first one
        roll: Rotation about the tangent in radians
        last_tangent: Tangent of the previous step, used when ``center``
            coincides with ``previous``
        world_up: Preferred helper axis for the normal
        world_right: Helper used when the tangent is nearly parallel to
            ``world_up``
        default_tangent: Tangent for the very first slice

    Returns:
        Frame with unit ``tangent``, ``normal`` and ``binormal`` where
        ``binormal = tangent x normal`` (before roll is applied)
    """
    tangent = path_tangent(center, previous, last_tangent, default_tangent)

    up = normalize(world_up)
    if abs(float(np.dot(tangent, up))) > PARALLEL_LIMIT:
        up = normalize(world_right)

    normal = normalize(up - tangent * float(np.dot(up, tangent)))
    binormal = normalize(np.cross(tangent, normal))

    if abs(roll) > MIN_ROLL:
        normal = rotate_about_axis(normal, tangent, roll)
        binormal = rotate_about_axis(binormal, tangent, roll)

    return Frame(tangent=tangent, normal=normal, binormal=binormal)


def is_orthonormal(frame: Frame, tol: float = 1e-9) -> bool:
    """Check that the frame is unit length, mutually orthogonal and right handed."""
    m = np.column_stack([frame.tangent, frame.normal, frame.binormal])
    if not np.allclose(m.T @ m, np.eye(3), atol=tol):
        return False
    return bool(np.allclose(np.cross(frame.tangent, frame.normal), frame.binormal, atol=tol))


__all__ = [
    "WORLD_UP",
    "WORLD_RIGHT",
    "DEFAULT_TANGENT",
    "normalize",
    "rotate_about_axis",
    "path_tangent",
    "compute_frame",
    "is_orthonormal",
]
