"""Data structures for the sweep-mesh builder.

A sweep consumes an ordered sequence of :class:`Slice` records, each
paired with a 2D cross-section polygon.  Each slice gets an orthonormal
:class:`Frame` that lifts its cross-section into a 3D ring; consecutive
rings are stitched into a tube.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np

Point2 = Tuple[float, float]
Point3 = Tuple[float, float, float]

MIN_SECTION_POINTS = 3


@dataclass(frozen=True)
class Slice:
    """One sample along the swept path.

    Attributes:
        center: Position of the path sample in world coordinates
        roll: Rotation of the cross-section about the path tangent (radians)
        type: Optional element type label from the survey
        row: Zero-based data row in the survey source; pairs the slice
            with its cross-section row
        break_before: Start a new run at this slice regardless of
            cardinality or type
    """
    center: Point3
    roll: float = 0.0
    type: Optional[str] = None
    row: int = 0
    break_before: bool = False

    @property
    def position(self) -> np.ndarray:
        return np.asarray(self.center, dtype=float)


@dataclass(frozen=True, eq=False)
class Frame:
    """Orthonormal right-handed basis attached to a slice."""
    tangent: np.ndarray
    normal: np.ndarray
    binormal: np.ndarray

    def project(self, section: np.ndarray, center: Sequence[float]) -> np.ndarray:
        """Lift an ``(N, 2)`` section into an ``(N, 3)`` ring at ``center``.

        Local ``x`` runs along ``-binormal`` and local ``y`` along
        ``normal``, so ``(x, y, tangent)`` is right-handed and a
        counter-clockwise section winds counter-clockwise about the
        tangent.
        """
        section = np.asarray(section, dtype=float).reshape(-1, 2)
        origin = np.asarray(center, dtype=float)
        return (origin
                - np.outer(section[:, 0], self.binormal)
                + np.outer(section[:, 1], self.normal))


def as_section(points: Sequence[Sequence[float]]) -> np.ndarray:
    """Normalise a cross-section into an ``(N, 2)`` float array.

    Empty input gives a ``(0, 2)`` array.  A closing point that repeats the
    first one is dropped, the polygon is implicitly closed.
    """
    if points is None or len(points) == 0:
        return np.zeros((0, 2), dtype=float)
    arr = np.asarray([(float(p[0]), float(p[1])) for p in points], dtype=float)
    if len(arr) > 1 and np.allclose(arr[0], arr[-1]):
        arr = arr[:-1]
    return arr


def section_signed_area(section: np.ndarray) -> float:
    """Shoelace area, positive for counter-clockwise polygons."""
    section = np.asarray(section, dtype=float)
    if len(section) < MIN_SECTION_POINTS:
        return 0.0
    x = section[:, 0]
    y = section[:, 1]
    return 0.5 * float(np.dot(x, np.roll(y, -1)) - np.dot(np.roll(x, -1), y))


def orient_section_ccw(section: np.ndarray) -> np.ndarray:
    """Return ``section`` wound counter-clockwise, keeping index 0 in place."""
    section = np.asarray(section, dtype=float)
    if section_signed_area(section) < 0.0:
        return np.concatenate([section[:1], section[:0:-1]])
    return section


def is_stitchable(section: np.ndarray) -> bool:
    return len(section) >= MIN_SECTION_POINTS


__all__ = [
    "Point2",
    "Point3",
    "MIN_SECTION_POINTS",
    "Slice",
    "Frame",
    "as_section",
    "section_signed_area",
    "orient_section_ccw",
    "is_stitchable",
]
