"""Discrete twist resolution between consecutive rings.

Cross-sections are irregular polygons, so rotation drift between
independently computed frames cannot be removed by re-parameterising the
section.  Instead the drift is measured on the index-0 radial vector of
each ring, accumulated along the run, and cancelled by rotating the ring's
vertex order by a whole number of positions.

Drift is always measured between consecutive *raw* rings (as projected,
before re-indexing), so the accumulated total is the drift relative to the
first ring of the run and each correction is derived from it.  Small
per-step errors therefore never snap into a large jump later on.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np

TWO_PI = 2.0 * math.pi
_MIN_REF = 1e-12


@dataclass(frozen=True, eq=False)
class TwistResult:
    """Outcome of resolving one ring against its predecessor.

    Attributes:
        ring: Re-indexed ring, ready to be stitched
        accumulated: Running drift total after this step (radians)
        delta: Drift measured for this step alone (radians)
        shift: Index rotation applied to the raw ring, in ``[0, N)``
        correction: The same rotation as a signed vertex count, before
            wrapping; ``-1`` is one position back, not ``N - 1`` forward
    """
    ring: np.ndarray
    accumulated: float
    delta: float
    shift: int
    correction: int = 0


def measure_twist(prev_ring: np.ndarray, prev_center: Sequence[float],
                  curr_ring: np.ndarray, curr_center: Sequence[float],
                  tangent: Sequence[float]) -> float:
    """Signed angle about ``tangent`` from the previous index-0 radial to the current one.

    Returns 0.0 when either radial vector is degenerate.
    """
    ref_prev = np.asarray(prev_ring[0], dtype=float) - np.asarray(prev_center, dtype=float)
    ref_curr = np.asarray(curr_ring[0], dtype=float) - np.asarray(curr_center, dtype=float)
    len_prev = float(np.linalg.norm(ref_prev))
    len_curr = float(np.linalg.norm(ref_curr))
    if len_prev < _MIN_REF or len_curr < _MIN_REF:
        return 0.0
    ref_prev = ref_prev / len_prev
    ref_curr = ref_curr / len_curr

    dot = min(1.0, max(-1.0, float(np.dot(ref_prev, ref_curr))))
    cross = float(np.dot(np.asarray(tangent, dtype=float), np.cross(ref_prev, ref_curr)))
    return math.atan2(cross, dot)


def ring_winding(ring: np.ndarray, center: Sequence[float], tangent: Sequence[float]) -> int:
    """Return +1 if the ring's index order runs counter-clockwise about ``tangent``, else -1."""
    radial = np.asarray(ring, dtype=float) - np.asarray(center, dtype=float)
    swept = np.cross(radial, np.roll(radial, -1, axis=0)).sum(axis=0)
    return -1 if float(np.dot(swept, tangent)) < 0.0 else 1


def index_correction(accumulated: float, n: int, winding: int = 1) -> int:
    """Convert accumulated drift into a signed vertex count.

    ``round(accumulated / (2*pi / n))`` positions, negated for rings whose
    index order runs counter-clockwise about the tangent so that the
    vertex nearest the previous index 0 moves into position 0.
    """
    if n < 1:
        raise ValueError(f"ring must have at least one vertex, got {n}")
    steps = int(round(accumulated / (TWO_PI / n)))
    return -steps if winding > 0 else steps


def index_shift(accumulated: float, n: int, winding: int = 1) -> int:
    """:func:`index_correction` wrapped into ``[0, n)``."""
    return index_correction(accumulated, n, winding) % n


def rotate_ring(ring: np.ndarray, shift: int) -> np.ndarray:
    """Return ``ring`` with ``ring[i] := ring[(i + shift) mod N]``."""
    ring = np.asarray(ring)
    if len(ring) == 0 or shift % len(ring) == 0:
        return ring
    return np.roll(ring, -shift, axis=0)


def resolve_twist(prev_raw: np.ndarray, prev_center: Sequence[float],
                  curr_raw: np.ndarray, curr_center: Sequence[float],
                  tangent: Sequence[float], accumulated: float = 0.0) -> TwistResult:
    """Measure drift of ``curr_raw`` against ``prev_raw`` and re-index it.

    Both rings must have the same cardinality.
    """
    if len(prev_raw) != len(curr_raw):
        raise ValueError(
            f"cannot resolve twist between rings of {len(prev_raw)} and {len(curr_raw)} vertices"
        )
    delta = measure_twist(prev_raw, prev_center, curr_raw, curr_center, tangent)
    total = accumulated + delta
    winding = ring_winding(curr_raw, curr_center, tangent)
    correction = index_correction(total, len(curr_raw), winding)
    shift = correction % len(curr_raw)
    return TwistResult(ring=rotate_ring(curr_raw, shift), accumulated=total, delta=delta,
                       shift=shift, correction=correction)


__all__ = [
    "TwistResult",
    "measure_twist",
    "ring_winding",
    "index_correction",
    "index_shift",
    "rotate_ring",
    "resolve_twist",
]
