"""Cross-section providers.

A provider maps a survey row index to the 2D polygon swept at that
slice.  The builder only sees the callable; the aperture and beam
sweeps differ solely in which provider they inject.
"""

from __future__ import annotations

import math
from typing import Dict, Iterable, List, Optional, Sequence

from beamsweep.config import BeamConfig
from beamsweep.io.tables import ApertureRow, EnvelopeRow
from beamsweep.model import Point2


def _index_rows(rows: Iterable) -> Dict[int, object]:
    return {r.row: r for r in rows if r is not None}


def forward_fill(values: Sequence[Optional[float]]) -> List[float]:
    """Replace each missing value with the last value before it.

    The first value must be present.
    """
    if not values or values[0] is None:
        raise ValueError("leading value is missing")
    out: List[float] = []
    last = values[0]
    for v in values:
        if v is not None:
            last = v
        out.append(float(last))
    return out


def aperture_polygon(record: ApertureRow) -> List[Point2]:
    """Polygon of one aperture row.

    The x and y arrays are paired index by index and truncated to the
    shorter of the two; missing coordinates take the previous value in
    their array.
    """
    n = min(len(record.xs), len(record.ys))
    if n == 0:
        return []
    xs = forward_fill(record.xs[:n])
    ys = forward_fill(record.ys[:n])
    return list(zip(xs, ys))


class ApertureProvider:
    """Traced aperture boundaries keyed by survey row."""

    def __init__(self, rows: Iterable[Optional[ApertureRow]]):
        self._rows = _index_rows(rows)

    def __len__(self):
        return len(self._rows)

    def __contains__(self, row: int) -> bool:
        return row in self._rows

    def __call__(self, row: int) -> List[Point2]:
        record = self._rows.get(row)
        if record is None:
            return []
        return aperture_polygon(record)


def beam_sigma(variance: float, offset: float = 0.0, *, num_sigmas: float = 3.0,
               sigma_scale: float = 1.0, emittance: float = 1.0) -> float:
    """Half-width of the beam envelope in one plane.

    ``sigma_scale * num_sigmas * sqrt(emittance * variance) + |offset|``

    Raises ``ValueError`` for a negative ``emittance * variance`` and for a
    half-width that overflows.
    """
    product = emittance * variance
    if product < 0.0:
        raise ValueError(f"negative beam variance {variance!r}")
    sigma = sigma_scale * num_sigmas * math.sqrt(product) + abs(offset)
    if not math.isfinite(sigma):
        raise ValueError(f"beam half-width overflows for variance {variance!r}")
    return sigma


def ellipse_points(cx: float, cy: float, sx: float, sy: float, resolution: int = 32) -> List[Point2]:
    """Counter-clockwise ellipse polygon starting at ``(cx + sx, cy)``."""
    if resolution < 3:
        raise ValueError(f"resolution must be 3 or greater, got {resolution}")
    step = 2.0 * math.pi / resolution
    return [(cx + sx * math.cos(i * step), cy + sy * math.sin(i * step))
            for i in range(resolution)]


class BeamEnvelopeProvider:
    """Beam ellipses derived from the envelope table, keyed by survey row."""

    def __init__(self, rows: Iterable[Optional[EnvelopeRow]], beam: Optional[BeamConfig] = None,
                 resolution: int = 32):
        if resolution < 3:
            raise ValueError(f"resolution must be 3 or greater, got {resolution}")
        self._rows = _index_rows(rows)
        self.beam = beam or BeamConfig()
        self.resolution = resolution

    def __len__(self):
        return len(self._rows)

    def __contains__(self, row: int) -> bool:
        return row in self._rows

    def sigmas(self, record: EnvelopeRow) -> tuple:
        kw = dict(num_sigmas=self.beam.num_sigmas, sigma_scale=self.beam.sigma_scale,
                  emittance=self.beam.emittance)
        return (beam_sigma(record.var_x, record.offset_x, **kw),
                beam_sigma(record.var_y, record.offset_y, **kw))

    def __call__(self, row: int) -> List[Point2]:
        record = self._rows.get(row)
        if record is None:
            return []
        try:
            sx, sy = self.sigmas(record)
        except ValueError:
            return []
        return ellipse_points(record.x, record.y, sx, sy, self.resolution)


class StaticProvider:
    """The same cross-section at every row."""

    def __init__(self, section: Sequence[Point2]):
        self.section = [(float(x), float(y)) for x, y in section]

    def __call__(self, row: int) -> List[Point2]:
        return list(self.section)


__all__ = [
    "forward_fill",
    "aperture_polygon",
    "ApertureProvider",
    "beam_sigma",
    "ellipse_points",
    "BeamEnvelopeProvider",
    "StaticProvider",
]
