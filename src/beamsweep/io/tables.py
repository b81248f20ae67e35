"""Readers for the row-oriented tabular sources.

Three sources feed a sweep:

* the survey table, one path sample per row
  (``x, y, z, theta, phi, psi, type``; angles in degrees),
* the aperture table, whose rows carry bracketed x/y coordinate lists,
* the beam-envelope table, whose rows carry a centroid and the raw
  statistics the beam ellipse is derived from.

Every reader discards the header row and keeps one entry per data row.  A
rejected row is kept as ``None`` (or skipped, for the survey) at its row
index, so the survey and a cross-section source stay paired by explicit
row number even when one of them drops a line.
"""

from __future__ import annotations

import csv
import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Tuple, Union

from beamsweep.errors import SourceReadError
from beamsweep.model import Slice

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

SURVEY_MIN_FIELDS = 7
APERTURE_MIN_FIELDS = 5
ENVELOPE_MIN_FIELDS = 6

_MISSING_TOKENS = {"", "none", "null", "nan"}


@dataclass(frozen=True)
class SurveyColumns:
    """Column layout of the survey table (0-indexed)."""
    x: int = 0
    y: int = 1
    z: int = 2
    roll: int = 5
    type: int = 6


@dataclass(frozen=True)
class EnvelopeColumns:
    """Column layout of the beam-envelope table (0-indexed)."""
    x: int = 0
    y: int = 1
    var_x: int = 2
    var_y: int = 3
    offset_x: int = 4
    offset_y: int = 5


@dataclass(frozen=True)
class ApertureRow:
    """Parallel coordinate arrays of one traced aperture boundary.

    ``None`` entries mark missing values; the leading entry of each array
    is always present.
    """
    row: int
    xs: Tuple[Optional[float], ...]
    ys: Tuple[Optional[float], ...]


@dataclass(frozen=True)
class EnvelopeRow:
    """Beam centroid and raw statistics for one path sample."""
    row: int
    x: float
    y: float
    var_x: float
    var_y: float
    offset_x: float = 0.0
    offset_y: float = 0.0


@dataclass
class ReadReport:
    """Row accounting for one source."""
    path: str
    rows: int = 0
    rejected: List[int] = field(default_factory=list)

    @property
    def accepted(self) -> int:
        return self.rows - len(self.rejected)


def _iter_rows(path: PathLike, delimiter: str) -> Iterator[List[str]]:
    """Yield the data rows of ``path`` with the header removed."""
    try:
        with open(path, "r", encoding="utf-8", newline="") as fp:
            reader = csv.reader(fp, delimiter=delimiter, skipinitialspace=True)
            rows = list(reader)
    except (OSError, UnicodeDecodeError, csv.Error) as exc:
        raise SourceReadError(path, exc) from exc
    return iter(rows[1:])


def parse_list(text: str) -> List[Optional[float]]:
    """Parse a bracketed, comma separated list of numbers.

    ``"[1.0, None, 3.0]"`` gives ``[1.0, None, 3.0]``.  ``None``, ``null``,
    ``nan`` and empty tokens map to ``None``.  The brackets are optional and
    an empty list parses to ``[]``.

    Raises ``ValueError`` for tokens that are neither numbers nor missing
    markers, and for infinite values.
    """
    body = text.strip()
    if body.startswith("["):
        body = body[1:]
    if body.endswith("]"):
        body = body[:-1]
    if not body.strip():
        return []

    values: List[Optional[float]] = []
    for token in body.split(","):
        token = token.strip()
        if token.lower() in _MISSING_TOKENS:
            values.append(None)
            continue
        value = float(token)
        if math.isinf(value):
            raise ValueError(f"non-finite value {token!r}")
        values.append(None if math.isnan(value) else value)
    return values


def _float_field(fields: Sequence[str], index: int) -> float:
    value = float(fields[index])
    if not math.isfinite(value):
        raise ValueError(f"non-finite value {fields[index]!r}")
    return value


def read_survey(path: PathLike, *, columns: SurveyColumns = SurveyColumns(),
                delimiter: str = ",", report: Optional[ReadReport] = None) -> List[Slice]:
    """Read the survey table into slices.

    Rows with fewer than seven fields or non-numeric coordinates are
    skipped.  ``Slice.row`` keeps the original data-row index so the
    slice can be paired with its cross-section row.  Roll is read in
    degrees and returned in radians.
    """
    slices: List[Slice] = []
    for row, fields in enumerate(_iter_rows(path, delimiter)):
        if report is not None:
            report.rows += 1
        if len(fields) < SURVEY_MIN_FIELDS:
            logger.debug("%s: skipping short survey row %d (%d fields)", path, row, len(fields))
            if report is not None:
                report.rejected.append(row)
            continue
        try:
            center = (
                _float_field(fields, columns.x),
                _float_field(fields, columns.y),
                _float_field(fields, columns.z),
            )
            roll = math.radians(_float_field(fields, columns.roll))
        except (ValueError, IndexError) as exc:
            logger.debug("%s: skipping malformed survey row %d: %s", path, row, exc)
            if report is not None:
                report.rejected.append(row)
            continue
        label = fields[columns.type].strip() if columns.type < len(fields) else ""
        slices.append(Slice(center=center, roll=roll, type=label or None, row=row))
    logger.debug("%s: %d slices", path, len(slices))
    return slices


def read_apertures(path: PathLike, *, x_column: int = 3, y_column: int = 4,
                   delimiter: str = ",",
                   report: Optional[ReadReport] = None) -> List[Optional[ApertureRow]]:
    """Read the aperture table.

    Rows with fewer than five fields, unparseable lists, or a missing
    leading x or y coordinate are rejected and kept as ``None``.  Missing
    interior coordinates stay ``None`` inside the accepted row.
    """
    records: List[Optional[ApertureRow]] = []
    for row, fields in enumerate(_iter_rows(path, delimiter)):
        if report is not None:
            report.rows += 1
        record = None
        if len(fields) >= APERTURE_MIN_FIELDS:
            try:
                xs = parse_list(fields[x_column])
                ys = parse_list(fields[y_column])
            except (ValueError, IndexError) as exc:
                logger.debug("%s: malformed aperture row %d: %s", path, row, exc)
            else:
                if xs and ys and xs[0] is not None and ys[0] is not None:
                    record = ApertureRow(row=row, xs=tuple(xs), ys=tuple(ys))
        if record is None:
            logger.debug("%s: rejecting aperture row %d", path, row)
            if report is not None:
                report.rejected.append(row)
        records.append(record)
    return records


def read_beam_envelope(path: PathLike, *, columns: EnvelopeColumns = EnvelopeColumns(),
                       delimiter: str = ",",
                       report: Optional[ReadReport] = None) -> List[Optional[EnvelopeRow]]:
    """Read the beam-envelope table.

    Rows with fewer than six fields or non-numeric values are kept as
    ``None``.
    """
    records: List[Optional[EnvelopeRow]] = []
    for row, fields in enumerate(_iter_rows(path, delimiter)):
        if report is not None:
            report.rows += 1
        record = None
        if len(fields) >= ENVELOPE_MIN_FIELDS:
            try:
                record = EnvelopeRow(
                    row=row,
                    x=_float_field(fields, columns.x),
                    y=_float_field(fields, columns.y),
                    var_x=_float_field(fields, columns.var_x),
                    var_y=_float_field(fields, columns.var_y),
                    offset_x=_float_field(fields, columns.offset_x),
                    offset_y=_float_field(fields, columns.offset_y),
                )
            except (ValueError, IndexError) as exc:
                logger.debug("%s: malformed envelope row %d: %s", path, row, exc)
        if record is None and report is not None:
            report.rejected.append(row)
        records.append(record)
    return records


__all__ = [
    "SurveyColumns",
    "EnvelopeColumns",
    "ApertureRow",
    "EnvelopeRow",
    "ReadReport",
    "parse_list",
    "read_survey",
    "read_apertures",
    "read_beam_envelope",
]
