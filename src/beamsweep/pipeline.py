"""Aperture and beam-envelope sweeps from files.

Both consumers read the same survey and differ only in their
cross-section source.  Slices and cross-section rows are paired by their
data-row index, never by reading the two files in lock step, so a row
rejected by one reader cannot shift the pairing of the rows after it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from beamsweep.config import SweepConfig
from beamsweep.errors import SourceReadError
from beamsweep.io.tables import (
    ApertureRow,
    EnvelopeRow,
    ReadReport,
    read_apertures,
    read_beam_envelope,
    read_survey,
)
from beamsweep.model import Slice
from beamsweep.providers import ApertureProvider, BeamEnvelopeProvider
from beamsweep.sweep import ProgressCallback, SweepBuilder, SweepResult
from beamsweep.tasks import JobProgress, SweepJob, run_sweeps

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

APERTURE = "aperture"
BEAM = "beam"


def load_survey(path: PathLike, config: Optional[SweepConfig] = None,
                report: Optional[ReadReport] = None) -> List[Slice]:
    config = config or SweepConfig()
    return read_survey(path, columns=config.survey, delimiter=config.delimiter, report=report)


def load_apertures(path: PathLike, config: Optional[SweepConfig] = None,
                   report: Optional[ReadReport] = None) -> List[Optional[ApertureRow]]:
    config = config or SweepConfig()
    return read_apertures(path, x_column=config.aperture.x_column, y_column=config.aperture.y_column,
                          delimiter=config.delimiter, report=report)


def load_envelope(path: PathLike, config: Optional[SweepConfig] = None,
                  report: Optional[ReadReport] = None) -> List[Optional[EnvelopeRow]]:
    config = config or SweepConfig()
    return read_beam_envelope(path, columns=config.envelope, delimiter=config.delimiter, report=report)


def aperture_builder(rows: Sequence[Optional[ApertureRow]], config: Optional[SweepConfig] = None,
                     name: str = APERTURE) -> SweepBuilder:
    return SweepBuilder(ApertureProvider(rows), config, name=name)


def beam_builder(rows: Sequence[Optional[EnvelopeRow]], config: Optional[SweepConfig] = None,
                 name: str = BEAM) -> SweepBuilder:
    config = config or SweepConfig()
    provider = BeamEnvelopeProvider(rows, config.beam, resolution=config.ellipse_resolution)
    return SweepBuilder(provider, config, name=name)


def _failed(name: str, exc: SourceReadError, config: SweepConfig) -> SweepResult:
    logger.error("%s sweep: %s", name, exc)
    return SweepResult(name=name, per_run=config.per_run, error=str(exc))


def aperture_sweep(survey_path: PathLike, aperture_path: PathLike,
                   config: Optional[SweepConfig] = None,
                   progress: Optional[ProgressCallback] = None) -> SweepResult:
    """Sweep the traced aperture along the survey.

    An unreadable source gives an empty result whose ``error`` says why.
    """
    config = config or SweepConfig()
    try:
        slices = load_survey(survey_path, config)
        rows = load_apertures(aperture_path, config)
    except SourceReadError as exc:
        return _failed(APERTURE, exc, config)
    return aperture_builder(rows, config).build(slices, progress=progress)


def beam_sweep(survey_path: PathLike, envelope_path: PathLike,
               config: Optional[SweepConfig] = None,
               progress: Optional[ProgressCallback] = None) -> SweepResult:
    """Sweep the beam envelope ellipses along the survey.

    An unreadable source gives an empty result whose ``error`` says why.
    """
    config = config or SweepConfig()
    try:
        slices = load_survey(survey_path, config)
        rows = load_envelope(envelope_path, config)
    except SourceReadError as exc:
        return _failed(BEAM, exc, config)
    return beam_builder(rows, config).build(slices, progress=progress)


def build_all(survey: PathLike, *, aperture: Optional[PathLike] = None,
              envelope: Optional[PathLike] = None, config: Optional[SweepConfig] = None,
              progress: Optional[JobProgress] = None,
              max_workers: Optional[int] = None) -> Dict[str, SweepResult]:
    """Run the requested sweeps concurrently over one shared survey.

    Returns results keyed ``"aperture"`` and/or ``"beam"``.  A sweep whose
    source cannot be read is reported with ``error`` set and no meshes;
    the other sweep still runs.
    """
    config = config or SweepConfig()
    requested = [name for name, path in ((APERTURE, aperture), (BEAM, envelope)) if path is not None]
    if not requested:
        raise ValueError("nothing to build: give an aperture and/or a beam envelope source")

    try:
        slices = load_survey(survey, config)
    except SourceReadError as exc:
        return {name: _failed(name, exc, config) for name in requested}

    results: Dict[str, SweepResult] = {}
    jobs: List[SweepJob] = []
    if aperture is not None:
        try:
            jobs.append(SweepJob(APERTURE, aperture_builder(load_apertures(aperture, config), config), slices))
        except SourceReadError as exc:
            results[APERTURE] = _failed(APERTURE, exc, config)
    if envelope is not None:
        try:
            jobs.append(SweepJob(BEAM, beam_builder(load_envelope(envelope, config), config), slices))
        except SourceReadError as exc:
            results[BEAM] = _failed(BEAM, exc, config)

    results.update(run_sweeps(jobs, max_workers=max_workers, progress=progress))
    return {name: results[name] for name in requested}


@dataclass
class SourceCheck:
    """Row accounting for a survey and its cross-section sources."""
    survey: ReadReport
    slices: int = 0
    sources: Dict[str, ReadReport] = field(default_factory=dict)
    paired: Dict[str, int] = field(default_factory=dict)

    def unpaired(self, name: str) -> int:
        return self.slices - self.paired.get(name, 0)


def check_sources(survey: PathLike, *, aperture: Optional[PathLike] = None,
                  envelope: Optional[PathLike] = None,
                  config: Optional[SweepConfig] = None) -> SourceCheck:
    """Parse every source and count how many slices find a cross-section row.

    Raises :class:`SourceReadError` for an unreadable source.
    """
    config = config or SweepConfig()
    survey_report = ReadReport(path=str(survey))
    slices = load_survey(survey, config, report=survey_report)
    check = SourceCheck(survey=survey_report, slices=len(slices))

    if aperture is not None:
        report = ReadReport(path=str(aperture))
        provider = ApertureProvider(load_apertures(aperture, config, report=report))
        check.sources[APERTURE] = report
        check.paired[APERTURE] = sum(1 for s in slices if s.row in provider)
    if envelope is not None:
        report = ReadReport(path=str(envelope))
        provider = BeamEnvelopeProvider(load_envelope(envelope, config, report=report), config.beam,
                                        resolution=config.ellipse_resolution)
        check.sources[BEAM] = report
        check.paired[BEAM] = sum(1 for s in slices if s.row in provider)
    return check


__all__ = [
    "APERTURE",
    "BEAM",
    "load_survey",
    "load_apertures",
    "load_envelope",
    "aperture_builder",
    "beam_builder",
    "aperture_sweep",
    "beam_sweep",
    "build_all",
    "SourceCheck",
    "check_sources",
]
