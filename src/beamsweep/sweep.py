"""Sweep-mesh builder.

A sweep is a single forward pass over an ordered sequence of slices.  For
each slice the builder asks a cross-section provider for the 2D polygon
at that slice's row, computes the slice frame, lifts the polygon into a
3D ring, re-indexes the ring to cancel accumulated twist, and stitches it
to the previous ring.

All state carried from one slice to the next lives in an immutable
:class:`SweepState` that :func:`step` takes and returns, so a sweep is a
fold over its slices::

    state = SweepState.initial()
    for slc in slices:
        result = step(state, slc, provider(slc.row), config)
        state = result.state

The sweep is split into independent runs whenever ring cardinality
changes, the segment-break predicate fires (by default on a change of
slice type) or a slice is flagged ``break_before``.  Runs never stitch to
each other and each run restarts twist accumulation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Callable, Iterable, Iterator, List, Optional, Sequence, Tuple

import numpy as np

from beamsweep.config import Color, SweepConfig
from beamsweep.frames import compute_frame
from beamsweep.mesh import Mesh, finalize_mesh, merge_meshes
from beamsweep.model import Point2, Slice, as_section, is_stitchable, orient_section_ccw
from beamsweep.twist import resolve_twist

logger = logging.getLogger(__name__)

CrossSectionProvider = Callable[[int], Sequence[Point2]]
SegmentBreak = Callable[[Optional[Slice], Slice], bool]
ProgressCallback = Callable[[int, Optional[int]], None]
Colorizer = Callable[[Optional[str]], Optional[Color]]

_NO_TRIANGLES = np.zeros((0, 3, 3), dtype=float)


def never_break(previous: Optional[Slice], current: Slice) -> bool:
    return False


def break_on_type_change(previous: Optional[Slice], current: Slice) -> bool:
    """Start a new run whenever the slice type label changes."""
    return previous is not None and previous.type != current.type


def segment_break_predicate(mode: str) -> SegmentBreak:
    """Map a configuration name (``"type"`` or ``"none"``) to a predicate."""
    if mode == "type":
        return break_on_type_change
    if mode == "none":
        return never_break
    raise ValueError(f"unknown segment break mode {mode!r}")


@dataclass(frozen=True, eq=False)
class SweepState:
    """Everything one step needs from the steps before it.

    Attributes:
        previous_center: Centre of the last consumed slice (stitched or not)
        tangent: Tangent of the last consumed slice
        previous_slice: Slice that produced ``ring``
        ring: Last ring, re-indexed, as it was stitched
        raw_ring: Last ring as projected, used for twist measurement
        ring_center: Centre of the slice that produced ``ring``
        accumulated_twist: Signed drift total of the current run (radians)
        run_index: Index of the current run, -1 before the first ring
        run_tag: Type label of the slice that opened the current run
    """
    previous_center: Optional[np.ndarray] = None
    tangent: Optional[np.ndarray] = None
    previous_slice: Optional[Slice] = None
    ring: Optional[np.ndarray] = None
    raw_ring: Optional[np.ndarray] = None
    ring_center: Optional[np.ndarray] = None
    accumulated_twist: float = 0.0
    run_index: int = -1
    run_tag: Optional[str] = None

    @classmethod
    def initial(cls) -> "SweepState":
        return cls()

    @property
    def has_ring(self) -> bool:
        return self.ring is not None

    def start_run(self, tag: Optional[str]) -> "SweepState":
        """Drop ring history and twist, keeping the path state."""
        return replace(self, previous_slice=None, ring=None, raw_ring=None, ring_center=None,
                       accumulated_twist=0.0, run_index=self.run_index + 1, run_tag=tag)


@dataclass(frozen=True, eq=False)
class StepResult:
    """What one slice contributed.

    Attributes:
        state: State to feed into the next step
        triangles: ``(2N, 3, 3)`` triangles stitched at this step, possibly empty
        new_run: True if this slice opened a new run
        ring: Ring placed at this slice, ``None`` if the slice was dropped
        shift: Index rotation applied to the ring, in ``[0, N)``
        correction: The rotation as a signed vertex count
        dropped: True if the cross-section had fewer than three points
    """
    state: SweepState
    triangles: np.ndarray
    new_run: bool = False
    ring: Optional[np.ndarray] = None
    shift: int = 0
    correction: int = 0
    dropped: bool = False


def stitch_rings(prev_ring: np.ndarray, curr_ring: np.ndarray) -> np.ndarray:
    """Triangulate the quad strip between two rings of equal cardinality.

    For each ``j`` with ``k = (j + 1) mod N`` this emits
    ``(prev[j], prev[k], curr[j])`` and ``(prev[k], curr[k], curr[j])``,
    giving ``2N`` triangles in an ``(2N, 3, 3)`` array.  For rings wound
    counter-clockwise about the direction of travel the triangles face
    outwards.
    """
    prev_ring = np.asarray(prev_ring, dtype=float)
    curr_ring = np.asarray(curr_ring, dtype=float)
    n = len(prev_ring)
    if n != len(curr_ring):
        raise ValueError(f"cannot stitch rings of {n} and {len(curr_ring)} vertices")
    if n < 3:
        raise ValueError(f"rings need at least three vertices to stitch, got {n}")

    j = np.arange(n)
    k = (j + 1) % n
    tris = np.empty((2 * n, 3, 3), dtype=float)
    tris[0::2] = np.stack([prev_ring[j], prev_ring[k], curr_ring[j]], axis=1)
    tris[1::2] = np.stack([prev_ring[k], curr_ring[k], curr_ring[j]], axis=1)
    return tris


def prepare_section(points: Sequence[Point2], config: SweepConfig) -> np.ndarray:
    """Normalise, orient and scale a provider's cross-section.

    A section holding a non-finite coordinate comes back empty.
    """
    section = as_section(points)
    if not np.isfinite(section).all():
        return section[:0]
    if not is_stitchable(section):
        return section
    if config.orient_sections:
        section = orient_section_ccw(section)
    if config.thickness_scale != 1.0:
        section = section * config.thickness_scale
    return section


def step(state: SweepState, slc: Slice, points: Sequence[Point2], config: SweepConfig,
         segment_break: Optional[SegmentBreak] = None) -> StepResult:
    """Advance the sweep by one slice."""
    if segment_break is None:
        segment_break = segment_break_predicate(config.segment_break)

    center = slc.position
    frame = compute_frame(
        center,
        state.previous_center,
        slc.roll,
        last_tangent=state.tangent,
        world_up=config.world_up,
        world_right=config.world_right,
        default_tangent=config.default_tangent,
    )
    moved = replace(state, previous_center=center, tangent=frame.tangent)

    section = prepare_section(points, config)
    if not is_stitchable(section):
        logger.debug("row %d: section dropped (%d usable points)", slc.row, len(section))
        return StepResult(state=moved, triangles=_NO_TRIANGLES, dropped=True)

    raw = frame.project(section, center)

    reason = None
    if not state.has_ring:
        reason = "first ring"
    elif len(raw) != len(state.ring):
        reason = f"cardinality {len(state.ring)} -> {len(raw)}"
    elif slc.break_before:
        reason = "marked discontinuity"
    elif segment_break(state.previous_slice, slc):
        reason = f"segment break {state.previous_slice.type!r} -> {slc.type!r}"

    if reason is not None:
        fresh = moved.start_run(slc.type)
        logger.debug("row %d: new run %d (%s)", slc.row, fresh.run_index, reason)
        fresh = replace(fresh, previous_slice=slc, ring=raw, raw_ring=raw, ring_center=center)
        return StepResult(state=fresh, triangles=_NO_TRIANGLES, new_run=True, ring=raw)

    twist = resolve_twist(state.raw_ring, state.ring_center, raw, center,
                          frame.tangent, state.accumulated_twist)
    triangles = stitch_rings(state.ring, twist.ring)
    nxt = replace(moved, previous_slice=slc, ring=twist.ring, raw_ring=raw,
                  ring_center=center, accumulated_twist=twist.accumulated)
    return StepResult(state=nxt, triangles=triangles, ring=twist.ring,
                      shift=twist.shift, correction=twist.correction)


def iterate_steps(slices: Iterable[Slice], provider: CrossSectionProvider,
                  config: Optional[SweepConfig] = None,
                  segment_break: Optional[SegmentBreak] = None) -> Iterator[Tuple[Slice, StepResult]]:
    """Stream the sweep one slice at a time, starting from a fresh state."""
    config = config or SweepConfig()
    if segment_break is None:
        segment_break = segment_break_predicate(config.segment_break)
    state = SweepState.initial()
    for slc in slices:
        result = step(state, slc, provider(slc.row), config, segment_break)
        state = result.state
        yield slc, result


@dataclass
class SweepStats:
    """Bookkeeping for one sweep.

    ``shifts`` holds the signed index correction of every stitched pair.
    """
    slices: int = 0
    dropped: int = 0
    runs: int = 0
    stitched_pairs: int = 0
    triangles: int = 0
    shifts: List[int] = field(default_factory=list)
    final_twist: float = 0.0

    @property
    def max_shift(self) -> int:
        """Largest index correction in either direction."""
        return max((abs(s) for s in self.shifts), default=0)


@dataclass
class SweepResult:
    """Finished meshes of one sweep.

    ``runs`` always holds one mesh per run that produced triangles.
    ``meshes`` is what a sink should consume: the runs themselves when the
    sweep was configured ``per_run``, otherwise the single combined mesh.
    """
    name: str
    runs: List[Mesh] = field(default_factory=list)
    stats: SweepStats = field(default_factory=SweepStats)
    per_run: bool = False
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def combined(self) -> Mesh:
        return merge_meshes(self.runs, name=self.name)

    @property
    def meshes(self) -> List[Mesh]:
        if self.per_run:
            return list(self.runs)
        if not self.runs:
            return []
        return [self.combined]

    @property
    def triangle_count(self) -> int:
        return sum(m.face_count for m in self.runs)


class SweepBuilder:
    """One parameterised sweep for every consumer.

    The aperture and beam-envelope sweeps differ only in the injected
    cross-section ``provider`` and in configuration.
    """

    def __init__(self, provider: CrossSectionProvider, config: Optional[SweepConfig] = None, *,
                 segment_break: Optional[SegmentBreak] = None,
                 colorizer: Optional[Colorizer] = None,
                 name: str = "sweep"):
        self.provider = provider
        self.config = config or SweepConfig()
        self.segment_break = segment_break or segment_break_predicate(self.config.segment_break)
        self.colorizer = colorizer or self.config.color_for
        self.name = name

    def _finish_run(self, pieces: List[np.ndarray], run_index: int, tag: Optional[str]) -> Optional[Mesh]:
        if not pieces:
            return None
        return finalize_mesh(
            np.concatenate(pieces, axis=0),
            tolerance=self.config.merge_tolerance,
            reorder=self.config.reorder_faces,
            color=self.colorizer(tag),
            name=f"{self.name}_{run_index:04d}",
            tag=tag,
        )

    def build(self, slices: Iterable[Slice], progress: Optional[ProgressCallback] = None) -> SweepResult:
        """Sweep ``slices`` to completion and return the finished meshes.

        ``progress(done, total)`` is called synchronously after every
        slice; ``total`` is ``None`` when ``slices`` has no length.
        """
        total = len(slices) if hasattr(slices, "__len__") else None
        result = SweepResult(name=self.name, per_run=self.config.per_run)
        stats = result.stats

        pieces: List[np.ndarray] = []
        run_index = -1
        run_tag: Optional[str] = None
        last_state = SweepState.initial()

        for done, (slc, out) in enumerate(
                iterate_steps(slices, self.provider, self.config, self.segment_break), start=1):
            stats.slices += 1
            if out.dropped:
                stats.dropped += 1
            elif out.new_run:
                mesh = self._finish_run(pieces, run_index, run_tag)
                if mesh is not None:
                    result.runs.append(mesh)
                pieces = []
                run_index = out.state.run_index
                run_tag = out.state.run_tag
                stats.runs += 1
            elif len(out.triangles):
                pieces.append(out.triangles)
                stats.stitched_pairs += 1
                stats.triangles += len(out.triangles)
                stats.shifts.append(out.correction)
            last_state = out.state
            if progress is not None:
                progress(done, total)

        mesh = self._finish_run(pieces, run_index, run_tag)
        if mesh is not None:
            result.runs.append(mesh)
        stats.final_twist = last_state.accumulated_twist

        logger.info("%s: %d slices, %d dropped, %d runs, %d triangles",
                    self.name, stats.slices, stats.dropped, stats.runs, stats.triangles)
        return result


def sweep(slices: Iterable[Slice], provider: CrossSectionProvider,
          config: Optional[SweepConfig] = None, *,
          segment_break: Optional[SegmentBreak] = None,
          colorizer: Optional[Colorizer] = None,
          progress: Optional[ProgressCallback] = None,
          name: str = "sweep") -> SweepResult:
    """Convenience wrapper around :class:`SweepBuilder`."""
    builder = SweepBuilder(provider, config, segment_break=segment_break,
                           colorizer=colorizer, name=name)
    return builder.build(slices, progress=progress)


__all__ = [
    "CrossSectionProvider",
    "SegmentBreak",
    "never_break",
    "break_on_type_change",
    "segment_break_predicate",
    "SweepState",
    "StepResult",
    "stitch_rings",
    "prepare_section",
    "step",
    "iterate_steps",
    "SweepStats",
    "SweepResult",
    "SweepBuilder",
    "sweep",
]
