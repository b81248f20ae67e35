"""Running independent sweeps side by side.

The sweep core is strictly sequential, but separate sweeps (say the
aperture and the beam envelope of the same lattice) share no mutable
state and can run on worker threads.  A sweep's result is handed over
only once the sweep has completed; there is no cancellation mid-sweep.
"""

from __future__ import annotations

import concurrent.futures
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Sequence

from beamsweep.model import Slice
from beamsweep.sweep import SweepBuilder, SweepResult

logger = logging.getLogger(__name__)

JobProgress = Callable[[str, int, Optional[int]], None]


@dataclass
class SweepJob:
    """A builder together with the slices it should sweep."""
    name: str
    builder: SweepBuilder
    slices: Sequence[Slice]


def submit_sweep(executor: concurrent.futures.Executor, job: SweepJob,
                 progress: Optional[JobProgress] = None) -> "concurrent.futures.Future[SweepResult]":
    """Schedule ``job`` on ``executor``.

    ``progress(name, done, total)`` runs on the worker thread; marshalling
    it to a UI thread is the caller's business.
    """
    callback = None
    if progress is not None:
        def callback(done, total, _name=job.name):
            progress(_name, done, total)
    return executor.submit(job.builder.build, job.slices, callback)


def run_sweeps(jobs: Sequence[SweepJob], *, max_workers: Optional[int] = None,
               progress: Optional[JobProgress] = None,
               on_complete: Optional[Callable[[str, SweepResult], None]] = None) -> Dict[str, SweepResult]:
    """Run ``jobs`` concurrently and collect their results by name.

    ``on_complete(name, result)`` fires once per job as it finishes, in
    completion order.  An exception raised inside a sweep propagates to
    the caller after the remaining jobs have been waited for.
    """
    names = [job.name for job in jobs]
    if len(set(names)) != len(names):
        raise ValueError(f"sweep job names must be unique: {names}")
    if not jobs:
        return {}

    results: Dict[str, SweepResult] = {}
    workers = max_workers or len(jobs)
    with concurrent.futures.ThreadPoolExecutor(max_workers=workers,
                                               thread_name_prefix="beamsweep") as executor:
        futures = {submit_sweep(executor, job, progress): job.name for job in jobs}
        for future in concurrent.futures.as_completed(futures):
            name = futures[future]
            try:
                result = future.result()
            except Exception:
                logger.exception("sweep %s failed", name)
                raise
            logger.debug("sweep %s finished: %d triangles", name, result.triangle_count)
            results[name] = result
            if on_complete is not None:
                on_complete(name, result)
    return {name: results[name] for name in names}


__all__ = ["SweepJob", "JobProgress", "submit_sweep", "run_sweeps"]
