#!/usr/bin/env python3
"""
Command line interface for beamsweep.

Usage:
    python -m beamsweep build --survey SURVEY.csv [--aperture APERTURE.csv] [--beam ENVELOPE.csv]
                              [--config CONFIG.yaml] [--output OUT.obj|OUT.stl] [--per-run] [--hull]
    python -m beamsweep check --survey SURVEY.csv [--aperture APERTURE.csv] [--beam ENVELOPE.csv]

Examples:
    # Aperture and beam envelope in one OBJ file, one object per run
    python -m beamsweep build --survey twiss_survey.csv \
        --aperture aperture.csv --beam envelope.csv \
        --per-run --output lattice.obj

    # Report rejected rows and slice/cross-section pairing
    python -m beamsweep check --survey twiss_survey.csv --aperture aperture.csv
"""

import argparse
import logging
import sys
from pathlib import Path

from beamsweep.config import load_config
from beamsweep.errors import BeamSweepError


def _summary(name, result) -> str:
    if not result.ok:
        return f"{name}: FAILED ({result.error})"
    stats = result.stats
    return (f"{name}: {stats.slices} slices, {stats.dropped} dropped, "
            f"{stats.runs} run(s), {result.triangle_count} triangles")


def cmd_build(args):
    """Sweep the requested sources and export the meshes."""
    from beamsweep.mesh import convex_hull
    from beamsweep.pipeline import build_all

    if args.aperture is None and args.beam is None:
        print("Error: give --aperture and/or --beam", file=sys.stderr)
        return 1

    try:
        config = load_config(args.config)
    except BeamSweepError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    if args.per_run:
        config = config.with_overrides(per_run=True)

    results = build_all(args.survey, aperture=args.aperture, envelope=args.beam, config=config)

    status = 0
    meshes = []
    for name, result in results.items():
        print(_summary(name, result))
        if not result.ok:
            status = 1
            continue
        meshes.extend(result.meshes)

    if args.output:
        if not meshes:
            print("Warning: nothing to export", file=sys.stderr)
            return status or 1
        output_path = Path(args.output)
        suffix = output_path.suffix.lower()
        if suffix == '.obj':
            from beamsweep.io import write_obj
            obj_path, mtl_path = write_obj(meshes, output_path)
            print(f"Exported to: {obj_path} (materials: {mtl_path.name})")
        elif suffix == '.stl':
            from beamsweep.io import write_stl
            count = write_stl(meshes, str(output_path), binary=not args.ascii)
            print(f"Exported to: {output_path} ({count} triangles)")
        else:
            print(f"Error: Unknown output format: {suffix}", file=sys.stderr)
            return 1

        if args.hull:
            from beamsweep.io import write_obj
            hulls = [convex_hull(m) for m in meshes if len(m.vertices) >= 4]
            hull_path = output_path.with_name(f"{output_path.stem}_hull.obj")
            write_obj(hulls, hull_path)
            print(f"Collision hulls: {hull_path}")

    return status


def cmd_check(args):
    """Parse all sources and report rejected rows and pairing."""
    from beamsweep.pipeline import check_sources

    try:
        config = load_config(args.config)
        check = check_sources(args.survey, aperture=args.aperture, envelope=args.beam, config=config)
    except BeamSweepError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"survey: {check.survey.rows} rows, {check.slices} slices, "
          f"{len(check.survey.rejected)} rejected")
    for name, report in check.sources.items():
        print(f"{name}: {report.rows} rows, {report.accepted} accepted, "
              f"{len(report.rejected)} rejected; {check.paired[name]}/{check.slices} slices paired")
        if report.rows != check.survey.rows:
            print(f"  Warning: {name} has {report.rows} rows, survey has {check.survey.rows}")
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog='python -m beamsweep',
        description='Sweep accelerator apertures and beam envelopes into tube meshes',
    )
    parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging')
    parser.add_argument('--log-file', help='Also write the log to this file')

    subparsers = parser.add_subparsers(dest='action', required=True)

    def add_sources(sub):
        sub.add_argument('--survey', required=True, help='Survey table (one row per path sample)')
        sub.add_argument('--aperture', help='Aperture table with x/y coordinate lists')
        sub.add_argument('--beam', help='Beam-envelope table')
        sub.add_argument('--config', help='YAML configuration file')

    build_parser = subparsers.add_parser('build', help='Build tube meshes')
    add_sources(build_parser)
    build_parser.add_argument('-o', '--output', help='Output file (.obj or .stl)')
    build_parser.add_argument('--per-run', action='store_true', help='One mesh per run')
    build_parser.add_argument('--hull', action='store_true',
                              help='Also write convex hulls next to the output')
    build_parser.add_argument('--ascii', action='store_true', help='ASCII instead of binary STL')

    check_parser = subparsers.add_parser('check', help='Validate the input tables')
    add_sources(check_parser)

    args = parser.parse_args(argv)

    from beamsweep.logging_config import setup_logging
    setup_logging(logging.DEBUG if args.verbose else logging.WARNING, args.log_file)

    if args.action == 'build':
        return cmd_build(args)
    elif args.action == 'check':
        return cmd_check(args)
    return 1


if __name__ == '__main__':
    sys.exit(main())
