#!/usr/bin/env python3
"""
Mine release-level defect datasets and run the walk-forward evaluation.

Usage:
    python almanac.py                          # all default projects
    python almanac.py --project avro           # one project
    python almanac.py --skip-evaluation        # datasets only
    python almanac.py --workers 4              # parallel grid cells per step
"""

import argparse
import sys

from defect_almanac import (
    DEFAULT_PROJECTS,
    diagnose_dataset,
    extract_dataset,
    results_to_frame,
    walk_forward_evaluation,
)
from defect_almanac.exceptions import AlmanacError
from defect_almanac.reports import dataset_path, load_dataset, write_dataset, write_results


def run_project(project, args):
    path = dataset_path(project.name, with_comments=True)
    if path.exists() and not args.refresh:
        print(f"\nLoading {path}", flush=True)
        df = load_dataset(path)
    else:
        df = extract_dataset(project)
        for with_comments in (False, True):
            write_dataset(df, project.name, with_comments, overwrite=args.refresh)

    if args.diagnose:
        diagnose_dataset(df, project.name)

    if args.skip_evaluation:
        return

    variants = (False, True) if args.with_comments else (False,)
    for with_comments in variants:
        data = df if with_comments else df.drop(columns=['comment_percentage'])
        name = f"{project.name}-wc" if with_comments else project.name
        results = walk_forward_evaluation(name, data, max_workers=args.workers)
        write_results(results_to_frame(results), project.name, with_comments, overwrite=args.refresh)


def main():
    parser = argparse.ArgumentParser(description="Release-level defect datasets and walk-forward evaluation")
    parser.add_argument("--project", action="append", choices=[p.name for p in DEFAULT_PROJECTS],
                        help="Project to process (repeatable, default: all)")
    parser.add_argument("--skip-evaluation", action="store_true", help="Only build the datasets")
    parser.add_argument("--with-comments", action="store_true",
                        help="Also evaluate the dataset variant with the comment percentage feature")
    parser.add_argument("--diagnose", action="store_true", help="Print dataset diagnostics")
    parser.add_argument("--refresh", action="store_true", help="Rebuild and overwrite existing outputs")
    parser.add_argument("--workers", type=int, default=1, help="Threads for grid cells of one step")
    args = parser.parse_args()

    selected = [p for p in DEFAULT_PROJECTS if not args.project or p.name in args.project]

    for project in selected:
        try:
            run_project(project, args)
        except AlmanacError as e:
            print(f"\nERROR processing {project.name}: {e}", file=sys.stderr, flush=True)
            return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
