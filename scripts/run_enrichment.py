#!/usr/bin/env python3
"""Run one enrichment session over the shelter dataset.

Loads the dataset (local snapshot, remote store, or Overpass), runs the
weather, slope/aspect and daylight passes, and prints a per-pass summary.

Usage:
    python run_enrichment.py --api-base-url http://localhost:3000

Example:
    python run_enrichment.py --cache-dir /var/lib/bivacchi --verbose
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

# Check imports before running
try:
    import bivacchi
except ImportError:
    print("Error: bivacchi not installed. Run: pip install -e .")
    sys.exit(1)


def print_report(report: bivacchi.SessionReport) -> None:
    """Print a human-readable session summary."""
    load = report.load
    print(f"Dataset: {load.records} records from {load.source.value}")
    if load.elevation_pass is not None:
        print(f"  Elevations populated: {load.elevation_pass.updated}")

    for result in report.passes:
        line = f"  {result.kind.value:<13} {result.updated:>4}/{result.candidates:<4} updated"
        if result.stopped_early:
            line += "  (stopped early)"
        if result.synced:
            line += "  [synced]"
        print(line)
        for reason, count in sorted(result.failures.items(), key=lambda kv: kv[0].value):
            print(f"      {reason.value}: {count}")


def main() -> None:
    """Parse arguments and run the session."""
    parser = argparse.ArgumentParser(
        description="Enrich the bivacchi shelter dataset with environmental data.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python run_enrichment.py
  python run_enrichment.py --api-base-url https://bivacchi.example.org --timeout 20 -v
        """,
    )
    parser.add_argument(
        "--api-base-url",
        type=str,
        default=None,
        help="Remote dataset store origin (default: http://localhost:3000)",
    )
    parser.add_argument(
        "--cache-dir",
        type=str,
        default=None,
        help="Directory for the local snapshot and elevation cache (default: ~/.bivacchi)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Per-request timeout in seconds (default: 30)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    overrides: dict[str, object] = {}
    if args.api_base_url is not None:
        overrides["api_base_url"] = args.api_base_url
    if args.cache_dir is not None:
        overrides["cache_dir"] = Path(args.cache_dir)
    if args.timeout is not None:
        overrides["request_timeout_s"] = args.timeout

    try:
        if overrides:
            bivacchi.configure(**overrides)
        report = bivacchi.enrich()
    except bivacchi.BivacchiError as e:
        print(f"\nError: {e}")
        sys.exit(1)

    print_report(report)


if __name__ == "__main__":
    main()
