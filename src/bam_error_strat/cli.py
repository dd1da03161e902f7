#!/usr/bin/env python3
"""
Command-line interface for bam-error-strat.

Reads an observation pileup, collects the error aggregations named in a YAML
configuration and writes one metrics table per aggregation.
"""

import argparse
import logging
import sys
from pathlib import Path
import yaml

from bam_error_strat.collect import ErrorCollector, collect_and_write
from bam_error_strat.io import ObservationReader, MetricsWriter


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Collect base-error metrics, stratified by read-base context"
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="YAML configuration (aggregations, params); default: ERROR and OVERLAPPING_ERROR over all bases"
    )
    parser.add_argument(
        "--input",
        type=Path,
        required=True,
        help="Observation pileup (tab separated, can be gzipped)"
    )
    parser.add_argument(
        "--out",
        type=Path,
        required=True,
        help="Output directory for metrics tables"
    )
    parser.add_argument(
        "--prefix",
        default="metrics",
        help="Prefix for output files (default: metrics)"
    )
    parser.add_argument(
        "--aggregation",
        action="append",
        help="CALCULATOR:STRATIFIER[,STRATIFIER...]; repeatable, overrides the config"
    )
    parser.add_argument(
        "--max-loci",
        type=int,
        help="Stop after this many loci"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log progress"
    )

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Validate inputs
    if args.config is not None and not args.config.exists():
        sys.exit(f"Error: Configuration file not found: {args.config}")
    if not args.input.exists():
        sys.exit(f"Error: Input file not found: {args.input}")

    # Create output directory if it doesn't exist
    args.out.mkdir(parents=True, exist_ok=True)

    # Load configuration and create collector
    try:
        cfg = yaml.safe_load(args.config.read_text()) if args.config else {}
        cfg = cfg or {}
        if args.aggregation:
            cfg["aggregations"] = args.aggregation
        if args.max_loci is not None:
            cfg["max_loci"] = args.max_loci
        collector = ErrorCollector(cfg)
    except Exception as e:
        sys.exit(f"Error loading configuration: {e}")

    # Set up I/O
    try:
        reader = ObservationReader(args.input)
        writer = MetricsWriter(str(args.out), args.prefix, collector.output_template)
    except Exception as e:
        sys.exit(f"Error setting up I/O: {e}")

    print(f"Processing observations from {args.input.name}")
    print(f"Output directory: {args.out}")
    print(collector)

    try:
        with reader:
            paths = collect_and_write(reader, collector, writer)

        # Show summary statistics
        stats = collector.get_collect_log()
        print(f"\nProcessing complete!")
        print(f"Loci processed: {stats['loci']:,}")
        print(f"Observations processed: {stats['observations']:,}")
        if stats["stopped_early"]:
            print("Stopped early at --max-loci")
        for path in paths:
            print(f"Wrote {path}")

    except Exception as e:
        sys.exit(f"Error during processing: {e}")


if __name__ == "__main__":
    main()
