#!/usr/bin/env python3
from __future__ import annotations
import argparse, re, sys
from pathlib import Path
import yaml
from bam_error_strat.collect import ErrorCollector
from bam_error_strat.io import ObservationReader, MetricsWriter
from bam_error_strat.logic import flatten_dot
import pandas as pd

PAT = re.compile(r'^(?P<key>[^.]+)\.obs\.tsv(\.gz)?$')

def discover(run_dir: Path, prefix: str) -> dict[str, Path]:
    found = {}
    for f in sorted(run_dir.iterdir()):
        m = PAT.match(f.name)
        if m and m.group("key").startswith(prefix):
            found[m.group("key")] = f.resolve()
    return found

def build_collector(cfg_path: Path) -> ErrorCollector:
    cfg = yaml.safe_load(cfg_path.read_text())
    return ErrorCollector(cfg)

def main(argv: list[str] | None = None) -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--run-dir",  type=Path, required=True)
    ap.add_argument("--config",   type=Path, required=True)
    ap.add_argument("--prefix",   default="")
    ap.add_argument("--max-loci", type=int, default=10_000)
    args = ap.parse_args(argv)

    samples = discover(args.run_dir, args.prefix)
    if not samples:
        sys.exit("No observation files found.")

    key = sorted(samples)[0]
    print(f"⇢ Streaming {key}")

    collector = build_collector(args.config)

    def progress():
        n = collector.collect_log["loci"]
        if n % 1_000 == 0 and n:
            print(*flatten_dot(collector.get_collect_log()).values(), sep="\t")
        return n >= args.max_loci

    print(*flatten_dot(collector.get_collect_log()).keys(), sep="\t")
    with ObservationReader(samples[key]) as reader:
        collector.run(reader, should_stop=progress)

    writer = MetricsWriter(str(args.run_dir), key, collector.output_template)
    for aggregation in collector.aggregations:
        df = writer.to_frame(aggregation)
        print(f"\n✓ {aggregation.suffix}: {len(df):,} strata")
        print(df.head(10).to_string(index=False))

if __name__ == "__main__":
    main()
