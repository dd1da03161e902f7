# bam_error_strat/collect.py

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

from bam_error_strat.aggregation import BaseErrorAggregation, parse_aggregation
from bam_error_strat.io import DEFAULT_OUTPUT_TEMPLATE, MetricsWriter
from bam_error_strat.records import LocusObservations

logger = logging.getLogger(__name__)

DEFAULT_AGGREGATIONS = ["ERROR", "OVERLAPPING_ERROR"]


class ErrorCollector:
    """
    Feeds a stream of loci to a set of aggregations.

    The configuration is a mapping, typically loaded from YAML:

        aggregations:
          - ERROR:CYCLE,READ_DIRECTION
          - OVERLAPPING_ERROR:BINNED_HOMOPOLYMER
        params:
          long_homopolymer: 6
          output_template: "{{ prefix }}.{{ suffix }}"
        max_loci: 100000        # optional

    Loci are consumed in stream order and each locus is shown to every
    aggregation in full before the next one is read, so stopping early only
    ever leaves whole loci committed.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None, log_every: int = 100_000):
        config = config or {}
        self.params = dict(config.get("params") or {})
        self.output_template = self.params.get("output_template", DEFAULT_OUTPUT_TEMPLATE)
        self.max_loci = config.get("max_loci")
        if self.max_loci is not None and (not isinstance(self.max_loci, int) or self.max_loci < 0):
            raise ValueError(f"max_loci must be a non-negative integer, got {self.max_loci!r}")
        self.log_every = log_every

        specs = config.get("aggregations") or DEFAULT_AGGREGATIONS
        if isinstance(specs, str):
            specs = [specs]
        self.aggregations: List[BaseErrorAggregation] = [parse_aggregation(s, self.params) for s in specs]

        suffixes = [a.suffix for a in self.aggregations]
        duplicates = sorted({s for s in suffixes if suffixes.count(s) > 1})
        if duplicates:
            raise ValueError(f"Aggregations configured more than once: {', '.join(duplicates)}")

        self.reset_collect_log()

    def reset_collect_log(self) -> None:
        """Resets the collection statistics."""
        self.collect_log = {
            "loci": 0,
            "observations": 0,
            "stopped_early": False,
        }

    def get_collect_log(self) -> Dict[str, Any]:
        """Returns the collection statistics, with per-aggregation skip counts."""
        log = dict(self.collect_log)
        log["skipped_bases"] = {a.suffix: a.skipped_bases for a in self.aggregations}
        log["strata"] = {a.suffix: len(a.calculators) for a in self.aggregations}
        return log

    def _stop_requested(self, should_stop: Optional[Callable[[], bool]]) -> bool:
        if self.max_loci is not None and self.collect_log["loci"] >= self.max_loci:
            return True
        return should_stop is not None and bool(should_stop())

    def add_locus(self, locus_observations: LocusObservations) -> None:
        for aggregation in self.aggregations:
            aggregation.add_locus(locus_observations)
        self.collect_log["loci"] += 1
        self.collect_log["observations"] += len(locus_observations)

    def run(self, loci: Iterable[LocusObservations],
            should_stop: Optional[Callable[[], bool]] = None) -> Dict[str, Any]:
        """
        Consume loci until the stream ends or a stop is requested.

        Args:
            loci: Loci in ascending order, each with its full observation set.
            should_stop: Optional callable checked between loci.

        Returns:
            dict: The collection log.
        """
        for locus_observations in loci:
            if self._stop_requested(should_stop):
                self.collect_log["stopped_early"] = True
                logger.info("Stopping after %d loci", self.collect_log["loci"])
                break
            self.add_locus(locus_observations)
            if self.log_every and self.collect_log["loci"] % self.log_every == 0:
                logger.info("Processed %d loci (%s:%d)", self.collect_log["loci"], *locus_observations.locus)
        return self.get_collect_log()

    def __str__(self) -> str:
        lines = ["ErrorCollector aggregations:"]
        for i, aggregation in enumerate(self.aggregations):
            lines.append(f"[{i:3} ]  {aggregation.suffix} ({aggregation.kind.name})")
        return "\n".join(lines)


def collect_and_write(
    loci: Iterable[LocusObservations],
    collector: ErrorCollector,
    writer: MetricsWriter,
    *,
    should_stop: Optional[Callable[[], bool]] = None,
) -> List[str]:
    """
    Run `collector` over `loci` and write one table per aggregation.

    Returns:
        list[str]: The paths written, in aggregation order.
    """
    collector.run(loci, should_stop=should_stop)
    return [writer.write(aggregation) for aggregation in collector.aggregations]
