# bam_error_strat/aggregation.py
"""
Aggregation of read bases into per-stratum calculators.

An aggregation pairs one calculator kind with one or more stratifiers. Every
observation is keyed by the tuple of its stratum values and routed to the
calculator owning that key, which is created the first time the key is seen.
Observations with an undefined key are left out.
"""

import logging
from typing import Any, Dict, Hashable, Iterable, List, Mapping, Optional, Tuple

from bam_error_strat.calculators import BaseErrorCalculator
from bam_error_strat.mates import MateLocator
from bam_error_strat.metrics import ErrorMetric
from bam_error_strat.records import LocusObservations, ReadObservation
from bam_error_strat.registry import CalculatorKind, build_stratifier
from bam_error_strat.stratify import (CollectionStratifier, Stratifier, no_stratifier,
                                      stratum_label, stratum_labels)

logger = logging.getLogger(__name__)

StratumKey = Tuple[Hashable, ...]


def _sort_value(value):
    # numbers in numeric order, then tuples element by element, then labels
    if isinstance(value, (int, float)):
        return (0, value, "", ())
    if isinstance(value, tuple):
        return (1, 0, "", tuple(_sort_value(v) for v in value))
    return (2, 0, stratum_label(value), ())


def _sort_key(key: StratumKey):
    return tuple(_sort_value(v) for v in key)


class BaseErrorAggregation:
    """
    One output channel: a calculator kind stratified by a set of stratifiers.

    Attributes:
        kind (CalculatorKind): Which calculator every stratum gets.
        stratifier (CollectionStratifier): Builds the composite key.
        calculators (dict): Stratum key -> calculator, filled lazily.
        skipped_bases (int): Observations whose key was undefined.
    """

    def __init__(self, kind: CalculatorKind, stratifiers: Iterable[Stratifier]):
        self.kind = kind
        self.stratifier = CollectionStratifier(stratifiers)
        self.calculators: Dict[StratumKey, BaseErrorCalculator] = {}
        self.skipped_bases = 0
        # per-run state, never shared with another aggregation
        self.mate_locator = MateLocator() if kind.needs_mates else None

    @property
    def suffix(self) -> str:
        return f"{self.kind.suffix}_by_{self.stratifier.suffix}"

    @property
    def stratifier_suffixes(self) -> List[str]:
        return self.stratifier.suffixes

    def add_base(self, observation: ReadObservation, locus_observations: LocusObservations) -> None:
        key = self.stratifier(observation, locus_observations)
        if key is None:
            self.skipped_bases += 1
            return

        calculator = self.calculators.get(key)
        if calculator is None:
            calculator = self.kind.create()
            self.calculators[key] = calculator

        mate = None
        if self.mate_locator is not None:
            mate = self.mate_locator.find_mate(observation, locus_observations)
        calculator.add_base(observation, locus_observations, mate)

    def add_locus(self, locus_observations: LocusObservations) -> None:
        """Show every observation of one locus to the aggregation."""
        for observation in locus_observations:
            self.add_base(observation, locus_observations)

    def get_metrics(self) -> List[Tuple[StratumKey, ErrorMetric]]:
        """
        Finalize every calculator and return its metric, labelled with the
        stratum it was collected for, in a stable order.
        """
        rows = []
        for key in sorted(self.calculators, key=_sort_key):
            metric = self.calculators[key].finalize()
            rows.append((key, metric.with_covariate("_".join(stratum_labels(key)))))
        logger.debug("%s: %d strata, %d bases skipped", self.suffix, len(rows), self.skipped_bases)
        return rows

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.suffix!r}, strata={len(self.calculators)})"


def parse_aggregation(spec: str, params: Optional[Mapping[str, Any]] = None) -> BaseErrorAggregation:
    """
    Build an aggregation from "CALCULATOR:STRATIFIER[,STRATIFIER...]".

    e.g. "ERROR:CYCLE,READ_DIRECTION" or "OVERLAPPING_ERROR". With no
    stratifiers the aggregation is over all bases.
    """
    calculator_name, _, stratifier_names = spec.partition(":")
    if not calculator_name.strip():
        raise ValueError(f"Aggregation '{spec}' does not name a calculator")
    kind = CalculatorKind.parse(calculator_name)

    names = [n for n in (s.strip() for s in stratifier_names.split(",")) if n]
    if len({n.upper() for n in names}) != len(names):
        raise ValueError(f"Aggregation '{spec}' repeats a stratifier")
    stratifiers = [build_stratifier(n, params) for n in names] or [no_stratifier]
    return BaseErrorAggregation(kind, stratifiers)
