# bam_error_strat/metrics.py
"""
Error metrics produced by the calculators.

A metric is an immutable snapshot of a calculator's raw counters. Derived
fields (rates and phred-scaled qualities) stay unset until `finalize()` is
called, which returns a new snapshot with them filled in. Finalizing never
touches the counters, so calling it again yields an equal object.
"""

import dataclasses
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

import numpy as np

# Reported when no errors were observed at all
MAX_Q_SCORE = 99.0


def safe_rate(numerator: int, denominator: int) -> float:
    """numerator / denominator, or nan when the denominator is zero."""
    if denominator == 0:
        return float(np.nan)
    return float(np.true_divide(numerator, denominator))


def q_score(rate: float) -> float:
    """
    Phred-scaled quality of an error rate.

    Args:
        rate (float): An error rate in [0, 1], or nan.

    Returns:
        float: -10 * log10(rate); nan for an undefined rate and
               MAX_Q_SCORE when the rate is zero.
    """
    if np.isnan(rate):
        return float("nan")
    if rate <= 0:
        return MAX_Q_SCORE
    return min(MAX_Q_SCORE, float(-10.0 * np.log10(rate)))


@dataclass(frozen=True)
class ErrorMetric(ABC):
    covariate: str
    total_bases: int

    @property
    @abstractmethod
    def finalized(self) -> bool:
        """True once the derived fields are filled in."""

    @abstractmethod
    def finalize(self) -> "ErrorMetric":
        """A copy with the derived fields filled in."""

    def with_covariate(self, covariate: str) -> "ErrorMetric":
        return dataclasses.replace(self, covariate=covariate)

    def as_row(self) -> Dict[str, Any]:
        """Ordered field -> value mapping, for the metrics writer."""
        return {f.name: getattr(self, f.name) for f in dataclasses.fields(self)}


@dataclass(frozen=True)
class SimpleErrorMetric(ErrorMetric):
    """Mismatch rate against the reference, taken as truth."""

    error_bases: int = 0
    error_rate: Optional[float] = None
    q_score: Optional[float] = None

    @property
    def finalized(self) -> bool:
        return self.error_rate is not None

    def finalize(self) -> "SimpleErrorMetric":
        rate = safe_rate(self.error_bases, self.total_bases)
        return dataclasses.replace(self, error_rate=rate, q_score=q_score(rate))


@dataclass(frozen=True)
class OverlappingErrorMetric(ErrorMetric):
    """
    Disagreement classes over bases read by both mates of a template.

    num_disagrees_with_reference_only: both mates agree with each other but
        not with the reference (points at the template).
    num_disagrees_with_ref_and_mate: the mate agrees with the reference but
        this read does not (points at sequencing).
    num_three_ways_disagreement: read, mate and reference all differ.
    """

    num_bases_with_overlapping_reads: int = 0
    num_disagrees_with_reference_only: int = 0
    num_disagrees_with_ref_and_mate: int = 0
    num_three_ways_disagreement: int = 0
    disagrees_with_reference_only_rate: Optional[float] = None
    disagrees_with_ref_and_mate_rate: Optional[float] = None
    three_ways_disagreement_rate: Optional[float] = None
    disagrees_with_reference_only_q: Optional[float] = None
    disagrees_with_ref_and_mate_q: Optional[float] = None
    three_ways_disagreement_q: Optional[float] = None

    @property
    def finalized(self) -> bool:
        return self.disagrees_with_reference_only_rate is not None

    def finalize(self) -> "OverlappingErrorMetric":
        overlapping = self.num_bases_with_overlapping_reads
        reference_only = safe_rate(self.num_disagrees_with_reference_only, overlapping)
        ref_and_mate = safe_rate(self.num_disagrees_with_ref_and_mate, overlapping)
        three_ways = safe_rate(self.num_three_ways_disagreement, overlapping)
        return dataclasses.replace(
            self,
            disagrees_with_reference_only_rate=reference_only,
            disagrees_with_ref_and_mate_rate=ref_and_mate,
            three_ways_disagreement_rate=three_ways,
            disagrees_with_reference_only_q=q_score(reference_only),
            disagrees_with_ref_and_mate_q=q_score(ref_and_mate),
            three_ways_disagreement_q=q_score(three_ways),
        )
