# bam_error_strat/calculators.py
"""
Base calculators: accumulators that are shown one read base at a time and
summarise what they saw as an ErrorMetric.

A calculator owns nothing but its counters. It is Accumulating until
`finalize()` is called, after which it is Finalized and refuses more bases.
"""

from abc import ABC, abstractmethod
from typing import Optional

from bam_error_strat.logic import bases_equal, is_no_call, is_valid_base
from bam_error_strat.metrics import ErrorMetric, OverlappingErrorMetric, SimpleErrorMetric
from bam_error_strat.records import LocusObservations, ReadObservation


class BaseErrorCalculator(ABC):
    """Counts every called base; subclasses add their own error counters."""

    suffix = ""

    def __init__(self) -> None:
        self.total_bases = 0
        self._final: Optional[ErrorMetric] = None

    @property
    def finalized(self) -> bool:
        return self._final is not None

    def add_base(self, observation: ReadObservation, locus: LocusObservations,
                 mate: Optional[ReadObservation] = None) -> None:
        """Show one read base to the calculator. No-calls are not counted."""
        if self._final is not None:
            raise RuntimeError(f"{type(self).__name__} is finalized; it cannot accept more bases")
        if not is_no_call(observation.read_base):
            self.total_bases += 1

    @abstractmethod
    def get_metric(self) -> ErrorMetric:
        """Snapshot of the raw counters, without derived fields."""

    def finalize(self) -> ErrorMetric:
        """Stop accumulating and return the metric with derived fields."""
        if self._final is None:
            self._final = self.get_metric().finalize()
        return self._final


class SimpleErrorCalculator(BaseErrorCalculator):
    """
    Estimates the error rate of the bases it sees, taking the reference as
    truth. A base is an error only when both it and the reference are one of
    A/C/G/T and they differ (case-insensitively).
    """

    suffix = "error"

    def __init__(self) -> None:
        super().__init__()
        self.error_bases = 0

    def add_base(self, observation, locus, mate=None) -> None:
        super().add_base(observation, locus, mate)
        read_base = observation.read_base
        reference_base = locus.reference_base
        if is_valid_base(read_base) and is_valid_base(reference_base) \
                and not bases_equal(read_base, reference_base):
            self.error_bases += 1

    def get_metric(self) -> SimpleErrorMetric:
        return SimpleErrorMetric("", self.total_bases, self.error_bases)


class OverlappingErrorCalculator(BaseErrorCalculator):
    """
    Error rate over bases read twice from the same template, once by each
    mate.

    Over those bases a read that disagrees with the reference is classified
    by what its mate says: if the mate agrees with the read the difference is
    probably in the template; if the mate agrees with the reference it is
    probably a sequencing error in this read; otherwise all three differ.
    The mate is found by the caller (see `MateLocator`).
    """

    suffix = "overlapping_error"

    def __init__(self) -> None:
        super().__init__()
        self.overlapping_bases = 0
        self.disagrees_with_reference_only = 0
        self.disagrees_with_ref_and_mate = 0
        self.three_ways_disagreement = 0

    def add_base(self, observation, locus, mate=None) -> None:
        super().add_base(observation, locus, mate)
        # only bases whose mate also covers the locus, both called as A/C/G/T
        if mate is None:
            return
        read_base = observation.read_base
        mate_base = mate.read_base
        # no-calls and ambiguity codes are never compared
        if not (is_valid_base(read_base) and is_valid_base(mate_base)):
            return

        self.overlapping_bases += 1

        reference_base = locus.reference_base
        if not is_valid_base(reference_base) or bases_equal(read_base, reference_base):
            return

        if bases_equal(read_base, mate_base):
            self.disagrees_with_reference_only += 1
        elif bases_equal(mate_base, reference_base):
            self.disagrees_with_ref_and_mate += 1
        else:
            self.three_ways_disagreement += 1

    def get_metric(self) -> OverlappingErrorMetric:
        return OverlappingErrorMetric(
            "",
            self.total_bases,
            num_bases_with_overlapping_reads=self.overlapping_bases,
            num_disagrees_with_reference_only=self.disagrees_with_reference_only,
            num_disagrees_with_ref_and_mate=self.disagrees_with_ref_and_mate,
            num_three_ways_disagreement=self.three_ways_disagreement,
        )
