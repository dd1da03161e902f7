# bam_error_strat/stratify.py
"""
Read-base stratifiers.

A stratifier maps one read observation (plus the locus it sits on) to a
discrete stratum value, or to None when no value can be computed, e.g. when
the neighbouring base it needs lies off the end of the read.

All neighbour lookups are done in *sequencing* order. For a read on the
negative strand the base sequenced before the current one sits at the next
storage offset, and every base reported is complemented so that strata are
expressed in the read's own orientation.
"""

from enum import Enum
from typing import Callable, Hashable, Iterable, Optional, Sequence

from bam_error_strat.logic import (complement, count_no_calls, gc_fraction,
                                   is_valid_base, bases_equal, reverse_complement)
from bam_error_strat.records import LocusObservations, ReadObservation

DEFAULT_LONG_HOMOPOLYMER = 6

StratifyFunc = Callable[[ReadObservation, LocusObservations], Optional[Hashable]]


class LongShortHomopolymer(Enum):
    SHORT_HOMOPOLYMER = "SHORT_HOMOPOLYMER"
    LONG_HOMOPOLYMER = "LONG_HOMOPOLYMER"


class Stratifier:
    """
    A named stratification function.

    The suffix labels the output channel, e.g. "error_by_cycle".
    """

    def __init__(self, func: StratifyFunc, suffix: str):
        self.func = func
        self.suffix = suffix

    def stratify(self, observation: ReadObservation, locus: LocusObservations) -> Optional[Hashable]:
        return self.func(observation, locus)

    def __call__(self, observation: ReadObservation, locus: LocusObservations) -> Optional[Hashable]:
        return self.stratify(observation, locus)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.suffix!r})"


class PairStratifier(Stratifier):
    """Pairs two stratifiers; the pair is undefined if either half is."""

    def __init__(self, first: Stratifier, second: Stratifier, suffix: Optional[str] = None):
        self.first = first
        self.second = second
        super().__init__(self._pair, suffix or f"{first.suffix}_and_{second.suffix}")

    def _pair(self, observation, locus):
        a = self.first(observation, locus)
        if a is None:
            return None
        b = self.second(observation, locus)
        if b is None:
            return None
        return a, b


class CollectionStratifier(Stratifier):
    """
    Combines any number of stratifiers into one ordered tuple.

    This is how an aggregation builds its composite key: a single undefined
    component makes the whole key undefined.
    """

    def __init__(self, stratifiers: Iterable[Stratifier]):
        self.stratifiers = list(stratifiers)
        if not self.stratifiers:
            raise ValueError("CollectionStratifier needs at least one stratifier")
        super().__init__(self._collect, "_and_".join(s.suffix for s in self.stratifiers))

    @property
    def suffixes(self) -> list[str]:
        return [s.suffix for s in self.stratifiers]

    def _collect(self, observation, locus):
        values = []
        for stratifier in self.stratifiers:
            value = stratifier(observation, locus)
            if value is None:
                return None
            values.append(value)
        return tuple(values)


def _oriented(base: str, observation: ReadObservation) -> str:
    base = base.upper()
    return complement(base) if observation.negative_strand else base


def _shifted_read_base(observation: ReadObservation, shift: int) -> Optional[str]:
    """
    The read base `shift` steps away from the current one in sequencing order
    (-1 previous, 0 current, +1 next).
    """
    step = -shift if observation.negative_strand else shift
    base = observation.base_at(observation.offset + step)
    if base is None:
        return None
    return _oriented(base, observation)


def _stratify_reference_base(observation: ReadObservation, locus: LocusObservations) -> Optional[str]:
    if not is_valid_base(locus.reference_base):
        return None
    return _oriented(locus.reference_base, observation)


def _stratify_homopolymer_length(observation: ReadObservation, locus: LocusObservations) -> Optional[int]:
    """
    Length of the homopolymer the base sits at the end of, counting only the
    bases read before it: 1 plus the run of preceding read bases (in
    sequencing order) that match the reference base.
    """
    reference_base = locus.reference_base
    if not is_valid_base(reference_base):
        return None

    # storage-order step towards the bases sequenced earlier
    step = 1 if observation.negative_strand else -1
    length = 1
    position = observation.offset + step
    while True:
        base = observation.base_at(position)
        if base is None or not bases_equal(base, reference_base):
            return length
        length += 1
        position += step


def _padded_context(observation: ReadObservation, padding: int) -> Optional[str]:
    start = observation.offset - padding
    end = observation.offset + padding + 1
    if start < 0 or end > observation.read_length:
        return None
    context = observation.read_bases[start:end].upper()
    return reverse_complement(context) if observation.negative_strand else context


def _stratify_cycle(observation: ReadObservation, locus: LocusObservations) -> Optional[int]:
    """1-based machine cycle of the base."""
    if observation.read_base is None:
        return None
    if observation.negative_strand:
        return observation.read_length - observation.offset
    return observation.offset + 1


def _binned_cycle(observation: ReadObservation, locus: LocusObservations) -> Optional[int]:
    """Which fifth of the read (1-5) the cycle falls into."""
    cycle = _stratify_cycle(observation, locus)
    if cycle is None:
        return None
    return 1 + (5 * (cycle - 1)) // observation.read_length


def _read_ordinality(observation: ReadObservation, locus: LocusObservations):
    return observation.role if observation.paired else None


def _gc_content(observation: ReadObservation, locus: LocusObservations) -> Optional[float]:
    gc = gc_fraction(observation.read_bases)
    return None if gc is None else round(gc, 2)


no_stratifier = Stratifier(lambda r, l: "all", "all")
read_base = Stratifier(lambda r, l: _shifted_read_base(r, 0), "read_base")
previous_base = Stratifier(lambda r, l: _shifted_read_base(r, -1), "prev_base")
next_base = Stratifier(lambda r, l: _shifted_read_base(r, 1), "next_base")
reference_base = Stratifier(_stratify_reference_base, "ref_base")
pre_dinucleotide = PairStratifier(previous_base, reference_base, "pre_dinuc")
post_dinucleotide = PairStratifier(reference_base, next_base, "post_dinuc")
homopolymer_length = Stratifier(_stratify_homopolymer_length, "homopolymer_length")
homopolymer = PairStratifier(pre_dinucleotide, homopolymer_length, "homopolymer")
one_base_padded_context = Stratifier(lambda r, l: _padded_context(r, 1), "one_base_padded_context")
two_base_padded_context = Stratifier(lambda r, l: _padded_context(r, 2), "two_base_padded_context")
cycle = Stratifier(_stratify_cycle, "cycle")
binned_cycle = Stratifier(_binned_cycle, "binned_cycle")
read_direction = Stratifier(lambda r, l: r.direction, "read_direction")
read_ordinality = Stratifier(_read_ordinality, "read_ordinality")
gc_content = Stratifier(_gc_content, "gc_content")
ns_in_read = Stratifier(lambda r, l: count_no_calls(r.read_bases), "ns_in_read")


def binned_homopolymer_stratifier(long_homopolymer: int = DEFAULT_LONG_HOMOPOLYMER) -> PairStratifier:
    """
    Pre-dinucleotide context paired with a SHORT/LONG homopolymer bin.

    Args:
        long_homopolymer (int): Run length from which a homopolymer is LONG.

    Returns:
        PairStratifier: The configured stratifier.
    """
    if isinstance(long_homopolymer, bool) or not isinstance(long_homopolymer, int) or long_homopolymer < 1:
        raise ValueError(f"long_homopolymer must be a positive integer, got {long_homopolymer!r}")

    def _bin(observation, locus):
        length = _stratify_homopolymer_length(observation, locus)
        if length is None:
            return None
        if length >= long_homopolymer:
            return LongShortHomopolymer.LONG_HOMOPOLYMER
        return LongShortHomopolymer.SHORT_HOMOPOLYMER

    return PairStratifier(pre_dinucleotide, Stratifier(_bin, "homopolymer_bin"), "binned_homopolymer")


def stratum_label(value) -> str:
    """
    Render a stratum value as a flat string for output.

    Dinucleotides print as "CA", enums by their value, nested pairs joined
    with underscores.
    """
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, tuple):
        if all(isinstance(v, str) and len(v) == 1 for v in value):
            return "".join(value)
        return "_".join(stratum_label(v) for v in value)
    return str(value)


def stratum_labels(key: Sequence) -> list[str]:
    return [stratum_label(v) for v in key]
