import random

import pytest

from bam_error_strat.calculators import (BaseErrorCalculator, OverlappingErrorCalculator,
                                         SimpleErrorCalculator)
from bam_error_strat.mates import MateLocator
from bam_error_strat.records import Locus, LocusObservations, PairRole, ReadObservation

REFERENCE = "CATGGGGAAAAAAAAA"
READ_A = "CgTGtGGAcAAAgAAA"
READ_B = "CcTGGtGAcAAAgAAA"


def single_read_loci(read, reference=REFERENCE, negative_strand=True):
    """(observation, locus) for every offset of one read aligned at position 1."""
    pairs = []
    for i, reference_base in enumerate(reference):
        observation = ReadObservation("read", read, i, negative_strand=negative_strand)
        pairs.append((observation, LocusObservations(Locus("chr1", i + 1), reference_base, (observation,))))
    return pairs


def mate_pair_loci(read_a=READ_A, read_b=READ_B, reference=REFERENCE):
    """Both mates of "Read1234" over every position, as complete locus sets."""
    loci = []
    for i, reference_base in enumerate(reference):
        a = ReadObservation("Read1234", read_a, i, role=PairRole.FIRST,
                            alignment_start=1, mate_alignment_start=1)
        b = ReadObservation("Read1234", read_b, i, negative_strand=True, role=PairRole.SECOND,
                            alignment_start=1, mate_alignment_start=1)
        loci.append(LocusObservations(Locus("chr1", i + 1), reference_base, (a, b)))
    return loci


def test_simple_error_calculator():
    calculator = SimpleErrorCalculator()
    for observation, locus in single_read_loci(READ_A):
        calculator.add_base(observation, locus)

    metric = calculator.finalize()
    assert metric.total_bases == 16
    assert metric.error_bases == 4
    assert metric.error_rate == 0.25
    assert calculator.suffix == "error"


def test_simple_error_calculator_is_order_independent():
    pairs = single_read_loci(READ_A)
    expected = SimpleErrorCalculator()
    for observation, locus in pairs:
        expected.add_base(observation, locus)

    rng = random.Random(17)
    for _ in range(5):
        shuffled = pairs[:]
        rng.shuffle(shuffled)
        calculator = SimpleErrorCalculator()
        for observation, locus in shuffled:
            calculator.add_base(observation, locus)
        assert calculator.get_metric() == expected.get_metric()


def test_simple_error_calculator_ignores_no_calls_and_ambiguity():
    calculator = SimpleErrorCalculator()
    # no-call read base: neither counted nor an error
    for observation, locus in single_read_loci("NnA.", "ACAA"):
        calculator.add_base(observation, locus)
    assert (calculator.total_bases, calculator.error_bases) == (1, 0)

    calculator = SimpleErrorCalculator()
    # ambiguous reference, ambiguous read base: counted but never a mismatch
    for observation, locus in single_read_loci("ARCT", "NAGT"):
        calculator.add_base(observation, locus)
    assert (calculator.total_bases, calculator.error_bases) == (4, 1)


def test_simple_error_calculator_off_read_offset_is_a_no_call():
    calculator = SimpleErrorCalculator()
    observation = ReadObservation("read", "ACGT", 4)
    calculator.add_base(observation, LocusObservations(Locus("chr1", 5), "A", (observation,)))
    assert calculator.total_bases == 0


def run_overlapping(loci, subject_index):
    calculator = OverlappingErrorCalculator()
    locator = MateLocator()
    for locus in loci:
        observation = locus.observations[subject_index]
        calculator.add_base(observation, locus, locator.find_mate(observation, locus))
    return calculator.finalize()


@pytest.mark.parametrize("subject_index", [0, 1])
def test_overlapping_error_calculator(subject_index):
    metric = run_overlapping(mate_pair_loci(), subject_index)
    assert metric.total_bases == 16
    assert metric.num_bases_with_overlapping_reads == 16
    assert metric.num_disagrees_with_reference_only == 2
    assert metric.num_disagrees_with_ref_and_mate == 1
    assert metric.num_three_ways_disagreement == 1


def test_overlapping_error_calculator_is_symmetric():
    a_first = run_overlapping(mate_pair_loci(READ_A, READ_B), 0)
    b_first = run_overlapping(mate_pair_loci(READ_B, READ_A), 0)
    assert a_first == b_first


def test_overlapping_error_calculator_needs_a_called_mate():
    calculator = OverlappingErrorCalculator()
    loci = mate_pair_loci(READ_A, "N" * 16)
    locator = MateLocator()
    for locus in loci:
        observation = locus.observations[0]
        calculator.add_base(observation, locus, locator.find_mate(observation, locus))
    metric = calculator.get_metric()
    assert metric.total_bases == 16
    assert metric.num_bases_with_overlapping_reads == 0

    calculator = OverlappingErrorCalculator()
    for observation, locus in single_read_loci(READ_A):
        calculator.add_base(observation, locus)
    assert calculator.get_metric().total_bases == 16
    assert calculator.get_metric().num_bases_with_overlapping_reads == 0


def test_overlapping_error_ignores_ambiguous_reference():
    loci = mate_pair_loci("AAAA", "CCCC", "NNNN")
    metric = run_overlapping(loci, 0)
    assert metric.num_bases_with_overlapping_reads == 4
    assert metric.num_three_ways_disagreement == 0


def test_finalize_is_idempotent_and_closes_the_calculator():
    calculator = SimpleErrorCalculator()
    pairs = single_read_loci(READ_A)
    for observation, locus in pairs:
        calculator.add_base(observation, locus)

    assert not calculator.finalized
    first = calculator.finalize()
    second = calculator.finalize()
    assert first == second
    assert calculator.finalized
    assert calculator.total_bases == 16

    observation, locus = pairs[0]
    with pytest.raises(RuntimeError):
        calculator.add_base(observation, locus)
    assert calculator.finalize() == first


def test_get_metric_is_a_snapshot():
    calculator = SimpleErrorCalculator()
    pairs = single_read_loci(READ_A)
    observation, locus = pairs[1]
    calculator.add_base(observation, locus)
    snapshot = calculator.get_metric()
    calculator.add_base(*pairs[4])
    assert snapshot.total_bases == 1
    assert calculator.get_metric().total_bases == 2


@pytest.mark.parametrize("read_base, mate_base", [("R", "R"), ("R", "A"), ("A", "Y")])
def test_overlapping_error_ignores_ambiguous_bases(read_base, mate_base):
    locus = mate_pair_loci(read_base, mate_base, "A")[0]
    observation = locus.observations[0]

    overlapping = OverlappingErrorCalculator()
    overlapping.add_base(observation, locus, MateLocator().find_mate(observation, locus))
    metric = overlapping.get_metric()
    assert metric.total_bases == 1
    assert metric.num_bases_with_overlapping_reads == 0
    assert (metric.num_disagrees_with_reference_only, metric.num_disagrees_with_ref_and_mate,
            metric.num_three_ways_disagreement) == (0, 0, 0)

    # agrees with the simple calculator over the same base
    simple = SimpleErrorCalculator()
    simple.add_base(observation, locus)
    assert simple.get_metric().error_bases == 0


def test_base_calculator_is_abstract():
    with pytest.raises(TypeError):
        BaseErrorCalculator()
