import dataclasses

import pytest

from bam_error_strat.mates import MateLocator, are_mates
from bam_error_strat.records import Locus, LocusObservations, PairRole, ReadObservation

FIRST = ReadObservation("pair", "ACGTACGT", 3, role=PairRole.FIRST,
                        alignment_start=10, mate_alignment_start=12)
SECOND = ReadObservation("pair", "GTACGTAA", 1, negative_strand=True, role=PairRole.SECOND,
                         alignment_start=12, mate_alignment_start=10)


def locus_of(*observations, position=13):
    return LocusObservations(Locus("chr1", position), "T", observations)


def test_are_mates():
    assert are_mates(FIRST, SECOND)
    assert are_mates(SECOND, FIRST)


@pytest.mark.parametrize("change", [
    {"read_name": "other"},
    {"role": PairRole.FIRST},
    {"role": PairRole.UNPAIRED},
    {"mapped": False},
    {"secondary": True},
    {"alignment_start": 11},
])
def test_are_mates_rejects(change):
    assert not are_mates(FIRST, dataclasses.replace(SECOND, **change))


def test_are_mates_needs_a_mate_start():
    assert not are_mates(dataclasses.replace(FIRST, mate_alignment_start=None), SECOND)


def test_find_mate_regardless_of_order():
    locus = locus_of(FIRST, SECOND)
    locator = MateLocator()
    assert locator.find_mate(FIRST, locus) is SECOND
    assert locator.find_mate(SECOND, locus) is FIRST

    reversed_locus = locus_of(SECOND, FIRST)
    other = MateLocator()
    assert other.find_mate(SECOND, reversed_locus) is FIRST


def test_find_mate_rebuilds_once_per_locus():
    locator = MateLocator()
    locus = locus_of(FIRST, SECOND)
    for _ in range(3):
        locator.find_mate(FIRST, locus)
        locator.find_mate(SECOND, locus)
    assert locator.rebuilds == 1

    moved = [dataclasses.replace(o, offset=o.offset + 1) for o in (FIRST, SECOND)]
    next_locus = locus_of(*moved, position=14)
    assert locator.find_mate(moved[0], next_locus) is moved[1]
    assert locator.rebuilds == 2
    assert locator.current_locus == Locus("chr1", 14)


def test_same_position_on_another_contig_is_a_new_locus():
    locator = MateLocator()
    locator.find_mate(FIRST, locus_of(FIRST, SECOND))
    lonely = LocusObservations(Locus("chr2", 13), "T", (FIRST,))
    assert locator.find_mate(FIRST, lonely) is None
    assert locator.rebuilds == 2


def test_ambiguous_mates_are_no_mate():
    twin = dataclasses.replace(SECOND, read_bases="GTTCGTAA")
    locus = locus_of(FIRST, SECOND, twin)
    assert MateLocator().find_mate(FIRST, locus) is None
    # the second-of-pair reads each still see exactly one first-of-pair read
    assert MateLocator().find_mate(SECOND, locus) is FIRST


def test_unpaired_read_has_no_mate():
    unpaired = ReadObservation("pair", "ACGT", 0)
    assert MateLocator().find_mate(unpaired, locus_of(unpaired, SECOND)) is None


def test_locators_are_isolated():
    first_locus = locus_of(FIRST, SECOND)
    solo = locus_of(FIRST, position=13)
    a, b = MateLocator(), MateLocator()
    assert a.find_mate(FIRST, first_locus) is SECOND
    assert b.find_mate(FIRST, solo) is None
    assert a.find_mate(FIRST, first_locus) is SECOND


def test_reset():
    locator = MateLocator()
    locator.find_mate(FIRST, locus_of(FIRST, SECOND))
    locator.reset()
    assert locator.current_locus is None
    assert locator.reads_by_name == {}
