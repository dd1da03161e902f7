# bam_error_strat/mates.py
"""
Finding the overlapping mate of a read at a locus.

Scanning every co-located read for every base is quadratic in coverage.
Instead the locator groups the locus' observations by read name once per
locus and then only looks at the (usually one or two) reads sharing a name.
"""

import logging
from collections import defaultdict
from typing import Dict, List, Optional

from bam_error_strat.records import Locus, LocusObservations, ReadObservation

logger = logging.getLogger(__name__)


def are_mates(read: ReadObservation, candidate: ReadObservation) -> bool:
    """
    True if `candidate` is the mate of `read`.

    Both must share a name, be paired and mapped, not be secondary, and be
    respectively first and second of pair (in either order); finally the read's
    recorded mate start must be the candidate's own alignment start.
    """
    if read.read_name != candidate.read_name:
        return False
    if not (read.paired and candidate.paired):
        return False
    # exactly one of the two is first of pair, the other second
    if read.first_of_pair == candidate.first_of_pair:
        return False
    if read.second_of_pair == candidate.second_of_pair:
        return False
    if not (read.mapped and candidate.mapped):
        return False
    if read.secondary or candidate.secondary:
        return False
    return read.mate_alignment_start is not None and read.mate_alignment_start == candidate.alignment_start


class MateLocator:
    """
    Per-run index of the current locus' observations by read name.

    The index is rebuilt from the complete observation set the first time a
    new locus is queried, so the answer does not depend on the order in which
    the observations of that locus are processed.
    """

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self.current_locus: Optional[Locus] = None
        self.reads_by_name: Dict[str, List[ReadObservation]] = {}
        self.rebuilds = 0

    def _update(self, locus_observations: LocusObservations) -> None:
        if locus_observations.locus == self.current_locus:
            return
        reads_by_name = defaultdict(list)
        for observation in locus_observations:
            reads_by_name[observation.read_name].append(observation)
        self.reads_by_name = dict(reads_by_name)
        self.current_locus = locus_observations.locus
        self.rebuilds += 1

    def find_mate(self, observation: ReadObservation,
                  locus_observations: LocusObservations) -> Optional[ReadObservation]:
        """
        Returns the unique mate of `observation` at this locus, or None.

        Several equally valid candidates are treated like none: there is no
        principled way to pick one.
        """
        self._update(locus_observations)
        candidates = [c for c in self.reads_by_name.get(observation.read_name, ())
                      if are_mates(observation, c)]
        if len(candidates) == 1:
            return candidates[0]
        if candidates:
            logger.debug("%d candidate mates for %s at %s:%d, ignoring",
                         len(candidates), observation.read_name, *locus_observations.locus)
        return None
