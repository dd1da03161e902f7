# bam_error_strat/records.py
"""
Plain record types handed to the stratifiers and calculators.

A `LocusObservations` is the unit of work: one reference position, the
reference base there and every read observation covering it. It is built once
per locus by the upstream producer and never mutated afterwards.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, NamedTuple, Optional, Tuple

# SAM flag bits used to describe an observation
FLAG_PAIRED = 0x1
FLAG_UNMAPPED = 0x4
FLAG_REVERSE = 0x10
FLAG_FIRST_OF_PAIR = 0x40
FLAG_SECOND_OF_PAIR = 0x80
FLAG_SECONDARY = 0x100


class ReadDirection(Enum):
    POSITIVE = "POSITIVE"
    NEGATIVE = "NEGATIVE"


class PairRole(Enum):
    FIRST = "FIRST"
    SECOND = "SECOND"
    UNPAIRED = "UNPAIRED"


class Locus(NamedTuple):
    contig: str
    position: int  # 1-based


@dataclass(frozen=True)
class ReadObservation:
    """
    One read covering one locus.

    `read_bases` is the whole read in storage order (as aligned against the
    forward reference strand) and `offset` indexes into it, so neighbouring
    bases can be looked up in either direction.
    """

    read_name: str
    read_bases: str
    offset: int
    negative_strand: bool = False
    role: PairRole = PairRole.UNPAIRED
    mapped: bool = True
    secondary: bool = False
    alignment_start: int = 1
    mate_alignment_start: Optional[int] = None

    @classmethod
    def from_flag(cls, read_name: str, read_bases: str, offset: int, flag: int,
                  alignment_start: int, mate_alignment_start: Optional[int] = None) -> "ReadObservation":
        """Build an observation from a SAM flag integer."""
        if flag & FLAG_PAIRED and flag & FLAG_FIRST_OF_PAIR and not flag & FLAG_SECOND_OF_PAIR:
            role = PairRole.FIRST
        elif flag & FLAG_PAIRED and flag & FLAG_SECOND_OF_PAIR and not flag & FLAG_FIRST_OF_PAIR:
            role = PairRole.SECOND
        else:
            # unpaired, or paired with inconsistent first/second bits
            role = PairRole.UNPAIRED
        return cls(
            read_name=read_name,
            read_bases=read_bases,
            offset=offset,
            negative_strand=bool(flag & FLAG_REVERSE),
            role=role,
            mapped=not flag & FLAG_UNMAPPED,
            secondary=bool(flag & FLAG_SECONDARY),
            alignment_start=alignment_start,
            mate_alignment_start=mate_alignment_start,
        )

    @property
    def read_length(self) -> int:
        return len(self.read_bases)

    @property
    def read_base(self) -> Optional[str]:
        """The base at `offset`, or None when the offset is off the read."""
        return self.base_at(self.offset)

    def base_at(self, offset: int) -> Optional[str]:
        if 0 <= offset < len(self.read_bases):
            return self.read_bases[offset]
        return None

    @property
    def direction(self) -> ReadDirection:
        return ReadDirection.NEGATIVE if self.negative_strand else ReadDirection.POSITIVE

    @property
    def paired(self) -> bool:
        return self.role is not PairRole.UNPAIRED

    @property
    def first_of_pair(self) -> bool:
        return self.role is PairRole.FIRST

    @property
    def second_of_pair(self) -> bool:
        return self.role is PairRole.SECOND


@dataclass(frozen=True)
class LocusObservations:
    """The complete set of observations at one locus, with its reference base."""

    locus: Locus
    reference_base: str
    observations: Tuple[ReadObservation, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "observations", tuple(self.observations))

    def __iter__(self) -> Iterator[ReadObservation]:
        return iter(self.observations)

    def __len__(self) -> int:
        return len(self.observations)
