# bam_error_strat/registry.py
"""
Names the configuration can refer to: calculator kinds and stratifiers.
"""

from enum import Enum
from typing import Any, Mapping, Optional

from bam_error_strat import stratify
from bam_error_strat.calculators import (BaseErrorCalculator, OverlappingErrorCalculator,
                                         SimpleErrorCalculator)


class CalculatorKind(Enum):
    SIMPLE = "SIMPLE"
    OVERLAPPING_MATE_PAIR = "OVERLAPPING_MATE_PAIR"

    @property
    def calculator_class(self) -> type:
        return _CALCULATOR_CLASSES[self]

    @property
    def suffix(self) -> str:
        return self.calculator_class.suffix

    @property
    def needs_mates(self) -> bool:
        return self is CalculatorKind.OVERLAPPING_MATE_PAIR

    def create(self) -> BaseErrorCalculator:
        return self.calculator_class()

    @classmethod
    def parse(cls, name: str) -> "CalculatorKind":
        """Look a kind up by its name, or by the output suffix it writes (ERROR, OVERLAPPING_ERROR)."""
        key = name.strip().upper()
        for kind in cls:
            if key in (kind.name, kind.suffix.upper()):
                return kind
        choices = [kind.name for kind in cls] + [kind.suffix.upper() for kind in cls]
        raise KeyError(f"Unknown calculator '{name}'; choose from {', '.join(choices)}")


_CALCULATOR_CLASSES = {
    CalculatorKind.SIMPLE: SimpleErrorCalculator,
    CalculatorKind.OVERLAPPING_MATE_PAIR: OverlappingErrorCalculator,
}

STRATIFIERS = {
    "ALL": lambda params: stratify.no_stratifier,
    "READ_BASE": lambda params: stratify.read_base,
    "PREVIOUS_BASE": lambda params: stratify.previous_base,
    "NEXT_BASE": lambda params: stratify.next_base,
    "REFERENCE_BASE": lambda params: stratify.reference_base,
    "PRE_DINUC": lambda params: stratify.pre_dinucleotide,
    "POST_DINUC": lambda params: stratify.post_dinucleotide,
    "HOMOPOLYMER_LENGTH": lambda params: stratify.homopolymer_length,
    "HOMOPOLYMER": lambda params: stratify.homopolymer,
    "BINNED_HOMOPOLYMER": lambda params: stratify.binned_homopolymer_stratifier(
        params.get("long_homopolymer", stratify.DEFAULT_LONG_HOMOPOLYMER)),
    "ONE_BASE_PADDED_CONTEXT": lambda params: stratify.one_base_padded_context,
    "TWO_BASE_PADDED_CONTEXT": lambda params: stratify.two_base_padded_context,
    "CYCLE": lambda params: stratify.cycle,
    "BINNED_CYCLE": lambda params: stratify.binned_cycle,
    "READ_DIRECTION": lambda params: stratify.read_direction,
    "READ_ORDINALITY": lambda params: stratify.read_ordinality,
    "GC_CONTENT": lambda params: stratify.gc_content,
    "NS_IN_READ": lambda params: stratify.ns_in_read,
}


def build_stratifier(name: str, params: Optional[Mapping[str, Any]] = None) -> stratify.Stratifier:
    """
    Resolve a stratifier by name.

    Args:
        name (str): One of STRATIFIERS (case-insensitive).
        params (Mapping): Optional parameters, e.g. {"long_homopolymer": 6}.

    Returns:
        Stratifier: The stratifier.
    """
    key = name.strip().upper()
    if key not in STRATIFIERS:
        raise KeyError(f"Unknown stratifier '{name}'; choose from {', '.join(STRATIFIERS)}")
    return STRATIFIERS[key](params or {})
