from collections.abc import Mapping


"""
Low-level base logic for bam-error-strat.

Includes base complementing, no-call and validity tests, case-insensitive
base comparison and a few read-level summaries used by the stratifiers.

These functions are stateless and pure.
"""

from typing import Optional


BASES    = ['A', 'C', 'G', 'T']
NO_CALLS = frozenset('Nn.')
# Dictionary used to complement bases; anything else maps to itself
INDICT = {'A':'T', 'C':'G', 'G':'C', 'T':'A', 'N':'N', '.':'.',
          'a':'t', 'c':'g', 'g':'c', 't':'a', 'n':'n'}

def complement(base: str) -> str:
    """
    Returns the complement of a single base, preserving case.

    Unknown symbols (IUPAC ambiguity codes and the like) are returned as-is.
    """
    return INDICT.get(base, base)

def reverse_complement(seq: str) -> str:
    """
    Returns the reverse complement of the given sequence.

    Args:
        seq (str): A nucleotide sequence

    Returns:
        str: The reverse complement of the input sequence
    """
    return "".join([complement(base) for base in seq[::-1]])


def is_no_call(base: Optional[str]) -> bool:
    """True for a missing base or an explicit no-call ('N', 'n' or '.')."""
    return base is None or base in NO_CALLS


def is_valid_base(base: Optional[str]) -> bool:
    """True only for an unambiguous A, C, G or T (either case)."""
    return base is not None and base.upper() in BASES


def bases_equal(x: str, y: str) -> bool:
    """Case-insensitive comparison of two bases."""
    return x.upper() == y.upper()


def count_no_calls(seq: str) -> int:
    """
    Counts the no-calls in a sequence.

    Args:
        seq (str): A nucleotide sequence

    Returns:
        int: Number of positions that are 'N', 'n' or '.'.
    """
    return sum(base in NO_CALLS for base in seq)


def gc_fraction(seq: str) -> Optional[float]:
    """
    Fraction of G/C among the unambiguous bases of a sequence.

    Args:
        seq (str): A nucleotide sequence

    Returns:
        Optional[float]: GC fraction, or None if the sequence has no A/C/G/T.
    """
    called = [base.upper() for base in seq if is_valid_base(base)]
    if not called:
        return None
    return sum(base in 'GC' for base in called) / len(called)


def flatten_dot(d: Mapping, prefix: str = "", sep: str = ".") -> dict[str, object]:
    """Return a flat dict: {'a.b.c': value, ...}"""
    flat = {}
    for k, v in d.items():
        path = f"{prefix}{sep}{k}" if prefix else k
        if isinstance(v, Mapping):
            flat.update(flatten_dot(v, path, sep=sep))
        else:
            flat[path] = v
    return flat
