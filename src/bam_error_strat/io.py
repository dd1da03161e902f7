from typing import Iterator, List, Optional, Tuple
from functools import lru_cache
from pathlib import Path
import gzip
import logging
import os

import pandas as pd
from jinja2 import Environment, StrictUndefined

from bam_error_strat.aggregation import BaseErrorAggregation
from bam_error_strat.records import Locus, LocusObservations, ReadObservation
from bam_error_strat.stratify import stratum_labels

# IO module for bam_error_strat
logger = logging.getLogger(__name__)

COLUMNS = ["contig", "position", "ref_base", "read_name", "flag",
           "alignment_start", "mate_alignment_start", "offset", "read_bases"]

DEFAULT_OUTPUT_TEMPLATE = "{{ prefix }}.{{ suffix }}"

ENV = Environment(undefined=StrictUndefined)   # module-level – create once

@lru_cache(maxsize=None)        # key = literal template string
def _compile(template: str):
    return ENV.from_string(template)


def _open_text(path, mode: str):
    if str(path).endswith(".gz"):
        return gzip.open(path, mode + "t", compresslevel=3)
    return open(path, mode)


class ObservationReader:
    """
    Iterator over the loci of a tab-separated observation pileup, plain or
    gzipped.

    Each line is one read observation:
        contig  position  ref_base  read_name  flag  alignment_start
        mate_alignment_start  offset  read_bases
    Consecutive lines sharing (contig, position) make up one locus. Loci must
    be in ascending order within a contig and contigs must not reappear.

    Yields:
        LocusObservations: one per locus, with every observation covering it.
    """

    def __init__(self, filename) -> None:
        """
        Initializes the ObservationReader.

        Args:
            filename: Path to the observation file ('.gz' is decompressed).
        """
        self.filename = filename
        self.file = _open_text(filename, "r")
        self.line_number = 0
        self._pending: Optional[Tuple[Locus, str, ReadObservation]] = None
        self._pending_line = 0
        self._last_locus: Optional[Locus] = None
        self._seen_contigs = set()
        self.closed = False

    def __iter__(self) -> Iterator[LocusObservations]:
        return self

    def __next__(self) -> LocusObservations:
        """
        Reads the next locus.

        Raises:
            StopIteration: If end of file is reached.
            ValueError: On a malformed line or out-of-order locus.
            RuntimeError: On unexpected error.
        """
        if self.closed:
            raise StopIteration
        try:
            if self._pending is not None:
                locus, reference_base, observation = self._pending
                self._pending = None
                start_line = self._pending_line
            else:
                locus, reference_base, observation = self._next_row()
                start_line = self.line_number
            self._check_order(locus, start_line)
            observations = [observation]

            for row in iter(self._next_row_or_none, None):
                if row[0] != locus:
                    self._pending = row
                    self._pending_line = self.line_number
                    break
                if row[1].upper() != reference_base.upper():
                    raise ValueError(f"line {self.line_number}: reference base '{row[1]}' "
                                     f"disagrees with '{reference_base}' at {locus.contig}:{locus.position}")
                observations.append(row[2])

            return LocusObservations(locus, reference_base, tuple(observations))
        except (StopIteration, ValueError):
            self.close()
            raise
        except Exception as e:
            self.close()
            raise RuntimeError(f"Error reading observations from {self.filename}") from e

    def _check_order(self, locus: Locus, line_number: int) -> None:
        last = self._last_locus
        if last is not None:
            if locus.contig == last.contig and locus.position <= last.position:
                raise ValueError(f"line {line_number}: locus {locus.contig}:{locus.position} "
                                 f"follows {last.contig}:{last.position}")
            if locus.contig != last.contig and locus.contig in self._seen_contigs:
                raise ValueError(f"line {line_number}: contig '{locus.contig}' appears twice")
        self._seen_contigs.add(locus.contig)
        self._last_locus = locus

    def _next_row_or_none(self):
        try:
            return self._next_row()
        except StopIteration:
            return None

    def _next_row(self) -> Tuple[Locus, str, ReadObservation]:
        while True:
            line = next(self.file)
            self.line_number += 1
            line = line.rstrip("\r\n")
            if not line or line.startswith("#") or line.startswith("contig\t"):
                continue
            return self._parse_line(line)

    def _parse_line(self, line: str) -> Tuple[Locus, str, ReadObservation]:
        fields = line.split("\t")
        if len(fields) != len(COLUMNS):
            raise ValueError(f"line {self.line_number}: expected {len(COLUMNS)} columns, got {len(fields)}")
        contig, position, ref_base, read_name, flag, start, mate_start, offset, read_bases = fields
        try:
            mate_alignment_start = None if mate_start in ("*", "0", "") else int(mate_start)
            observation = ReadObservation.from_flag(
                read_name, read_bases, int(offset), int(flag),
                alignment_start=int(start), mate_alignment_start=mate_alignment_start)
            locus = Locus(contig, int(position))
        except ValueError as e:
            raise ValueError(f"line {self.line_number}: {e}") from e
        if len(ref_base) != 1:
            raise ValueError(f"line {self.line_number}: reference base must be a single character")
        return locus, ref_base, observation

    def close(self) -> None:
        """Closes the input file."""
        self.closed = True
        self.file.close()

    def __enter__(self):
        """Support for context manager."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Close file when exiting context."""
        self.close()


class MetricsWriter:
    """
    Writes each aggregation's metrics as a tab-separated table.

    The file name is rendered from a Jinja template that sees `prefix` and
    `suffix` (the aggregation's channel name, e.g. "error_by_cycle").

    Attributes:
        output_dir (str): Directory the tables are written to.
        prefix (str): Base name shared by all tables.
        template (str): Jinja template for the file name.
    """

    def __init__(self, output_dir: str, prefix: str, template: str = DEFAULT_OUTPUT_TEMPLATE) -> None:
        self.output_dir = output_dir
        self.prefix = prefix
        self.template = template
        self.written: List[str] = []

    def path_for(self, aggregation: BaseErrorAggregation) -> str:
        name = _compile(self.template).render(prefix=self.prefix, suffix=aggregation.suffix)
        return os.path.join(self.output_dir, name)

    def to_frame(self, aggregation: BaseErrorAggregation) -> pd.DataFrame:
        """One row per stratum: stratum columns first, then the metric fields."""
        strata = aggregation.stratifier_suffixes
        metric_columns = list(aggregation.kind.create().get_metric().as_row())
        rows = []
        for key, metric in aggregation.get_metrics():
            row = dict(zip(strata, stratum_labels(key)))
            row.update(metric.as_row())
            rows.append(row)
        return pd.DataFrame(rows, columns=strata + metric_columns)

    def write(self, aggregation: BaseErrorAggregation) -> str:
        """
        Writes one aggregation.

        Returns:
            str: The path written.
        """
        path = self.path_for(aggregation)
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        frame = self.to_frame(aggregation)
        frame.to_csv(path, sep="\t", index=False, na_rep="nan")
        logger.info("Wrote %d rows to %s", len(frame), path)
        self.written.append(path)
        return path
