"""Convert JSON Lines input into a CSV table, whole or in batches.

Two converters implement the same contract: consume raw lines, parse and
flatten each record, and write rows through a :class:`~yelp_csv.sink.CsvSink`.

- :class:`WholeFileConverter` holds every line in memory and writes one
  header covering the union of all columns.
- :class:`BatchedConverter` streams fixed-size batches. The first batch
  that yields rows fixes the header. Later batches are written in that
  column order, with columns the header never declared appended as
  trailing cells and absent columns left empty. Such mismatches are
  recorded as :class:`SchemaDrift` entries rather than fixed by rescanning
  the file.

Malformed lines are skipped and counted. I/O errors propagate out of
:func:`convert`; :func:`convert_file` turns them into a failed report.
"""

from __future__ import annotations

import logging
import time
from contextlib import ExitStack
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

from tqdm import tqdm

from yelp_csv.flatten import FlatRow, flatten_record
from yelp_csv.reader import (
    RecordParseError,
    is_blank_line,
    iter_line_batches,
    parse_record_line,
    read_all_lines,
)
from yelp_csv.settings import FILE_ENCODING, MODE_BATCHED, MODE_WHOLE
from yelp_csv.sink import CsvSink

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class SchemaDrift:
    """Column mismatch between a later batch and the written header.

    Parameters
    ----------
    batch_number:
        One-based number of the batch that drifted.
    new_columns:
        Columns present in the batch but absent from the header. They are
        written as trailing cells without a header name.
    missing_columns:
        Header columns that no row of the batch provides. They are written
        as empty cells.
    """

    batch_number: int
    new_columns: Tuple[str, ...]
    missing_columns: Tuple[str, ...]


@dataclass
class ConversionReport:
    """Running totals for one conversion, returned when it finishes."""

    output_path: Optional[Path] = None
    mode: str = MODE_WHOLE
    total_records_written: int = 0
    total_records_failed: int = 0
    batches_processed: int = 0
    output_size_bytes: int = 0
    success: bool = False
    columns: List[str] = field(default_factory=list)
    schema_drift: List[SchemaDrift] = field(default_factory=list)
    elapsed_seconds: float = 0.0
    error: Optional[str] = None

    @property
    def output_size_mb(self) -> float:
        """Output size in megabytes, rounded to two places."""

        return round(self.output_size_bytes / (1024**2), 2)


def union_columns(rows: Iterable[FlatRow]) -> List[str]:
    """Return every key across ``rows`` in first-seen order."""

    seen: dict[str, None] = {}
    for row in rows:
        for key in row:
            seen.setdefault(key, None)
    return list(seen)


def reconcile_columns(
    schema: Sequence[str],
    local_columns: Sequence[str],
) -> Tuple[List[str], List[str], List[str]]:
    """Return the write order for a batch against a fixed header.

    Parameters
    ----------
    schema:
        Columns of the header already written.
    local_columns:
        Columns seen in the current batch, in first-seen order.

    Returns
    -------
    Tuple[List[str], List[str], List[str]]
        ``(columns, new_columns, missing_columns)`` where ``columns`` is the
        header order followed by the batch's unseen columns.
    """

    known = set(schema)
    present = set(local_columns)
    new_columns = [name for name in local_columns if name not in known]
    missing_columns = [name for name in schema if name not in present]
    return list(schema) + new_columns, new_columns, missing_columns


def flatten_lines(
    lines: Iterable[str],
    report: ConversionReport,
    *,
    first_line_number: int = 1,
) -> List[FlatRow]:
    """Parse and flatten ``lines``, counting failures on ``report``.

    Blank lines are skipped without being counted. Lines that fail to parse
    or flatten are logged with their line number and counted as failed.
    """

    rows: List[FlatRow] = []
    for line_number, line in enumerate(lines, start=first_line_number):
        if is_blank_line(line):
            continue
        try:
            record = parse_record_line(line)
        except RecordParseError as err:
            report.total_records_failed += 1
            LOGGER.warning("Skipping line %d: %s", line_number, err)
            continue
        try:
            rows.append(flatten_record(record))
        except (TypeError, ValueError, RecursionError) as err:
            report.total_records_failed += 1
            LOGGER.warning(
                "Skipping line %d: cannot flatten record: %s", line_number, err
            )
    return rows


def _append_rows(
    sink: CsvSink,
    rows: Sequence[FlatRow],
    columns: Sequence[str],
    report: ConversionReport,
) -> int:
    """Write ``rows`` and count every one of them as converted.

    Records without any field still count when there is no column to hold
    them; a warning says nothing reached the file.
    """

    written = sink.append_rows(rows, columns)
    if rows and not columns:
        LOGGER.warning("%d records have no fields; no cells written", len(rows))
        written = len(rows)
    report.total_records_written += written
    return written


class WholeFileConverter:
    """Convert all input in one pass with a single unified header."""

    mode = MODE_WHOLE

    def __init__(
        self, *, show_progress: bool = False, description: str = "Converting"
    ):
        self.show_progress = show_progress
        self.description = description

    def convert(
        self,
        source: Iterable[str],
        sink: CsvSink,
        report: ConversionReport,
    ) -> ConversionReport:
        """Read every line of ``source`` and write one CSV table to ``sink``."""

        lines = list(source)
        iterator: Iterable[str] = (
            tqdm(lines, desc=self.description, unit="line")
            if self.show_progress
            else lines
        )
        rows = flatten_lines(iterator, report)
        columns = union_columns(rows)
        sink.write_header(columns)
        _append_rows(sink, rows, columns, report)
        report.batches_processed += 1
        report.columns = columns
        LOGGER.info(
            "Loaded %d records with %d columns",
            report.total_records_written,
            len(columns),
        )
        return report


class BatchedConverter:
    """Stream input in fixed-size batches, appending each to the CSV.

    Parameters
    ----------
    batch_size:
        Maximum number of input lines per batch.
    show_progress:
        When true, display a ``tqdm`` bar counting batches.
    """

    mode = MODE_BATCHED

    def __init__(
        self,
        batch_size: int,
        *,
        show_progress: bool = False,
        description: str = "Converting",
    ):
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.batch_size = batch_size
        self.show_progress = show_progress
        self.description = description

    def _columns_for_batch(
        self,
        sink: CsvSink,
        rows: Sequence[FlatRow],
        batch_number: int,
        report: ConversionReport,
    ) -> List[str]:
        local_columns = union_columns(rows)
        if not sink.has_header:
            sink.write_header(local_columns)
            return local_columns
        columns, new_columns, missing_columns = reconcile_columns(
            sink.columns or [], local_columns
        )
        if new_columns or missing_columns:
            drift = SchemaDrift(
                batch_number=batch_number,
                new_columns=tuple(new_columns),
                missing_columns=tuple(missing_columns),
            )
            report.schema_drift.append(drift)
            LOGGER.warning(
                "Batch %d columns differ from header: new=%s missing=%s",
                batch_number,
                new_columns,
                missing_columns,
            )
        return columns

    def convert(
        self,
        source: Iterable[str],
        sink: CsvSink,
        report: ConversionReport,
    ) -> ConversionReport:
        """Stream ``source`` into ``sink`` one batch at a time."""

        batches: Iterable[List[str]] = iter_line_batches(source, self.batch_size)
        if self.show_progress:
            batches = tqdm(batches, desc=self.description, unit="batch")

        next_line_number = 1
        for batch in batches:
            report.batches_processed += 1
            batch_number = report.batches_processed
            rows = flatten_lines(batch, report, first_line_number=next_line_number)
            next_line_number += len(batch)

            if not rows:
                LOGGER.warning("Batch %d: no valid records", batch_number)
                continue

            columns = self._columns_for_batch(sink, rows, batch_number, report)
            written = _append_rows(sink, rows, columns, report)
            LOGGER.info(
                "Batch %d: wrote %d records (total %d)",
                batch_number,
                written,
                report.total_records_written,
            )

        report.columns = list(sink.columns or [])
        return report


def make_converter(
    batch_size: Optional[int],
    *,
    show_progress: bool = False,
    description: str = "Converting",
) -> WholeFileConverter | BatchedConverter:
    """Return the converter for ``batch_size``; ``None`` means whole-file."""

    if batch_size is None:
        return WholeFileConverter(show_progress=show_progress, description=description)
    return BatchedConverter(
        batch_size, show_progress=show_progress, description=description
    )


def convert(
    source: Iterable[str],
    sink: CsvSink,
    batch_size: Optional[int] = None,
    *,
    show_progress: bool = False,
    report: Optional[ConversionReport] = None,
) -> ConversionReport:
    """Convert JSON Lines ``source`` into CSV rows on an open ``sink``.

    Parameters
    ----------
    source:
        Iterable of raw lines, for example an open text file.
    sink:
        Open CSV sink that has not had a header written yet.
    batch_size:
        Lines per batch for streaming mode, or ``None`` for whole-file mode.
    show_progress:
        When true, display a ``tqdm`` progress bar.
    report:
        Optional report to accumulate into; a new one is created otherwise.

    Returns
    -------
    ConversionReport
        Totals for the run with ``success`` set.

    Raises
    ------
    OSError
        If reading ``source`` or writing ``sink`` fails.
    """

    if report is None:
        report = ConversionReport(output_path=sink.path)
    converter = make_converter(
        batch_size, show_progress=show_progress, description=sink.path.name
    )
    report.mode = converter.mode
    started = time.perf_counter()
    converter.convert(source, sink, report)
    report.elapsed_seconds = time.perf_counter() - started
    report.output_size_bytes = sink.size_bytes()
    report.success = True
    return report


def convert_file(
    json_path: Path,
    csv_path: Path,
    batch_size: Optional[int] = None,
    *,
    show_progress: bool = False,
) -> ConversionReport:
    """Convert the JSON Lines file at ``json_path`` into ``csv_path``.

    I/O and decoding failures do not raise. They are logged and returned
    as a report with ``success=False`` and ``error`` set; whatever was
    flushed to ``csv_path`` before the failure is left in place. In
    whole-file mode the input is read in full before ``csv_path`` is
    opened. An output path naming the input file itself is refused.
    """

    report = ConversionReport(
        output_path=csv_path,
        mode=MODE_WHOLE if batch_size is None else MODE_BATCHED,
    )
    started = time.perf_counter()
    if csv_path.expanduser().resolve() == json_path.expanduser().resolve():
        report.error = f"Output path {csv_path} is the input file"
        LOGGER.error("Failed to convert %s: %s", json_path, report.error)
        return report
    try:
        with ExitStack() as stack:
            source: Iterable[str]
            if batch_size is None:
                source = read_all_lines(json_path)
            else:
                source = stack.enter_context(
                    json_path.open("r", encoding=FILE_ENCODING)
                )
            sink = stack.enter_context(CsvSink(csv_path))
            convert(
                source,
                sink,
                batch_size,
                show_progress=show_progress,
                report=report,
            )
    except (OSError, UnicodeDecodeError) as err:
        report.success = False
        report.error = str(err)
        LOGGER.error("Failed to convert %s: %s", json_path, err)
    report.elapsed_seconds = time.perf_counter() - started
    if csv_path.exists():
        report.output_size_bytes = csv_path.stat().st_size
    return report


__all__ = [
    "BatchedConverter",
    "ConversionReport",
    "SchemaDrift",
    "WholeFileConverter",
    "convert",
    "convert_file",
    "flatten_lines",
    "make_converter",
    "reconcile_columns",
    "union_columns",
]
