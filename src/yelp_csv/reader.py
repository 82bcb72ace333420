"""Parse JSON Lines text into records and split input into batches."""

from __future__ import annotations

import json
from itertools import islice
from pathlib import Path
from typing import Iterable, Iterator, List

from yelp_csv.settings import FILE_ENCODING
from yelp_csv.values import Record


class RecordParseError(ValueError):
    """Raised when a line does not hold a single JSON object."""


def is_blank_line(line: str) -> bool:
    """Return ``True`` for empty or whitespace-only lines."""

    return not line.strip()


def parse_record_line(line: str) -> Record:
    """Return the JSON object encoded on ``line``.

    Parameters
    ----------
    line:
        Raw line text from a JSON Lines file, with or without its newline.

    Returns
    -------
    Record
        Parsed top-level object with key order preserved.

    Raises
    ------
    RecordParseError
        If the text is not valid JSON or does not decode to an object.
    """

    try:
        obj = json.loads(line)
    except (json.JSONDecodeError, UnicodeDecodeError) as err:
        raise RecordParseError(f"Invalid JSON: {err}") from err
    if not isinstance(obj, dict):
        raise RecordParseError(
            f"Expected a JSON object, got {type(obj).__name__}"
        )
    return obj


def iter_line_batches(lines: Iterable[str], batch_size: int) -> Iterator[List[str]]:
    """Yield consecutive lists of at most ``batch_size`` lines.

    Only one batch is held in memory at a time. The last batch may be
    shorter; no empty batch is yielded.
    """

    if batch_size < 1:
        raise ValueError(f"batch_size must be positive, got {batch_size}")
    iterator = iter(lines)
    while True:
        batch = list(islice(iterator, batch_size))
        if not batch:
            return
        yield batch


def read_all_lines(path: Path) -> List[str]:
    """Return every line of the UTF-8 file at ``path``.

    Raises
    ------
    OSError
        If the file cannot be read.
    UnicodeDecodeError
        If the file is not valid UTF-8.
    """

    try:
        with path.open("r", encoding=FILE_ENCODING) as handle:
            return handle.readlines()
    except OSError as err:
        raise OSError(f"Failed to read {path}: {err}") from err


__all__ = [
    "RecordParseError",
    "is_blank_line",
    "iter_line_batches",
    "parse_record_line",
    "read_all_lines",
]
