"""CSV writer that emits one header and appends rows batch by batch.

The sink owns the only long-lived file handle of a conversion run. It is
opened once, every :meth:`CsvSink.append_rows` call is flushed to disk, and
the handle is closed on every exit path when used as a context manager.
Rows are serialized through :meth:`pandas.DataFrame.to_csv`, which handles
quoting and escaping.
"""

from __future__ import annotations

import logging
from pathlib import Path
from types import TracebackType
from typing import IO, List, Mapping, Optional, Sequence, Type

import pandas as pd

from yelp_csv.settings import FILE_ENCODING

LOGGER = logging.getLogger(__name__)


class CsvSink:
    """Append-only CSV output bound to a single file.

    Parameters
    ----------
    path:
        Destination CSV path. Parent directories are created on open and an
        existing file is replaced.
    encoding:
        Text encoding for the output file.
    """

    def __init__(self, path: Path, *, encoding: str = FILE_ENCODING) -> None:
        self.path = path.expanduser()
        self.encoding = encoding
        self.columns: Optional[List[str]] = None
        self.rows_written = 0
        self._handle: Optional[IO[str]] = None

    def open(self) -> "CsvSink":
        """Create or truncate the destination file."""

        if self._handle is not None:
            return self
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._handle = self.path.open("w", encoding=self.encoding, newline="")
        return self

    def close(self) -> None:
        """Flush and close the destination file."""

        if self._handle is None:
            return
        try:
            self._handle.close()
        finally:
            self._handle = None

    def __enter__(self) -> "CsvSink":
        return self.open()

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        traceback: Optional[TracebackType],
    ) -> None:
        self.close()

    @property
    def has_header(self) -> bool:
        """Return ``True`` once :meth:`write_header` has run."""

        return self.columns is not None

    def _require_handle(self) -> IO[str]:
        if self._handle is None:
            raise ValueError(f"CSV sink for {self.path} is not open")
        return self._handle

    def write_header(self, columns: Sequence[str]) -> None:
        """Write the header row and fix the output column order.

        An empty ``columns`` list writes nothing and leaves the header unset,
        so a later call can still fix it.

        Raises
        ------
        ValueError
            If a header was already written.
        """

        handle = self._require_handle()
        if self.columns is not None:
            raise ValueError(f"Header already written to {self.path}")
        if not columns:
            return
        self.columns = list(columns)
        pd.DataFrame(columns=self.columns).to_csv(
            handle, index=False, lineterminator="\n"
        )
        handle.flush()

    def append_rows(
        self,
        rows: Sequence[Mapping[str, Optional[str]]],
        columns: Sequence[str],
    ) -> int:
        """Append ``rows`` using ``columns`` as the cell order.

        Missing cells and ``None`` values are written as empty fields.

        Returns
        -------
        int
            Number of rows written.
        """

        handle = self._require_handle()
        if not rows or not columns:
            return 0
        frame = pd.DataFrame(list(rows), columns=list(columns), dtype=object)
        frame.to_csv(handle, header=False, index=False, na_rep="", lineterminator="\n")
        handle.flush()
        self.rows_written += len(frame)
        LOGGER.debug("Appended %d rows to %s", len(frame), self.path)
        return len(frame)

    def size_bytes(self) -> int:
        """Return the current size of the output file in bytes."""

        return self.path.stat().st_size


__all__ = ["CsvSink"]
