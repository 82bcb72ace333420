"""
Tests for whole-file and batched JSON Lines to CSV conversion.
"""

from __future__ import annotations

import csv
import json
import logging
from pathlib import Path

import pytest

from yelp_csv.converter import (
    BatchedConverter,
    ConversionReport,
    SchemaDrift,
    WholeFileConverter,
    convert,
    convert_file,
    make_converter,
    reconcile_columns,
    union_columns,
)
from yelp_csv.sink import CsvSink


def _lines(records: list[dict]) -> list[str]:
    """Return JSON Lines text for ``records``."""

    return [json.dumps(record) + "\n" for record in records]


def _review(idx: int) -> dict:
    """Return a small review-like record."""

    return {
        "review_id": f"r-{idx}",
        "stars": idx % 5 + 1,
        "text": f"Review number {idx}, with a comma",
        "categories": ["Food", "Bars"],
    }


def _read_rows(path: Path) -> list[list[str]]:
    """Return all CSV rows from ``path``."""

    with path.open("r", encoding="utf-8", newline="") as handle:
        return list(csv.reader(handle))


def _convert_lines(
    tmp_path: Path, lines: list[str], batch_size: int | None, name: str = "out.csv"
) -> tuple[ConversionReport, list[list[str]]]:
    """Convert ``lines`` into ``tmp_path / name`` and return report and rows."""

    out_path = tmp_path / name
    with CsvSink(out_path) as sink:
        report = convert(lines, sink, batch_size)
    return report, _read_rows(out_path)


def test_union_columns_first_seen_order() -> None:
    """union_columns keeps the first appearance of each key."""

    rows = [{"b": "1", "a": "2"}, {"c": None, "a": "3"}, {"d": "4", "b": "5"}]

    assert union_columns(rows) == ["b", "a", "c", "d"]


def test_reconcile_columns_appends_unseen_and_reports_missing() -> None:
    """reconcile_columns keeps the header order and appends new columns."""

    columns, new, missing = reconcile_columns(["a", "b", "c"], ["c", "d", "a"])

    assert columns == ["a", "b", "c", "d"]
    assert new == ["d"]
    assert missing == ["b"]


def test_batched_mode_writes_one_header_in_order(tmp_path: Path) -> None:
    """batch_size=2 over five records gives three batches and one header."""

    records = [_review(idx) for idx in range(5)]

    report, rows = _convert_lines(tmp_path, _lines(records), batch_size=2)

    assert report.success is True
    assert report.mode == "batched"
    assert report.batches_processed == 3
    assert report.total_records_written == 5
    assert report.total_records_failed == 0
    assert report.schema_drift == []
    assert len(rows) == 6
    assert rows[0] == ["review_id", "stars", "text", "categories"]
    assert [row[0] for row in rows[1:]] == [f"r-{idx}" for idx in range(5)]
    assert rows[1][3] == "Food, Bars"


@pytest.mark.parametrize("batch_size", [None, 4])
def test_malformed_line_is_skipped_and_counted(
    tmp_path: Path, batch_size: int | None, caplog: pytest.LogCaptureFixture
) -> None:
    """One bad line among ten good ones is counted without failing the run."""

    caplog.set_level(logging.WARNING, logger="yelp_csv")
    lines = _lines([_review(idx) for idx in range(10)])
    lines.insert(3, '{"review_id": "broken",\n')

    report, rows = _convert_lines(tmp_path, lines, batch_size)

    assert report.success is True
    assert report.total_records_written == 10
    assert report.total_records_failed == 1
    assert len(rows) == 11
    assert "line 4" in caplog.text


def test_blank_lines_are_not_failures(tmp_path: Path) -> None:
    """Blank lines are skipped silently."""

    lines = _lines([_review(0)]) + ["\n", "   \n"] + _lines([_review(1)])

    report, rows = _convert_lines(tmp_path, lines, batch_size=2)

    assert report.total_records_written == 2
    assert report.total_records_failed == 0
    assert len(rows) == 3


def test_whole_and_batched_modes_agree(tmp_path: Path) -> None:
    """Whole-file and batch_size=1 output match for uniform records."""

    lines = _lines([_review(idx) for idx in range(4)])

    whole_report, whole_rows = _convert_lines(tmp_path, lines, None, "whole.csv")
    batched_report, batched_rows = _convert_lines(tmp_path, lines, 1, "batched.csv")

    assert whole_rows == batched_rows
    assert whole_report.batches_processed == 1
    assert batched_report.batches_processed == 4
    assert whole_report.columns == batched_report.columns


def test_whole_file_mode_unions_all_columns(tmp_path: Path) -> None:
    """Whole-file mode builds one header from every record."""

    lines = _lines([{"a": 1}, {"b": {"x": None}}, {"a": 2, "c": []}])

    report, rows = _convert_lines(tmp_path, lines, None)

    assert report.columns == ["a", "b", "c"]
    assert rows == [
        ["a", "b", "c"],
        ["1", "", ""],
        ["", '{"x":null}', ""],
        ["2", "", ""],
    ]


def test_batched_mode_keeps_first_header_on_drift(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    """Later batches follow the first header and append unseen columns."""

    caplog.set_level(logging.WARNING, logger="yelp_csv")
    lines = _lines([{"a": 1, "b": 2}, {"a": 3, "c": 4}])

    report, rows = _convert_lines(tmp_path, lines, batch_size=1)

    assert rows == [["a", "b"], ["1", "2"], ["3", "", "4"]]
    assert report.columns == ["a", "b"]
    assert report.schema_drift == [
        SchemaDrift(batch_number=2, new_columns=("c",), missing_columns=("b",))
    ]
    assert "Batch 2" in caplog.text


def test_first_written_batch_fixes_header(tmp_path: Path) -> None:
    """A batch with no valid records does not fix the header."""

    lines = ["nope\n", "[1]\n"] + _lines([{"x": "1"}, {"x": "2"}])

    report, rows = _convert_lines(tmp_path, lines, batch_size=2)

    assert report.batches_processed == 2
    assert report.total_records_failed == 2
    assert report.total_records_written == 2
    assert rows == [["x"], ["1"], ["2"]]


def test_empty_object_batch_does_not_fix_header(tmp_path: Path) -> None:
    """A leading batch of field-less records leaves the header to a later one."""

    lines = ["{}", '{"a":1,"b":2}', '{"a":3,"b":4}']

    report, rows = _convert_lines(tmp_path, lines, batch_size=1)

    assert rows == [["a", "b"], ["1", "2"], ["3", "4"]]
    assert report.columns == ["a", "b"]
    assert report.total_records_written == 3
    assert report.schema_drift == []


@pytest.mark.parametrize("batch_size", [None, 2])
def test_empty_objects_are_counted_as_written(
    tmp_path: Path, batch_size: int | None, caplog: pytest.LogCaptureFixture
) -> None:
    """Records with no fields count as written even though no cells are."""

    caplog.set_level(logging.WARNING, logger="yelp_csv")

    report, rows = _convert_lines(tmp_path, ["{}\n"] * 3, batch_size=batch_size)

    assert rows == []
    assert report.total_records_written == 3
    assert report.total_records_failed == 0
    assert "no fields" in caplog.text


def test_empty_source_creates_empty_file(tmp_path: Path) -> None:
    """No records still counts as a successful run with an empty CSV."""

    report, rows = _convert_lines(tmp_path, [], batch_size=3)

    assert report.success is True
    assert report.total_records_written == 0
    assert report.batches_processed == 0
    assert report.output_size_bytes == 0
    assert rows == []


def test_convert_accumulates_into_given_report(tmp_path: Path) -> None:
    """convert should update and return the report it was given."""

    report = ConversionReport(total_records_failed=2)
    with CsvSink(tmp_path / "out.csv") as sink:
        returned = convert(_lines([{"a": 1}]), sink, None, report=report)

    assert returned is report
    assert report.total_records_failed == 2
    assert report.total_records_written == 1
    assert report.output_size_bytes > 0


def test_make_converter_selects_variant() -> None:
    """None selects whole-file conversion; an integer selects batching."""

    assert isinstance(make_converter(None), WholeFileConverter)
    batched = make_converter(10)
    assert isinstance(batched, BatchedConverter)
    assert batched.batch_size == 10
    with pytest.raises(ValueError):
        BatchedConverter(0)


def test_convert_file_writes_csv_and_reports_size(tmp_path: Path) -> None:
    """convert_file should convert a file on disk and stat the output."""

    json_path = tmp_path / "yelp_academic_dataset_tip.json"
    json_path.write_text("".join(_lines([_review(0), _review(1)])), encoding="utf-8")
    csv_path = tmp_path / "yelp_academic_dataset_tip.csv"

    report = convert_file(json_path, csv_path, batch_size=1)

    assert report.success is True
    assert report.error is None
    assert report.output_path == csv_path
    assert report.output_size_bytes == csv_path.stat().st_size
    assert report.elapsed_seconds >= 0
    assert len(_read_rows(csv_path)) == 3


def test_convert_file_reports_missing_source(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    """A missing input aborts with a failed report instead of raising."""

    caplog.set_level(logging.ERROR, logger="yelp_csv")
    csv_path = tmp_path / "missing.csv"

    report = convert_file(tmp_path / "missing.json", csv_path)

    assert report.success is False
    assert report.error
    assert not csv_path.exists()
    assert "Failed to convert" in caplog.text


def test_convert_file_reports_undecodable_source(tmp_path: Path) -> None:
    """Input that is not UTF-8 is a fatal error for the file."""

    json_path = tmp_path / "bad.json"
    json_path.write_bytes(b'{"a": "\xff\xfe"}\n')

    report = convert_file(json_path, tmp_path / "bad.csv")

    assert report.success is False
    assert report.error


def test_convert_file_refuses_to_overwrite_input(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    """An output path naming the input file fails without touching it."""

    caplog.set_level(logging.ERROR, logger="yelp_csv")
    json_path = tmp_path / "tip.csv"
    content = "".join(_lines([_review(0)]))
    json_path.write_text(content, encoding="utf-8")

    report = convert_file(json_path, tmp_path / "." / "tip.csv", batch_size=1)

    assert report.success is False
    assert "is the input file" in report.error
    assert json_path.read_text(encoding="utf-8") == content
    assert "Failed to convert" in caplog.text


def test_output_size_mb_rounds() -> None:
    """output_size_mb converts bytes to megabytes with two decimals."""

    report = ConversionReport(output_size_bytes=3 * 1024 * 1024 + 5000)

    assert report.output_size_mb == 3.0
