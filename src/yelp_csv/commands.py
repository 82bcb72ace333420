"""CLI entry points for converting Yelp JSON Lines files to CSV.

``yelp-csv convert`` converts each input file to a CSV beside it (or under
``--output-dir``), choosing whole-file or batched conversion by file size.
``yelp-csv check`` reports which of the dataset files are missing; only the
required ones fail the check.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from yelp_csv.converter import ConversionReport, convert_file
from yelp_csv.settings import (
    DATASET_URL,
    DEFAULT_BATCH_SIZE,
    DEFAULT_DATA_DIR,
    INPUT_SUFFIX,
    LARGE_FILE_THRESHOLD_MB,
    MODE_AUTO,
    MODES,
    OUTPUT_SUFFIX,
    REQUIRED_DATASET_FILES,
    YELP_DATASET_FILES,
    ConversionSettings,
)

LOGGER = logging.getLogger("yelp_csv")


def build_parser() -> argparse.ArgumentParser:
    """Return the argument parser for the ``yelp-csv`` command."""

    parser = argparse.ArgumentParser(
        prog="yelp-csv",
        description="Convert Yelp academic dataset JSON Lines files to CSV",
    )
    sub = parser.add_subparsers(dest="cmd", required=True)

    # ---------------- convert ----------------
    p_convert = sub.add_parser("convert", help="Convert JSON Lines files to CSV")
    p_convert.add_argument(
        "paths",
        nargs="*",
        type=Path,
        default=[Path(".")],
        help=(
            f"Input files or directories; directories expand to their "
            f"*{INPUT_SUFFIX} files (default: current directory)"
        ),
    )
    p_convert.add_argument(
        "-o",
        "--output-dir",
        type=Path,
        default=None,
        help="Directory for CSV outputs (default: beside each input file)",
    )
    p_convert.add_argument(
        "--mode",
        choices=MODES,
        default=MODE_AUTO,
        help=(
            "'whole' loads each file in memory, 'batched' streams it, "
            "'auto' picks by --size-threshold-mb (default: auto)"
        ),
    )
    p_convert.add_argument(
        "-b",
        "--batch-size",
        type=int,
        default=DEFAULT_BATCH_SIZE,
        help=f"Lines per batch in batched mode (default: {DEFAULT_BATCH_SIZE})",
    )
    p_convert.add_argument(
        "--size-threshold-mb",
        type=float,
        default=LARGE_FILE_THRESHOLD_MB,
        help=(
            "Files larger than this use batched mode under --mode auto "
            f"(default: {LARGE_FILE_THRESHOLD_MB:g})"
        ),
    )
    p_convert.add_argument(
        "--no-progress", action="store_true", help="Disable progress bars"
    )
    p_convert.add_argument(
        "-v", "--verbose", action="store_true", help="Verbose logging"
    )
    p_convert.add_argument("--log-file", help="Also write a detailed log to this file")

    # ---------------- check ----------------
    p_check = sub.add_parser("check", help="Check that dataset files are present")
    p_check.add_argument(
        "--data-dir",
        type=Path,
        default=Path(DEFAULT_DATA_DIR),
        help=f"Directory holding the dataset files (default: {DEFAULT_DATA_DIR})",
    )

    return parser


def configure_logging(verbose: bool = False, log_file: Optional[str] = None) -> None:
    """Attach console and optional file handlers to the package logger."""

    for handler in list(LOGGER.handlers):
        LOGGER.removeHandler(handler)
        handler.close()
    LOGGER.setLevel(logging.INFO)
    ch = logging.StreamHandler()
    ch.setLevel(logging.INFO if verbose else logging.WARNING)
    ch.setFormatter(logging.Formatter("%(message)s"))
    LOGGER.addHandler(ch)
    if log_file:
        lf_path = Path(log_file).expanduser()
        lf_path.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(str(lf_path), encoding="utf-8")
        fh.setLevel(logging.INFO)
        fh.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
        LOGGER.addHandler(fh)


def discover_input_files(paths: Sequence[Path]) -> List[Path]:
    """Expand ``paths`` into a sorted, de-duplicated list of input files.

    Raises
    ------
    FileNotFoundError
        If any path does not exist.
    """

    files: dict[Path, None] = {}
    for raw in paths:
        path = raw.expanduser().resolve()
        if path.is_dir():
            for candidate in sorted(path.glob(f"*{INPUT_SUFFIX}")):
                if candidate.is_file():
                    files.setdefault(candidate, None)
        elif path.is_file():
            files.setdefault(path, None)
        else:
            raise FileNotFoundError(path)
    return list(files)


def output_path_for(json_path: Path, output_dir: Optional[Path] = None) -> Path:
    """Return the CSV path for ``json_path``: same base name, ``.csv`` suffix."""

    csv_name = json_path.with_suffix(OUTPUT_SUFFIX).name
    if output_dir is None:
        return json_path.with_name(csv_name)
    return output_dir.expanduser().resolve() / csv_name


def file_size_mb(path: Path) -> float:
    """Return the size of ``path`` in megabytes."""

    return path.stat().st_size / (1024**2)


def log_columns(report: ConversionReport) -> None:
    """Log the numbered column list of a finished conversion."""

    LOGGER.info("Columns in %s:", report.output_path)
    for idx, name in enumerate(report.columns, start=1):
        LOGGER.info("%2d. %s", idx, name)


def format_report(json_path: Path, report: ConversionReport) -> str:
    """Return the one-line summary printed after each conversion."""

    if not report.success:
        return f"[FAIL] {json_path.name}: {report.error}"
    line = (
        f"[OK] {json_path.name} -> {report.output_path} "
        f"({report.total_records_written} records, "
        f"{report.total_records_failed} failed, "
        f"{report.elapsed_seconds:.1f}s, {report.output_size_mb} MB)"
    )
    if report.schema_drift:
        line += f" [{len(report.schema_drift)} batches with column drift]"
    return line


def convert_one(
    json_path: Path,
    settings: ConversionSettings,
    output_dir: Optional[Path] = None,
) -> ConversionReport:
    """Convert a single input file using the strategy ``settings`` selects."""

    size_mb = file_size_mb(json_path)
    batch_size = settings.batch_size_for(size_mb)
    csv_path = output_path_for(json_path, output_dir)
    if batch_size is None:
        LOGGER.info("Converting %s (%.2f MB) in one pass", json_path.name, size_mb)
    else:
        LOGGER.info(
            "Converting %s (%.2f MB) in batches of %d lines",
            json_path.name,
            size_mb,
            batch_size,
        )
    report = convert_file(
        json_path,
        csv_path,
        batch_size,
        show_progress=settings.show_progress,
    )
    if report.success:
        log_columns(report)
    return report


def cmd_convert(args: argparse.Namespace) -> int:
    """Convert every input file and print a run summary.

    Returns ``0`` when all files converted, ``1`` when any failed, and ``2``
    when an input is missing or nothing matched.
    """

    configure_logging(args.verbose, args.log_file)
    try:
        settings = ConversionSettings(
            batch_size=args.batch_size,
            size_threshold_mb=args.size_threshold_mb,
            mode=args.mode,
            show_progress=not args.no_progress,
        )
    except ValueError as err:
        print(f"Invalid options: {err}")
        return 2

    try:
        files = discover_input_files(args.paths)
    except FileNotFoundError as err:
        print(f"Input not found: {err}")
        return 2
    if not files:
        print(f"No *{INPUT_SUFFIX} files found.")
        return 2

    print(f"Found {len(files)} input file(s).")
    created: List[Path] = []
    failed = 0
    for json_path in files:
        report = convert_one(json_path, settings, args.output_dir)
        print(format_report(json_path, report))
        if report.success and report.output_path is not None:
            created.append(report.output_path)
        else:
            failed += 1

    print(f"Summary: ok={len(created)}, fail={failed}, total={len(files)}")
    if created:
        print("CSV files created:")
        for csv_path in created:
            print(f"  - {csv_path} ({file_size_mb(csv_path):.2f} MB)")
    return 1 if failed else 0


def missing_dataset_files(
    data_dir: Path,
    required: Iterable[str] = REQUIRED_DATASET_FILES,
) -> List[Path]:
    """Return the required dataset files that do not exist under ``data_dir``."""

    return [data_dir / name for name in required if not (data_dir / name).exists()]


def cmd_check(args: argparse.Namespace) -> int:
    """Report missing dataset files; return ``1`` when a required one is missing.

    Optional files (check-ins, tips) are listed when absent but do not fail
    the check.
    """

    missing = missing_dataset_files(args.data_dir)
    optional = [
        name for name in YELP_DATASET_FILES if name not in REQUIRED_DATASET_FILES
    ]
    missing_optional = missing_dataset_files(args.data_dir, optional)
    if missing_optional:
        print("Optional data files not found:")
        for path in missing_optional:
            print(f"- {path}")
    if missing:
        print("Missing data files:")
        for path in missing:
            print(f"- {path}")
        print(f"Please download from: {DATASET_URL}")
        print(f"Extract to '{args.data_dir}' directory")
        return 1
    print("All required data files found!")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main CLI dispatcher."""

    parser = build_parser()
    args = parser.parse_args(argv)
    if args.cmd == "check":
        return cmd_check(args)
    return cmd_convert(args)


if __name__ == "__main__":
    raise SystemExit(main())
