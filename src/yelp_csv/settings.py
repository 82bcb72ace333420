"""Centralized defaults for conversion runs and the Yelp dataset layout.

Import these constants instead of repeating literals across the converter
and the command-line driver so thresholds and file names stay consistent.
"""

from __future__ import annotations

from dataclasses import dataclass

# Conversion strategy -------------------------------------------------------

LARGE_FILE_THRESHOLD_MB = 100.0
DEFAULT_BATCH_SIZE = 50_000

MODE_AUTO = "auto"
MODE_WHOLE = "whole"
MODE_BATCHED = "batched"
MODES = (MODE_AUTO, MODE_WHOLE, MODE_BATCHED)


# Flattening ---------------------------------------------------------------

CATEGORIES_KEY = "categories"
CATEGORY_SEPARATOR = ", "
LEFTOVER_SEPARATOR = ", "


# File naming --------------------------------------------------------------

INPUT_SUFFIX = ".json"
OUTPUT_SUFFIX = ".csv"
FILE_ENCODING = "utf-8"


# Yelp academic dataset ----------------------------------------------------

YELP_DATASET_FILES = [
    "yelp_academic_dataset_business.json",
    "yelp_academic_dataset_review.json",
    "yelp_academic_dataset_user.json",
    "yelp_academic_dataset_checkin.json",
    "yelp_academic_dataset_tip.json",
]

REQUIRED_DATASET_FILES = [
    "yelp_academic_dataset_review.json",
    "yelp_academic_dataset_business.json",
    "yelp_academic_dataset_user.json",
]

DEFAULT_DATA_DIR = "data"
DATASET_URL = "https://www.yelp.com/dataset"


@dataclass(frozen=True)
class ConversionSettings:
    """Options that control how each input file is converted.

    Parameters
    ----------
    batch_size:
        Number of input lines read per batch in batched mode.
    size_threshold_mb:
        Files larger than this many megabytes use batched mode when
        ``mode`` is ``"auto"``.
    mode:
        One of ``"auto"``, ``"whole"``, or ``"batched"``.
    show_progress:
        When true, display ``tqdm`` progress bars while converting.
    """

    batch_size: int = DEFAULT_BATCH_SIZE
    size_threshold_mb: float = LARGE_FILE_THRESHOLD_MB
    mode: str = MODE_AUTO
    show_progress: bool = True

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {self.batch_size}")
        if self.mode not in MODES:
            raise ValueError(f"Unknown conversion mode: {self.mode!r}")

    def batch_size_for(self, size_mb: float) -> int | None:
        """Return the batch size to use for a file of ``size_mb`` megabytes.

        ``None`` selects whole-file mode.
        """

        if self.mode == MODE_WHOLE:
            return None
        if self.mode == MODE_BATCHED:
            return self.batch_size
        return self.batch_size if size_mb > self.size_threshold_mb else None
