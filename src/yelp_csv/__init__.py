"""Convert Yelp academic dataset JSON Lines files into flat CSV tables.

Submodules
----------
values
    Classification of parsed JSON values into a closed set of kinds.
flatten
    Rules that collapse nested record values into single string cells.
reader
    Line parsing and fixed-size batching of JSON Lines input.
sink
    CSV writer that emits a header once and appends rows per batch.
converter
    Whole-file and batched conversion pipelines plus run reports.
settings
    Shared defaults for batch sizes, thresholds, and dataset file names.
commands
    Command-line entry point.
"""

from __future__ import annotations

__all__ = [
    "commands",
    "converter",
    "flatten",
    "reader",
    "settings",
    "sink",
    "values",
]
