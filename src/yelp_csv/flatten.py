"""Collapse nested record values into single string cells.

Each top-level value of a record becomes one CSV cell:

- ``null`` and empty arrays or objects become ``None``.
- Booleans, numbers and strings become their text form.
- A ``categories`` array of scalars becomes a comma separated list.
- Any other array or object becomes minified JSON text, keys in their
  original order and nested nulls kept as ``null``.

A final pass coerces anything that is still not a string into a comma
joined list of its scalar leaves, or ``None`` when that is impossible.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterable, Iterator, Mapping, MutableMapping, Optional

from yelp_csv.settings import CATEGORIES_KEY, CATEGORY_SEPARATOR, LEFTOVER_SEPARATOR
from yelp_csv.values import FlattenError, JsonKind, json_kind

LOGGER = logging.getLogger(__name__)

FlatRow = Dict[str, Optional[str]]


def scalar_to_text(value: object) -> str:
    """Return the cell text for a boolean, number or string.

    Strings are returned verbatim. Booleans and numbers use their JSON
    spelling (``true``, ``false``, ``4.5``) so they read the same as they do
    inside embedded JSON text.

    Raises
    ------
    FlattenError
        If ``value`` is not a scalar.
    """

    kind = json_kind(value)
    if kind is JsonKind.STRING:
        return value  # type: ignore[return-value]
    if kind.is_scalar:
        return json.dumps(value)
    raise FlattenError(f"Expected a scalar value, got {kind.value}")


def canonical_json_text(value: object) -> str:
    """Return minified JSON text for ``value`` with key order preserved."""

    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def join_scalars(values: Iterable[object], separator: str = CATEGORY_SEPARATOR) -> str:
    """Join scalar ``values`` into one string, preserving their order."""

    return separator.join(scalar_to_text(item) for item in values)


def _is_scalar_array(values: Iterable[object]) -> bool:
    return all(json_kind(item).is_scalar for item in values)


def flatten_value(key: str, value: object) -> Optional[str]:
    """Return the cell for a single top-level ``key``/``value`` pair.

    Raises
    ------
    FlattenError
        If ``value`` (or anything nested in it) is not a JSON value.
    """

    kind = json_kind(value)
    if kind is JsonKind.NULL:
        return None
    if kind.is_scalar:
        return scalar_to_text(value)
    if kind.is_container and not value:
        return None
    if key == CATEGORIES_KEY and kind is JsonKind.ARRAY and _is_scalar_array(value):
        return join_scalars(value)
    try:
        return canonical_json_text(value)
    except TypeError as err:
        raise FlattenError(f"Cannot serialize {key!r} as JSON: {err}") from err


def _iter_scalar_leaves(value: object) -> Iterator[str]:
    """Yield the text of every scalar leaf beneath ``value``.

    Nulls are skipped. Mappings contribute their values, other iterables
    their items.
    """

    if value is None:
        return
    if isinstance(value, (bool, int, float, str)):
        yield scalar_to_text(value)
        return
    if isinstance(value, Mapping):
        for item in value.values():
            yield from _iter_scalar_leaves(item)
        return
    if isinstance(value, (bytes, bytearray)):
        raise FlattenError("Binary values cannot be placed in a CSV cell")
    try:
        items = iter(value)  # type: ignore[call-overload]
    except TypeError as err:
        raise FlattenError(
            f"Cannot coerce {type(value).__name__} to a CSV cell"
        ) from err
    for item in items:
        yield from _iter_scalar_leaves(item)


def coerce_leftover(value: object) -> Optional[str]:
    """Coerce a value that survived flattening into a string cell.

    Returns ``None`` for ``None`` and for containers without scalar leaves.

    Raises
    ------
    FlattenError
        If a leaf cannot be rendered as text.
    """

    if value is None or isinstance(value, str):
        return value
    leaves = list(_iter_scalar_leaves(value))
    if not leaves:
        return None
    return LEFTOVER_SEPARATOR.join(leaves)


def ensure_flat_row(row: MutableMapping[str, Any]) -> FlatRow:
    """Replace every non-string cell of ``row`` in place and return it.

    Cells that cannot be coerced become ``None`` and a warning is logged.
    """

    for key, value in row.items():
        if value is None or isinstance(value, str):
            continue
        try:
            row[key] = coerce_leftover(value)
        except FlattenError as err:
            LOGGER.warning("Replacing column %r with an empty cell: %s", key, err)
            row[key] = None
    return row  # type: ignore[return-value]


def flatten_record(record: Mapping[str, Any]) -> FlatRow:
    """Return a flat row for one parsed JSON Lines record.

    Parameters
    ----------
    record:
        Top-level JSON object. Key order is preserved in the result.

    Returns
    -------
    FlatRow
        Mapping from column name to a string cell or ``None``.
    """

    row: Dict[str, Any] = {}
    for key, value in record.items():
        try:
            row[key] = flatten_value(key, value)
        except FlattenError:
            row[key] = value
    return ensure_flat_row(row)


def is_flat_row(row: Mapping[str, object]) -> bool:
    """Return ``True`` when every cell of ``row`` is a string or ``None``."""

    return all(value is None or isinstance(value, str) for value in row.values())


__all__ = [
    "FlatRow",
    "canonical_json_text",
    "coerce_leftover",
    "ensure_flat_row",
    "flatten_record",
    "flatten_value",
    "is_flat_row",
    "join_scalars",
    "scalar_to_text",
]
