"""Closed classification of parsed JSON values.

The JSON parser yields ``None``, ``bool``, ``int``/``float``, ``str``,
``list`` and ``dict`` values. :func:`json_kind` maps each of them onto a
:class:`JsonKind` so the flattening rules can branch on an explicit set of
variants instead of probing arbitrary shapes.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Union

JsonValue = Union[None, bool, int, float, str, List[Any], Dict[str, Any]]
Record = Dict[str, JsonValue]


class FlattenError(TypeError):
    """Raised when a value falls outside the JSON value kinds."""


class JsonKind(str, Enum):
    """Enumerated variants of a parsed JSON value.

    Values
    ------
    NULL:
        JSON ``null``.
    BOOLEAN:
        JSON ``true`` or ``false``.
    NUMBER:
        Integer or floating point number.
    STRING:
        Text value.
    ARRAY:
        Ordered list of values.
    OBJECT:
        Mapping from string keys to values, in insertion order.
    """

    NULL = "null"
    BOOLEAN = "boolean"
    NUMBER = "number"
    STRING = "string"
    ARRAY = "array"
    OBJECT = "object"

    @property
    def is_scalar(self) -> bool:
        """Return ``True`` for booleans, numbers and strings."""

        return self in SCALAR_KINDS

    @property
    def is_container(self) -> bool:
        """Return ``True`` for arrays and objects."""

        return self in (JsonKind.ARRAY, JsonKind.OBJECT)


SCALAR_KINDS = frozenset({JsonKind.BOOLEAN, JsonKind.NUMBER, JsonKind.STRING})


def json_kind(value: object) -> JsonKind:
    """Return the :class:`JsonKind` of ``value``.

    Parameters
    ----------
    value:
        A value as produced by :func:`json.loads`.

    Returns
    -------
    JsonKind
        The matching variant.

    Raises
    ------
    FlattenError
        If ``value`` is not one of the types the JSON parser produces.
    """

    if value is None:
        return JsonKind.NULL
    # bool is a subclass of int, so it must be checked first.
    if isinstance(value, bool):
        return JsonKind.BOOLEAN
    if isinstance(value, (int, float)):
        return JsonKind.NUMBER
    if isinstance(value, str):
        return JsonKind.STRING
    if isinstance(value, list):
        return JsonKind.ARRAY
    if isinstance(value, dict):
        return JsonKind.OBJECT
    raise FlattenError(f"Unsupported JSON value type: {type(value).__name__}")


__all__ = [
    "FlattenError",
    "JsonKind",
    "JsonValue",
    "Record",
    "SCALAR_KINDS",
    "json_kind",
]
