"""
Synx Serializers - Tag Classification and Storage Encodings
===========================================================

Storage backends only hold strings, so every synchronized value goes through a
read/write pair on its way in and out. When no serializer is supplied, the
default value is classified once into a `Tag` and the pair is looked up in
`STORAGE_SERIALIZERS`.

Classification is an ordered chain of checks where the first match wins:

    None            -> Tag.ANY
    bool            -> Tag.BOOLEAN   (before NUMBER: bool is an int subclass)
    int, float      -> Tag.NUMBER
    str             -> Tag.STRING
    non-dict Mapping-> Tag.MAP       (OrderedDict, MappingProxyType, ...)
    set, frozenset  -> Tag.SET
    list, tuple,dict-> Tag.OBJECT
    anything else   -> Tag.ANY

Example:
    >>> serializer = serializer_for(OrderedDict([(1, "a")]))
    >>> serializer.write(OrderedDict([(1, "a")]))
    '[[1,"a"]]'
"""

import json
import math
import re
from collections import OrderedDict
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Generic, Tuple, TypeVar, Union

from .errors import ParseError

T = TypeVar("T")


class Tag(Enum):
    """Semantic shape of a default value, used to pick a serializer."""

    BOOLEAN = "boolean"
    NUMBER = "number"
    STRING = "string"
    OBJECT = "object"
    MAP = "map"
    SET = "set"
    ANY = "any"


@dataclass(frozen=True)
class Serializer(Generic[T]):
    """A read/write pair converting between a value and its stored text."""

    read: Callable[[str], T]
    write: Callable[[T], str]


def _is_map(value: Any) -> bool:
    # Plain dicts are keyed structures and belong to OBJECT.
    return isinstance(value, Mapping) and type(value) is not dict


_TAG_CHECKS: Tuple[Tuple[Tag, Callable[[Any], bool]], ...] = (
    (Tag.ANY, lambda value: value is None),
    (Tag.BOOLEAN, lambda value: isinstance(value, bool)),
    (Tag.NUMBER, lambda value: isinstance(value, (int, float))),
    (Tag.STRING, lambda value: isinstance(value, str)),
    (Tag.MAP, _is_map),
    (Tag.SET, lambda value: isinstance(value, (set, frozenset))),
    (Tag.OBJECT, lambda value: isinstance(value, (list, tuple, dict))),
)


def guess_serializer_tag(value: Any) -> Tag:
    """
    Classify a value into the Tag used to pick its default serializer.

    Args:
        value: Candidate default value.

    Returns:
        The first Tag whose check accepts the value, or Tag.ANY.
    """
    for tag, check in _TAG_CHECKS:
        if check(value):
            return tag
    return Tag.ANY


# ============================================================================
# ENCODINGS
# ============================================================================

_NUMBER_PREFIX = re.compile(
    r"\s*([+-]?(?:Infinity|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?))"
)


def parse_number(raw: str) -> Union[int, float]:
    """
    Parse the leading numeric prefix of a string.

    Trailing garbage is ignored and input with no numeric prefix yields NaN
    instead of raising, so "12px" reads as 12 and "abc" as nan.
    """
    match = _NUMBER_PREFIX.match(raw)
    if match is None:
        return math.nan
    text = match.group(1)
    if "Infinity" in text:
        return -math.inf if text.startswith("-") else math.inf
    if any(marker in text for marker in ".eE"):
        return float(text)
    return int(text)


def format_number(value: Union[int, float]) -> str:
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer() and abs(value) < 1e21:
            return str(int(value))
        return repr(value)
    return str(value)


def _dump_json(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"))


def _load_json(raw: str) -> Any:
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise ParseError(f"Malformed JSON in storage: {exc}") from exc


def _as_hashable(value: Any) -> Any:
    # JSON has no tuples; tuple keys and set elements come back as lists.
    if isinstance(value, list):
        return tuple(_as_hashable(item) for item in value)
    return value


def _read_map(raw: str) -> "OrderedDict[Any, Any]":
    pairs = _load_json(raw)
    try:
        return OrderedDict((_as_hashable(key), value) for key, value in pairs)
    except (TypeError, ValueError) as exc:
        raise ParseError(f"Stored map is not a list of key/value pairs: {exc}") from exc


def _read_set(raw: str) -> set:
    items = _load_json(raw)
    if not isinstance(items, list):
        raise ParseError("Stored set is not a list")
    try:
        return {_as_hashable(item) for item in items}
    except TypeError as exc:
        raise ParseError(f"Stored set holds unhashable elements: {exc}") from exc


STORAGE_SERIALIZERS: Dict[Tag, Serializer[Any]] = {
    # Anything other than the exact text "true" reads as False.
    Tag.BOOLEAN: Serializer(
        read=lambda raw: raw == "true",
        write=lambda value: "true" if value else "false",
    ),
    Tag.NUMBER: Serializer(read=parse_number, write=format_number),
    Tag.STRING: Serializer(read=lambda raw: raw, write=str),
    Tag.ANY: Serializer(read=lambda raw: raw, write=str),
    Tag.OBJECT: Serializer(read=_load_json, write=_dump_json),
    Tag.MAP: Serializer(
        read=_read_map,
        write=lambda value: _dump_json([[key, item] for key, item in value.items()]),
    ),
    # Sets are stored as a flat list of their elements.
    Tag.SET: Serializer(read=_read_set, write=lambda value: _dump_json(list(value))),
}


def serializer_for(value: Any) -> Serializer[Any]:
    """Return the default serializer for a value's Tag."""
    return STORAGE_SERIALIZERS[guess_serializer_tag(value)]
