"""
Candidate-path field access for raw order documents.

Every derived field is computed from an ordered list of dotted source paths
("shippingInfo.packedAt", "packedAt", ...). `first_of` returns the first one
that holds a usable value; coercion helpers turn single leaves into numbers
or strings without ever raising.
"""

from __future__ import annotations

import math
from typing import Any, Callable, Mapping, Optional, Sequence

_MISSING = object()


def get_path(data: Any, path: str) -> Any:
    """Resolve a dotted path through nested mappings; None when any hop is absent."""
    current = data
    for part in path.split("."):
        if not isinstance(current, Mapping):
            return None
        current = current.get(part, _MISSING)
        if current is _MISSING:
            return None
    return current


def is_present(value: Any) -> bool:
    """JS-style truthiness for raw values, except that 0 counts as present."""
    if value is None or value is False:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple, dict)):
        return bool(value)
    return True


def first_of(
    data: Mapping[str, Any],
    *paths: str,
    accept: Callable[[Any], bool] = is_present,
    default: Any = None,
) -> Any:
    for path in paths:
        value = get_path(data, path)
        if accept(value):
            return value
    return default


def first_value(*values: Any, accept: Callable[[Any], bool] = is_present, default: Any = None) -> Any:
    """`first_of` for already-resolved candidates."""
    for value in values:
        if accept(value):
            return value
    return default


def to_number(value: Any) -> Optional[float]:
    """Coerce one leaf to a finite number; None when absent or malformed."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        s = value.strip().replace(",", "")
        if not s:
            return None
        try:
            number = float(s)
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(number):
        return None
    return int(number) if number.is_integer() else number


def number_or_zero(value: Any) -> float:
    number = to_number(value)
    return number if number is not None else 0


def optional_str(value: Any) -> Optional[str]:
    if not is_present(value):
        return None
    if isinstance(value, (dict, list, tuple)):
        return None
    return str(value)


def number_fields(section: Any, keys: Sequence[str]) -> dict[str, Optional[float]]:
    """Coerce each numeric leaf of a nested section independently."""
    return {key: to_number(get_path(section, key)) for key in keys}
