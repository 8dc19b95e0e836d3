"""Type tolerant equality for property values."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Sequence


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def _as_decimal(value: Any) -> Decimal | None:
    if _is_number(value):
        return Decimal(str(value))
    if isinstance(value, str):
        try:
            number = Decimal(value.strip())
        except InvalidOperation:
            return None
        return number if number.is_finite() else None
    return None


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes))


def values_equal(left: Any, right: Any) -> bool:
    """Return True when ``left`` and ``right`` represent the same value.

    Numbers compare by decimal value across int, float, Decimal and numeric
    text. Sequences compare pairwise in order, maps key by key. Booleans
    only equal booleans.
    """
    if left is None and right is None:
        return True
    if left is None or right is None:
        return False
    if isinstance(left, bool) or isinstance(right, bool):
        return type(left) is type(right) and left == right
    if _is_number(left) or _is_number(right):
        return _numbers_equal(left, right)
    if isinstance(left, str) or isinstance(right, str):
        return left == right
    if isinstance(left, Mapping) and isinstance(right, Mapping):
        if left.keys() != right.keys():
            return False
        return all(values_equal(left[key], right[key]) for key in left)
    if _is_sequence(left) and _is_sequence(right):
        if len(left) != len(right):
            return False
        return all(values_equal(a, b) for a, b in zip(left, right))
    try:
        return bool(left == right)
    except Exception:  # pylint: disable=broad-except
        return False


def _numbers_equal(left: Any, right: Any) -> bool:
    if isinstance(left, (Mapping, list, tuple)) or isinstance(right, (Mapping, list, tuple)):
        return False
    left_number = _as_decimal(left)
    right_number = _as_decimal(right)
    if left_number is None or right_number is None:
        return False
    return left_number == right_number
