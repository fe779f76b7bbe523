"""
Runtime value helpers shared by the evaluator and built-in functions.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Mapping


class _Absent:
    """
    Sentinel for a value that was never provided.

    Distinct from ``None`` (explicit null), ``False``, ``0`` and ``''``.
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False

    def __reduce__(self):
        return (_Absent, ())


ABSENT = _Absent()


def is_absent(value: Any) -> bool:
    return value is ABSENT


def is_nullish(value: Any) -> bool:
    """True for ABSENT and explicit null."""
    return value is ABSENT or value is None


def is_number(value: Any) -> bool:
    """Numbers exclude booleans."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_temporal(value: Any) -> bool:
    return isinstance(value, (date, datetime))


def truthy(value: Any) -> bool:
    """Truthiness used by ``and``/``or``/``not``: absent and null are falsy."""
    if is_nullish(value):
        return False
    if isinstance(value, bool):
        return value
    if is_number(value):
        return value != 0
    if isinstance(value, (str, tuple, list)):
        return len(value) > 0
    if isinstance(value, Mapping):
        return len(value) > 0
    return bool(value)


def describe(value: Any) -> str:
    """Name a concrete value's type for error messages."""
    if value is ABSENT:
        return "absent"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if is_number(value):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, Mapping):
        return "object"
    if is_temporal(value):
        return "date"
    return type(value).__name__
