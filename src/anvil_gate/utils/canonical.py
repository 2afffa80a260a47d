"""
anvil-gate — canonical serialization

File: src/anvil_gate/utils/canonical.py

Purpose
- Produce one deterministic text form for structured data so plans can be content-addressed.

Functional requirements
- Mapping keys are sorted recursively; sequence order is preserved.
- ``None`` renders as ``null`` and the ``UNDEFINED`` sentinel renders as ``undefined``.
- Mapping entries whose value is ``UNDEFINED`` are omitted.
- Numbers render the way ECMAScript ``Number.prototype.toString`` does, so digests
  agree with plans produced by JavaScript tooling.

Non-functional requirements
- Pure and stateless; safe to call from any number of threads or tasks.
"""

from __future__ import annotations

import json
import math
from collections.abc import Mapping
from datetime import UTC, date, datetime
from typing import Final, NoReturn

__all__ = [
    "UNDEFINED",
    "Undefined",
    "canonicalize",
    "format_number",
    "format_timestamp",
]


class Undefined:
    """Marker for a value that is absent, as opposed to explicitly ``None``."""

    __slots__ = ()
    _instance: Undefined | None = None

    def __new__(cls) -> Undefined:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNDEFINED"

    def __bool__(self) -> bool:
        return False

    def __copy__(self) -> Undefined:
        return self

    def __deepcopy__(self, memo: object) -> Undefined:
        return self

    def __reduce__(self) -> str:
        return "UNDEFINED"


UNDEFINED: Final[Undefined] = Undefined()

_EXPONENT_UPPER: Final[int] = 21
_EXPONENT_LOWER: Final[int] = -6
# Integers at or beyond 2**53 are not exact doubles; they are rounded like ECMAScript numbers.
_MAX_EXACT_INTEGER: Final[int] = 2**53


def canonicalize(value: object) -> str:
    """Return the canonical text form of ``value``."""

    if value is None:
        return "null"
    if value is UNDEFINED:
        return "undefined"
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return format_number(value)
    if isinstance(value, datetime):
        return json.dumps(format_timestamp(value))
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(canonicalize(item) for item in value) + "]"
    if isinstance(value, Mapping):
        parts: list[str] = []
        for key in sorted(value, key=_key_text):
            item = value[key]
            if item is UNDEFINED:
                continue
            parts.append(f"{json.dumps(_key_text(key), ensure_ascii=False)}:{canonicalize(item)}")
        return "{" + ",".join(parts) + "}"
    if isinstance(value, date):
        _unsupported(value, "dates must be datetime instances")
    _unsupported(value, "value is not JSON-compatible")


def format_number(value: int | float) -> str:
    """Render a number like ECMAScript ``String(n)``."""

    if isinstance(value, int):
        if abs(value) < _MAX_EXACT_INTEGER:
            return str(value)
        try:
            value = float(value)
        except OverflowError:
            return "Infinity" if value > 0 else "-Infinity"
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value == 0:
        return "0"
    if value < 0:
        return "-" + format_number(-value)

    digits, point = _shortest_digits(value)
    count = len(digits)
    if count <= point <= _EXPONENT_UPPER:
        return digits + "0" * (point - count)
    if 0 < point <= _EXPONENT_UPPER:
        return f"{digits[:point]}.{digits[point:]}"
    if _EXPONENT_LOWER < point <= 0:
        return "0." + "0" * -point + digits

    exponent = point - 1
    sign = "+" if exponent >= 0 else "-"
    mantissa = digits if count == 1 else f"{digits[0]}.{digits[1:]}"
    return f"{mantissa}e{sign}{abs(exponent)}"


def format_timestamp(value: datetime) -> str:
    """Render ``value`` as a UTC ISO-8601 string with millisecond precision."""

    if value.tzinfo is None or value.utcoffset() is None:
        normalized = value.replace(tzinfo=UTC)
    else:
        normalized = value.astimezone(UTC)
    return normalized.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _shortest_digits(value: float) -> tuple[str, int]:
    # repr() yields the shortest round-tripping digits; value == 0.d1d2... * 10**point
    mantissa, _, exponent_text = repr(value).partition("e")
    exponent = int(exponent_text) if exponent_text else 0
    whole, _, fraction = mantissa.partition(".")
    raw = whole + fraction
    stripped = raw.lstrip("0")
    leading = len(raw) - len(stripped)
    return stripped.rstrip("0"), len(whole) - leading + exponent


def _key_text(key: object) -> str:
    if isinstance(key, str):
        return key
    _unsupported(key, "mapping keys must be strings")


def _unsupported(value: object, message: str) -> NoReturn:
    raise TypeError(f"canonicalize: {message} ({type(value).__name__})")
