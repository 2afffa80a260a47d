"""Unit tests for canonical serialization."""

from __future__ import annotations

import copy
from datetime import UTC, date, datetime, timedelta, timezone

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from anvil_gate.utils.canonical import UNDEFINED, canonicalize, format_number, format_timestamp

_JSON_SCALAR = (
    st.none()
    | st.booleans()
    | st.integers(min_value=-(2**53), max_value=2**53)
    | st.floats(allow_nan=False, allow_infinity=False)
    | st.text(max_size=12)
)
_JSON_VALUE = st.recursive(
    _JSON_SCALAR,
    lambda children: st.lists(children, max_size=4)
    | st.dictionaries(st.text(max_size=6), children, max_size=4),
    max_leaves=20,
)


def _reversed_keys(value: object) -> object:
    if isinstance(value, dict):
        return {key: _reversed_keys(value[key]) for key in reversed(list(value))}
    if isinstance(value, list):
        return [_reversed_keys(item) for item in value]
    return value


def test_scalars_render_as_literals() -> None:
    assert canonicalize(None) == "null"
    assert canonicalize(UNDEFINED) == "undefined"
    assert canonicalize(True) == "true"
    assert canonicalize(False) == "false"
    assert canonicalize(42) == "42"
    assert canonicalize("a\"b") == '"a\\"b"'
    assert canonicalize("héllo") == '"héllo"'


def test_null_and_undefined_are_distinct() -> None:
    assert canonicalize(None) != canonicalize(UNDEFINED)
    assert canonicalize({"a": None}) == '{"a":null}'
    assert canonicalize({"a": UNDEFINED}) == "{}"
    assert canonicalize([None, UNDEFINED]) == "[null,undefined]"


def test_objects_sort_keys_recursively_and_arrays_keep_order() -> None:
    value = {"b": 1, "a": {"z": [3, 1, 2], "y": "x"}}
    assert canonicalize(value) == '{"a":{"y":"x","z":[3,1,2]},"b":1}'
    assert canonicalize((1, 2)) == canonicalize([1, 2])


def test_datetimes_render_as_quoted_utc_iso_strings() -> None:
    aware = datetime(2026, 1, 2, 3, 4, 5, 678_000, tzinfo=timezone(timedelta(hours=2)))
    assert canonicalize(aware) == '"2026-01-02T01:04:05.678Z"'
    assert format_timestamp(datetime(2026, 1, 2, 3, 4, 5)) == "2026-01-02T03:04:05.000Z"
    assert format_timestamp(datetime(2026, 1, 2, tzinfo=UTC)) == "2026-01-02T00:00:00.000Z"


@pytest.mark.parametrize(
    ("number", "expected"),
    [
        (1.0, "1"),
        (-0.0, "0"),
        (1.5, "1.5"),
        (0.1, "0.1"),
        (100.0, "100"),
        (0.000001, "0.000001"),
        (1e-7, "1e-7"),
        (1e20, "100000000000000000000"),
        (1e21, "1e+21"),
        (1.25e22, "1.25e+22"),
        (-2.5e-8, "-2.5e-8"),
        (float("nan"), "NaN"),
        (float("inf"), "Infinity"),
        (float("-inf"), "-Infinity"),
    ],
)
def test_format_number_matches_ecmascript_to_string(number: float, expected: str) -> None:
    assert format_number(number) == expected


@pytest.mark.parametrize(
    ("number", "expected"),
    [
        (2**53 - 1, "9007199254740991"),
        (2**53, "9007199254740992"),
        (2**53 + 1, "9007199254740992"),
        (-(2**53) - 1, "-9007199254740992"),
        (10**21, "1e+21"),
        (123 * 10**20, "1.23e+22"),
        (10**400, "Infinity"),
        (-(10**400), "-Infinity"),
    ],
)
def test_large_integers_round_like_doubles(number: int, expected: str) -> None:
    assert format_number(number) == expected
    assert canonicalize({"n": number}) == '{"n":' + expected + "}"


def test_unsupported_values_raise_type_error() -> None:
    with pytest.raises(TypeError, match="not JSON-compatible"):
        canonicalize({1, 2})
    with pytest.raises(TypeError, match="dates must be datetime"):
        canonicalize(date(2026, 1, 1))
    with pytest.raises(TypeError, match="mapping keys must be strings"):
        canonicalize({1: "a"})


def test_undefined_survives_copies() -> None:
    assert copy.copy(UNDEFINED) is UNDEFINED
    assert copy.deepcopy({"a": UNDEFINED})["a"] is UNDEFINED
    assert not UNDEFINED


@given(value=_JSON_VALUE)
@settings(max_examples=60, derandomize=True, deadline=None)
def test_property_key_order_never_changes_canonical_form(value: object) -> None:
    assert canonicalize(_reversed_keys(value)) == canonicalize(value)
