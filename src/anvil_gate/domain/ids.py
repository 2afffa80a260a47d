"""Plan identifier generation and validation.

Plan IDs are ``aps-`` followed by 8 lowercase hex characters taken from 4
cryptographically random bytes. The space is 2**32 values, so collisions are
unlikely but possible; IDs name plans within one workspace and are not a
globally unique scheme.
"""

from __future__ import annotations

import re
import secrets
from collections.abc import Callable
from typing import Final

from anvil_gate.constants import PLAN_ID_PREFIX, PLAN_ID_RANDOM_BYTES
from anvil_gate.utils.hashing import is_valid_hash

_PREFIX_SEPARATOR: Final[str] = "-"
PLAN_ID_LENGTH: Final[int] = len(PLAN_ID_PREFIX) + len(_PREFIX_SEPARATOR) + PLAN_ID_RANDOM_BYTES * 2
PLAN_ID_PATTERN: Final[str] = rf"^{PLAN_ID_PREFIX}-[a-f0-9]{{{PLAN_ID_RANDOM_BYTES * 2}}}$"

_PLAN_ID_RE: Final[re.Pattern[str]] = re.compile(PLAN_ID_PATTERN)

_RandBytes = Callable[[int], bytes]

__all__ = [
    "PLAN_ID_LENGTH",
    "PLAN_ID_PATTERN",
    "generate_plan_id",
    "is_valid_hash",
    "is_valid_plan_id",
    "validate_plan_id",
]


def generate_plan_id(*, randbytes: _RandBytes | None = None) -> str:
    """Generate a plan ID in the form ``aps-xxxxxxxx``."""
    random_bytes = _resolve_random_bytes(randbytes)
    return f"{PLAN_ID_PREFIX}{_PREFIX_SEPARATOR}{random_bytes.hex()}"


def is_valid_plan_id(value: object) -> bool:
    """Return ``True`` when ``value`` matches the plan ID format."""
    return isinstance(value, str) and _PLAN_ID_RE.fullmatch(value) is not None


def validate_plan_id(id_str: str) -> None:
    """Validate a plan ID and raise ``ValueError`` with context on failure."""
    if not isinstance(id_str, str):
        raise ValueError(f"plan id must be a string, got {type(id_str).__name__}")
    if not is_valid_plan_id(id_str):
        raise ValueError(f"plan id must match {PLAN_ID_PATTERN}, got {id_str!r}")


def _resolve_random_bytes(randbytes: _RandBytes | None) -> bytes:
    provider = secrets.token_bytes if randbytes is None else randbytes
    raw = provider(PLAN_ID_RANDOM_BYTES)
    if not isinstance(raw, (bytes, bytearray, memoryview)):
        raise ValueError("randbytes must return a bytes-like object")
    as_bytes = bytes(raw)
    if len(as_bytes) != PLAN_ID_RANDOM_BYTES:
        raise ValueError(f"randbytes must return exactly {PLAN_ID_RANDOM_BYTES} bytes")
    return as_bytes
