"""
anvil-gate — hashing utilities

File: src/anvil_gate/utils/hashing.py

Purpose
- Provide deterministic SHA-256 helpers for text and for canonicalized structured data.

Functional requirements
- Digests are 64 lowercase hex characters.
- A top-level string hashes its raw text; any other value hashes its canonical form.
- ``None``, ``UNDEFINED``, ``""``, ``{}`` and ``[]`` hash to five distinct digests.

Non-functional requirements
- Standard library only; pure functions with no shared state.
"""

from __future__ import annotations

import hashlib
import re
from typing import Final

from anvil_gate.constants import HASH_HEX_LENGTH
from anvil_gate.utils.canonical import canonicalize

_HASH_RE: Final[re.Pattern[str]] = re.compile(rf"^[a-f0-9]{{{HASH_HEX_LENGTH}}}$")

__all__ = [
    "generate_hash",
    "hash_input",
    "is_valid_hash",
    "sha256_bytes",
    "sha256_text",
    "verify_hash",
]


def sha256_bytes(data: bytes) -> str:
    """Return SHA-256 hex digest for raw bytes."""

    return hashlib.sha256(data).hexdigest()


def sha256_text(text: str, *, encoding: str = "utf-8") -> str:
    """Return SHA-256 hex digest for text encoded with ``encoding``."""

    return sha256_bytes(text.encode(encoding))


def hash_input(data: object) -> str:
    """Return the exact text that ``generate_hash`` digests for ``data``."""

    if isinstance(data, str):
        return data
    return canonicalize(data)


def generate_hash(data: object) -> str:
    """Return the content hash of ``data``."""

    return sha256_text(hash_input(data))


def verify_hash(data: object, expected_hash: str) -> bool:
    """Return ``True`` when ``data`` hashes to ``expected_hash``."""

    if not isinstance(expected_hash, str):
        return False
    return generate_hash(data) == expected_hash


def is_valid_hash(value: object) -> bool:
    """Return ``True`` when ``value`` is a well-formed lowercase SHA-256 hex digest."""

    return isinstance(value, str) and _HASH_RE.fullmatch(value) is not None
