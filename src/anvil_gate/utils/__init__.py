"""Utility exports for canonical serialization, hashing, and filesystem helpers."""

from anvil_gate.utils.canonical import UNDEFINED, Undefined, canonicalize, format_number
from anvil_gate.utils.fs import atomic_write, ensure_parent_dir
from anvil_gate.utils.hashing import (
    generate_hash,
    is_valid_hash,
    sha256_bytes,
    sha256_text,
    verify_hash,
)

__all__ = [
    "UNDEFINED",
    "Undefined",
    "atomic_write",
    "canonicalize",
    "ensure_parent_dir",
    "format_number",
    "generate_hash",
    "is_valid_hash",
    "sha256_bytes",
    "sha256_text",
    "verify_hash",
]
