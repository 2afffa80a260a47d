"""
anvil-gate — plan integrity and quality gates

File: src/anvil_gate/__init__.py

Purpose
- Package root. Plans are canonicalized, hashed and validated; validated plans are run through
  a configurable quality gate whose results are recorded as evidence.

Functional requirements
- Must not have side effects at import time (no config loading, no logging init).
- Keep the root API small; subsystems are imported from their own packages.
"""

from anvil_gate.constants import GATE_VERSION, SCHEMA_VERSION

__version__ = GATE_VERSION

__all__ = ["SCHEMA_VERSION", "__version__"]
