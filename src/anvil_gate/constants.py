"""Stable constants shared across the plan and gate packages."""

from __future__ import annotations

from typing import Final

PACKAGE_NAME: Final[str] = "anvil_gate"
GATE_VERSION: Final[str] = "0.1.0"

# Plan Specification
SCHEMA_VERSION: Final[str] = "0.1.0"
PLAN_ID_PREFIX: Final[str] = "aps"
PLAN_ID_RANDOM_BYTES: Final[int] = 4
HASH_HEX_LENGTH: Final[int] = 64
INTENT_MIN_LENGTH: Final[int] = 10
INTENT_MAX_LENGTH: Final[int] = 500
DEFAULT_REQUIRED_CHECKS: Final[tuple[str, ...]] = ("lint", "test", "coverage", "secrets")
JSON_SCHEMA_ID: Final[str] = f"https://anvil.dev/schemas/aps/{SCHEMA_VERSION}/plan.json"

# Workspace layout
GATE_CONFIG_FILENAME: Final[str] = ".anvilrc"
WORKSPACE_STATE_DIR: Final[str] = ".anvil"
PLANS_DIRNAME: Final[str] = "plans"
WORKSPACE_MARKERS: Final[tuple[str, ...]] = ("pyproject.toml", "package.json", ".git")

# Gate defaults
GATE_CONFIG_VERSION: Final[int] = 1
DEFAULT_OVERALL_SCORE: Final[float] = 80
DEFAULT_MIN_SCORE: Final[float] = 80
COVERAGE_METRICS: Final[tuple[str, ...]] = ("lines", "functions", "branches", "statements")
DEFAULT_COVERAGE_SUMMARY: Final[str] = "coverage/coverage-summary.json"

__all__ = [
    "COVERAGE_METRICS",
    "DEFAULT_COVERAGE_SUMMARY",
    "DEFAULT_MIN_SCORE",
    "DEFAULT_OVERALL_SCORE",
    "DEFAULT_REQUIRED_CHECKS",
    "GATE_CONFIG_FILENAME",
    "GATE_CONFIG_VERSION",
    "GATE_VERSION",
    "HASH_HEX_LENGTH",
    "INTENT_MAX_LENGTH",
    "INTENT_MIN_LENGTH",
    "JSON_SCHEMA_ID",
    "PACKAGE_NAME",
    "PLANS_DIRNAME",
    "PLAN_ID_PREFIX",
    "PLAN_ID_RANDOM_BYTES",
    "SCHEMA_VERSION",
    "WORKSPACE_MARKERS",
    "WORKSPACE_STATE_DIR",
]
