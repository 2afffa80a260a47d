"""Built-in gate checks and the contract they share."""

from anvil_gate.gate.checks.base import (
    Check,
    CheckContext,
    CheckRun,
    CommandExecutor,
    CommandResult,
    CommandSpec,
    GateResult,
    LocalSubprocessExecutor,
)
from anvil_gate.gate.checks.coverage import COVERAGE_CHECK_NAME, coverage_check
from anvil_gate.gate.checks.lint import LINT_CHECK_NAME, lint_check
from anvil_gate.gate.checks.secret import SECRET_CHECK_NAME, secret_check


def builtin_checks() -> tuple[Check, ...]:
    """Return fresh instances of the lint, coverage and secret checks, in that order."""

    return (lint_check(), coverage_check(), secret_check())


__all__ = [
    "COVERAGE_CHECK_NAME",
    "LINT_CHECK_NAME",
    "SECRET_CHECK_NAME",
    "Check",
    "CheckContext",
    "CheckRun",
    "CommandExecutor",
    "CommandResult",
    "CommandSpec",
    "GateResult",
    "LocalSubprocessExecutor",
    "builtin_checks",
    "coverage_check",
    "lint_check",
    "secret_check",
]
