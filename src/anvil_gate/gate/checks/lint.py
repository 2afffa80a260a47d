"""
Lint check — gate stage.

Functional requirements:
- Lints only the plan's file create/update/delete targets with a lintable extension.
- Runs ruff with JSON output through the pluggable command executor.
- Scores ``100`` for a clean run, otherwise ``max(0, 100 - errors*10 - warnings*2)``.
- Passes only with zero errors and a score at or above ``min_score``.

Non-functional requirements:
- Never raises; tool or parse faults become a failing result with ``error`` set.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any, Final

import structlog

from anvil_gate.constants import DEFAULT_MIN_SCORE
from anvil_gate.gate.checks.base import (
    Check,
    CheckContext,
    CommandExecutor,
    CommandResult,
    CommandSpec,
    GateResult,
    failure_result,
    file_changes,
    option_number,
    option_str_tuple,
    relative_posix,
    resolve_workspace_path,
)

LINT_CHECK_NAME: Final[str] = "lint"
LINT_CHECK_DESCRIPTION: Final[str] = "Code quality checks"

DEFAULT_LINT_COMMAND: Final[tuple[str, ...]] = ("ruff", "check", "--output-format", "json")
DEFAULT_LINT_EXTENSIONS: Final[tuple[str, ...]] = (".py", ".pyi")
DEFAULT_WARNING_PREFIXES: Final[tuple[str, ...]] = ("W",)
DEFAULT_LINT_TIMEOUT_SECONDS: Final[float] = 90.0

ERROR_PENALTY: Final[int] = 10
WARNING_PENALTY: Final[int] = 2

# ruff exits 1 when it reports violations.
_LINT_EXIT_CODES: Final[tuple[int, ...]] = (0, 1)

__all__ = [
    "DEFAULT_LINT_COMMAND",
    "DEFAULT_LINT_EXTENSIONS",
    "DEFAULT_WARNING_PREFIXES",
    "LINT_CHECK_DESCRIPTION",
    "LINT_CHECK_NAME",
    "lint_check",
    "lint_score",
    "run_lint",
]


def lint_score(errors: int, warnings: int) -> int:
    if errors == 0 and warnings == 0:
        return 100
    return max(0, 100 - errors * ERROR_PENALTY - warnings * WARNING_PENALTY)


def lint_check(
    executor: CommandExecutor | None = None,
    *,
    logger: Any | None = None,
) -> Check:
    """Build the lint check; ``executor`` overrides the one carried by the run context."""

    async def run(context: CheckContext) -> GateResult:
        return await run_lint(context, executor=executor, logger=logger)

    return Check(name=LINT_CHECK_NAME, description=LINT_CHECK_DESCRIPTION, run=run)


async def run_lint(
    context: CheckContext,
    *,
    executor: CommandExecutor | None = None,
    logger: Any | None = None,
) -> GateResult:
    log = logger if logger is not None else structlog.get_logger(__name__)
    try:
        return await _run_lint(context, executor=executor, log=log)
    except Exception as exc:  # noqa: BLE001
        log.debug("lint_check_faulted", error=str(exc))
        return failure_result(LINT_CHECK_NAME, "Lint check failed", error=str(exc))


async def _run_lint(
    context: CheckContext,
    *,
    executor: CommandExecutor | None,
    log: Any,
) -> GateResult:
    options = context.check_config
    min_score = option_number(options, "min_score", DEFAULT_MIN_SCORE)
    extensions = option_str_tuple(options, "extensions", DEFAULT_LINT_EXTENSIONS)
    warning_prefixes = option_str_tuple(options, "warning_prefixes", DEFAULT_WARNING_PREFIXES)
    command = option_str_tuple(options, "command", DEFAULT_LINT_COMMAND)
    timeout = option_number(options, "timeout_seconds", DEFAULT_LINT_TIMEOUT_SECONDS)

    targets = _lint_targets(context, extensions)
    if not targets:
        log.debug("lint_check_no_files")
        return GateResult(
            check=LINT_CHECK_NAME,
            passed=True,
            message="No files to lint",
            score=100,
            details={"files": []},
        )

    spec = CommandSpec(
        argv=(*command, *targets),
        cwd=str(context.workspace_root),
        timeout_seconds=timeout if timeout > 0 else None,
        allowed_exit_codes=_LINT_EXIT_CODES,
    )
    runner = executor if executor is not None else context.require_executor()
    result = await runner.run(spec)
    log.debug(
        "lint_command_completed",
        argv=list(spec.argv),
        exit_code=result.exit_code,
        duration_ms=result.duration_ms,
    )
    if not result.is_success(spec):
        return failure_result(LINT_CHECK_NAME, "Lint check failed", error=_command_error(result))

    diagnostics = _parse_ruff_output(result.stdout)
    files = _group_by_file(diagnostics, context.workspace_root, warning_prefixes)
    errors = sum(entry["error_count"] for entry in files)
    warnings = sum(entry["warning_count"] for entry in files)
    fixable = sum(entry["fixable_count"] for entry in files)

    score = lint_score(errors, warnings)
    passed = errors == 0 and score >= min_score
    verdict = "passed" if passed else "failed"
    return GateResult(
        check=LINT_CHECK_NAME,
        passed=passed,
        message=f"Lint {verdict}: {errors} errors, {warnings} warnings",
        score=score,
        details={
            "error_count": errors,
            "warning_count": warnings,
            "fixable_count": fixable,
            "files_linted": list(targets),
            "files": files,
        },
    )


def _lint_targets(context: CheckContext, extensions: Sequence[str]) -> tuple[str, ...]:
    targets: list[str] = []
    seen: set[str] = set()
    for change in file_changes(context, extensions=extensions):
        resolved = resolve_workspace_path(context.workspace_root, change.path)
        if resolved is None or not resolved.is_file():
            continue
        rel = relative_posix(context.workspace_root, resolved)
        if rel in seen:
            continue
        seen.add(rel)
        targets.append(rel)
    return tuple(targets)


def _parse_ruff_output(stdout: str) -> list[Mapping[str, Any]]:
    if not stdout.strip():
        return []
    payload = json.loads(stdout)
    if not isinstance(payload, list):
        raise ValueError(f"expected a JSON array from the linter, got {type(payload).__name__}")
    return [item for item in payload if isinstance(item, Mapping)]


def _group_by_file(
    diagnostics: Sequence[Mapping[str, Any]],
    workspace_root: Path,
    warning_prefixes: Sequence[str],
) -> list[dict[str, Any]]:
    grouped: dict[str, dict[str, Any]] = {}
    for item in diagnostics:
        filename = item.get("filename")
        path = (
            relative_posix(workspace_root, workspace_root / filename)
            if isinstance(filename, str)
            else "<unknown>"
        )
        entry = grouped.setdefault(
            path,
            {
                "path": path,
                "error_count": 0,
                "warning_count": 0,
                "fixable_count": 0,
                "messages": [],
            },
        )
        code = item.get("code") if isinstance(item.get("code"), str) else None
        severity = (
            "warning"
            if code is not None and code.startswith(tuple(warning_prefixes))
            else "error"
        )
        entry[f"{severity}_count"] += 1
        if isinstance(item.get("fix"), Mapping):
            entry["fixable_count"] += 1

        location = item.get("location")
        row = location.get("row") if isinstance(location, Mapping) else None
        column = location.get("column") if isinstance(location, Mapping) else None
        entry["messages"].append(
            {
                "rule": code,
                "severity": severity,
                "message": str(item.get("message", "")),
                "line": row if isinstance(row, int) else None,
                "column": column if isinstance(column, int) else None,
            }
        )
    return [grouped[key] for key in sorted(grouped)]


def _command_error(result: CommandResult) -> str:
    if result.error is not None:
        return result.error
    stderr = result.stderr.strip()
    if stderr:
        return stderr.splitlines()[-1]
    return f"linter exited with code {result.exit_code}"
