"""
Coverage check — gate stage.

Functional requirements:
- Reads a pre-generated istanbul-style ``coverage-summary.json``
  (``{"total": {"lines": {"pct": ..}}}``).
- Compares each present metric (lines/functions/branches/statements) against its threshold.
- Overall coverage is the mean of the metrics present; it is also the check score.
- Passes when overall >= ``min_score`` and no metric is below its own threshold.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any, Final

import structlog

from anvil_gate.constants import COVERAGE_METRICS, DEFAULT_COVERAGE_SUMMARY, DEFAULT_MIN_SCORE
from anvil_gate.gate.checks.base import (
    Check,
    CheckContext,
    GateResult,
    failure_result,
    option_mapping,
    option_number,
    option_str,
    relative_posix,
    resolve_workspace_path,
)
from anvil_gate.utils.canonical import format_number

COVERAGE_CHECK_NAME: Final[str] = "coverage"
COVERAGE_CHECK_DESCRIPTION: Final[str] = "Test coverage validation"

__all__ = [
    "COVERAGE_CHECK_DESCRIPTION",
    "COVERAGE_CHECK_NAME",
    "analyze_coverage",
    "coverage_check",
    "run_coverage",
]


def coverage_check(*, logger: Any | None = None) -> Check:
    async def run(context: CheckContext) -> GateResult:
        return await run_coverage(context, logger=logger)

    return Check(name=COVERAGE_CHECK_NAME, description=COVERAGE_CHECK_DESCRIPTION, run=run)


async def run_coverage(context: CheckContext, *, logger: Any | None = None) -> GateResult:
    log = logger if logger is not None else structlog.get_logger(__name__)
    try:
        return _run_coverage(context, log)
    except Exception as exc:  # noqa: BLE001
        log.debug("coverage_check_faulted", error=str(exc))
        return failure_result(COVERAGE_CHECK_NAME, "Coverage check failed", error=str(exc))


def _run_coverage(context: CheckContext, log: Any) -> GateResult:
    options = context.check_config
    summary_rel = option_str(options, "summary_path", DEFAULT_COVERAGE_SUMMARY)
    min_score = option_number(options, "min_score", DEFAULT_MIN_SCORE)
    thresholds = _merge_thresholds(option_mapping(options, "thresholds"))

    summary_path = resolve_workspace_path(context.workspace_root, summary_rel)
    if summary_path is None or not summary_path.is_file():
        log.debug("coverage_summary_missing", path=summary_rel)
        return failure_result(
            COVERAGE_CHECK_NAME,
            "Coverage report not found",
            error="Run tests with coverage first",
        )

    payload = json.loads(summary_path.read_text(encoding="utf-8"))
    totals = payload.get("total") if isinstance(payload, Mapping) else None
    if not isinstance(totals, Mapping):
        raise ValueError(f"{summary_rel}: missing 'total' section")

    analysis = analyze_coverage(totals, thresholds)
    overall = analysis["overall"]
    passed = overall >= min_score and not analysis["failed_checks"]
    if passed:
        message = f"Coverage passed: {overall:.1f}% overall"
    else:
        message = (
            f"Coverage failed: {overall:.1f}% overall "
            f"(required: {format_number(min_score)}%)"
        )
    analysis["summary_path"] = relative_posix(context.workspace_root, summary_path)
    return GateResult(
        check=COVERAGE_CHECK_NAME,
        passed=passed,
        message=message,
        score=min(100.0, max(0.0, overall)),
        details=analysis,
    )


def analyze_coverage(
    totals: Mapping[str, Any],
    thresholds: Mapping[str, float],
) -> dict[str, Any]:
    """Compare present metrics against ``thresholds``; absent metrics are ignored."""

    metrics: dict[str, dict[str, Any]] = {}
    failed: list[str] = []
    for metric in COVERAGE_METRICS:
        entry = totals.get(metric)
        if not isinstance(entry, Mapping):
            continue
        pct = entry.get("pct")
        if isinstance(pct, bool) or not isinstance(pct, (int, float)):
            continue
        threshold = thresholds.get(metric, 0)
        metrics[metric] = {"coverage": pct, "threshold": threshold, "passed": pct >= threshold}
        if pct < threshold:
            failed.append(f"{metric}: {format_number(pct)}% < {format_number(threshold)}%")

    overall = (
        sum(item["coverage"] for item in metrics.values()) / len(metrics) if metrics else 0.0
    )
    return {"overall": overall, "metrics": metrics, "failed_checks": failed}


def _merge_thresholds(configured: Mapping[str, Any]) -> dict[str, float]:
    thresholds: dict[str, float] = dict.fromkeys(COVERAGE_METRICS, DEFAULT_MIN_SCORE)
    for metric in COVERAGE_METRICS:
        thresholds[metric] = option_number(configured, metric, thresholds[metric])
    return thresholds
