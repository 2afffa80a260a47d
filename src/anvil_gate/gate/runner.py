"""
Gate runner: sequential, config-ordered execution of registered checks.

The runner owns a name-keyed registry of ``Check`` values. A run walks
``GateConfig.checks`` in declared order, awaits each check before starting
the next, and folds the per-check results into one ``GateRunResult``:

- a disabled entry is reported as skipped and never scored
- an entry naming an unregistered check is an explicit failure
- a check that raises is converted into a failure; the run continues

The aggregate score is the mean of the defined per-check scores. When no
result carries a score the aggregate is 100 and a warning is logged, since a
fully disabled gate otherwise reads as a full pass.
"""

from __future__ import annotations

import os
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import structlog

from anvil_gate.gate.checks import builtin_checks
from anvil_gate.gate.checks.base import (
    Check,
    CheckContext,
    CommandExecutor,
    GateResult,
    failure_result,
)
from anvil_gate.gate.config import GateCheckConfig, GateConfig
from anvil_gate.validation.validator import ValidatedPlan

PathLike = str | os.PathLike[str]

VACUOUS_SCORE: float = 100

__all__ = [
    "GateRunResult",
    "GateRunner",
    "GateSummary",
    "VACUOUS_SCORE",
    "aggregate_score",
    "summarize",
]


@dataclass(frozen=True, slots=True)
class GateSummary:
    total: int
    passed: int
    failed: int
    skipped: int

    def to_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "passed": self.passed,
            "failed": self.failed,
            "skipped": self.skipped,
        }


@dataclass(frozen=True, slots=True)
class GateRunResult:
    """Aggregate outcome of one gate run; ``checks`` mirrors config order."""

    overall: bool
    score: float
    checks: tuple[GateResult, ...]
    summary: GateSummary

    def to_dict(self) -> dict[str, Any]:
        return {
            "overall": self.overall,
            "score": self.score,
            "checks": [result.to_dict() for result in self.checks],
            "summary": self.summary.to_dict(),
        }


def aggregate_score(results: Iterable[GateResult]) -> float | None:
    """Mean of the defined scores, or ``None`` when nothing was scored."""

    scores = [result.score for result in results if result.score is not None]
    if not scores:
        return None
    return sum(scores) / len(scores)


def summarize(results: Iterable[GateResult]) -> GateSummary:
    items = tuple(results)
    return GateSummary(
        total=len(items),
        passed=sum(1 for result in items if result.passed and not result.is_skipped),
        failed=sum(1 for result in items if not result.passed and not result.is_skipped),
        skipped=sum(1 for result in items if result.is_skipped),
    )


class GateRunner:
    """Runs a plan through the checks named by a ``GateConfig``."""

    def __init__(
        self,
        checks: Iterable[Check] | None = None,
        *,
        logger: Any | None = None,
    ) -> None:
        self._checks: dict[str, Check] = {}
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        for check in checks if checks is not None else builtin_checks():
            self.register_check(check)

    def register_check(self, check: Check) -> None:
        """Register ``check`` under its name, replacing any previous registration."""

        self._checks[check.name] = check

    def unregister_check(self, name: str) -> bool:
        return self._checks.pop(name, None) is not None

    def get_check(self, name: str) -> Check | None:
        return self._checks.get(name)

    def available_checks(self) -> tuple[str, ...]:
        return tuple(self._checks)

    async def run_gate(
        self,
        plan: ValidatedPlan,
        config: GateConfig,
        workspace_root: PathLike,
        *,
        command_executor: CommandExecutor | None = None,
    ) -> GateRunResult:
        if not isinstance(plan, ValidatedPlan):
            raise TypeError(f"run_gate: expected ValidatedPlan, got {type(plan).__name__}")

        root = Path(workspace_root)
        self._logger.info(
            "gate_run_started",
            plan_id=plan.id,
            checks=[entry.name for entry in config.checks],
        )

        results: list[GateResult] = []
        for entry in config.checks:
            context = CheckContext(
                plan=plan,
                workspace_root=root,
                global_config=config,
                check_config=entry.config,
                command_executor=command_executor,
            )
            results.append(await self._run_entry(entry, context))

        score = aggregate_score(results)
        if score is None:
            self._logger.warning(
                "gate_run_vacuous_score",
                plan_id=plan.id,
                total=len(results),
                score=VACUOUS_SCORE,
            )
        all_clear = all(result.passed or result.is_skipped for result in results)
        meets_threshold = score is None or score >= config.overall_score
        run_result = GateRunResult(
            overall=all_clear and meets_threshold,
            score=VACUOUS_SCORE if score is None else score,
            checks=tuple(results),
            summary=summarize(results),
        )
        self._logger.info(
            "gate_run_completed",
            plan_id=plan.id,
            overall=run_result.overall,
            score=run_result.score,
            threshold=config.overall_score,
            **run_result.summary.to_dict(),
        )
        return run_result

    async def _run_entry(self, entry: GateCheckConfig, context: CheckContext) -> GateResult:
        if not entry.enabled:
            self._logger.info("gate_check_skipped", check=entry.name)
            return GateResult(
                check=entry.name,
                passed=True,
                message="Check disabled",
                skipped=True,
            )

        check = self._checks.get(entry.name)
        if check is None:
            self._logger.warning("gate_check_unknown", check=entry.name)
            return failure_result(
                entry.name,
                f"Check '{entry.name}' not found",
                error="Unknown check",
            )

        try:
            result = await check.run(context)
            if not isinstance(result, GateResult):
                raise TypeError(f"check returned {type(result).__name__}, expected GateResult")
        except Exception as exc:  # noqa: BLE001
            self._logger.error("gate_check_faulted", check=entry.name, error=str(exc))
            return failure_result(
                entry.name,
                f"Check '{entry.name}' failed with error",
                error=str(exc),
            )

        self._logger.info(
            "gate_check_completed",
            check=entry.name,
            passed=result.passed,
            score=result.score,
        )
        return result
