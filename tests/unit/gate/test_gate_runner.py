"""Unit tests for sequential gate execution and score aggregation."""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING

import pytest

from anvil_gate.gate.checks.base import Check, CheckContext, GateResult, success_result
from anvil_gate.gate.config import GateCheckConfig, GateConfig
from anvil_gate.gate.runner import GateRunner, aggregate_score, summarize

from . import RecordingLogger, file_create, make_plan

if TYPE_CHECKING:
    from pathlib import Path


def scored_check(name: str, score: float, *, passed: bool = True) -> Check:
    async def run(context: CheckContext) -> GateResult:
        return GateResult(check=name, passed=passed, message=f"{name} done", score=score)

    return Check(name=name, description=f"{name} check", run=run)


def raising_check(name: str) -> Check:
    async def run(context: CheckContext) -> GateResult:
        raise RuntimeError("tool crashed")

    return Check(name=name, description="always raises", run=run)


def gate_config(names: Iterable[str | tuple[str, bool]], *, overall: float = 80) -> GateConfig:
    entries = []
    for item in names:
        name, enabled = item if isinstance(item, tuple) else (item, True)
        entries.append(GateCheckConfig(name=name, enabled=enabled))
    return GateConfig(checks=tuple(entries), thresholds={"overall_score": overall})


@pytest.mark.asyncio
async def test_all_passing_checks_pass_overall(tmp_path: Path) -> None:
    runner = GateRunner([scored_check("a", 100), scored_check("b", 100)])

    result = await runner.run_gate(make_plan(), gate_config(["a", "b"]), tmp_path)

    assert result.overall is True
    assert result.score == 100
    assert [item.check for item in result.checks] == ["a", "b"]
    assert result.summary.to_dict() == {"total": 2, "passed": 2, "failed": 0, "skipped": 0}


@pytest.mark.asyncio
async def test_results_follow_config_order_not_registration_order(tmp_path: Path) -> None:
    runner = GateRunner([scored_check("a", 90), scored_check("b", 70), scored_check("c", 80)])

    result = await runner.run_gate(make_plan(), gate_config(["c", "a", "b"]), tmp_path)

    assert [item.check for item in result.checks] == ["c", "a", "b"]
    assert result.score == pytest.approx(80)


@pytest.mark.asyncio
async def test_disabled_checks_are_skipped_and_not_scored(tmp_path: Path) -> None:
    runner = GateRunner([scored_check("a", 90), scored_check("b", 0, passed=False)])

    result = await runner.run_gate(make_plan(), gate_config(["a", ("b", False)]), tmp_path)

    skipped = result.checks[1]
    assert skipped.passed is True
    assert skipped.is_skipped is True
    assert skipped.message == "Check disabled"
    assert skipped.score is None
    assert result.score == 90
    assert result.overall is True
    assert result.summary.to_dict() == {"total": 2, "passed": 1, "failed": 0, "skipped": 1}


@pytest.mark.asyncio
async def test_unknown_check_fails_the_run(tmp_path: Path) -> None:
    logger = RecordingLogger()
    runner = GateRunner([scored_check("a", 100)], logger=logger)

    result = await runner.run_gate(make_plan(), gate_config(["a", "typecheck"]), tmp_path)

    missing = result.checks[1]
    assert missing.passed is False
    assert missing.message == "Check 'typecheck' not found"
    assert missing.error == "Unknown check"
    assert result.overall is False
    assert result.score == 100
    assert "gate_check_unknown" in logger.names("warning")


@pytest.mark.asyncio
async def test_raising_check_becomes_failure_and_run_continues(tmp_path: Path) -> None:
    logger = RecordingLogger()
    runner = GateRunner([raising_check("boom"), scored_check("after", 95)], logger=logger)

    result = await runner.run_gate(make_plan(), gate_config(["boom", "after"]), tmp_path)

    failed, after = result.checks
    assert failed.passed is False
    assert failed.message == "Check 'boom' failed with error"
    assert failed.error == "tool crashed"
    assert after.passed is True
    assert result.overall is False
    assert ("error", "gate_check_faulted", {"check": "boom", "error": "tool crashed"}) in (
        logger.events
    )


@pytest.mark.asyncio
async def test_non_result_return_value_is_a_fault(tmp_path: Path) -> None:
    async def run(context: CheckContext) -> GateResult:
        return {"passed": True}  # type: ignore[return-value]

    runner = GateRunner([Check(name="odd", description="", run=run)])

    result = await runner.run_gate(make_plan(), gate_config(["odd"]), tmp_path)

    assert result.checks[0].passed is False
    assert result.checks[0].error is not None
    assert "expected GateResult" in result.checks[0].error


@pytest.mark.asyncio
async def test_score_below_overall_threshold_fails(tmp_path: Path) -> None:
    runner = GateRunner([scored_check("a", 70), scored_check("b", 80)])

    strict = await runner.run_gate(make_plan(), gate_config(["a", "b"], overall=80), tmp_path)
    lenient = await runner.run_gate(make_plan(), gate_config(["a", "b"], overall=75), tmp_path)

    assert strict.score == 75
    assert strict.overall is False
    assert lenient.overall is True


@pytest.mark.asyncio
async def test_single_perfect_check_meets_threshold(tmp_path: Path) -> None:
    runner = GateRunner([scored_check("only", 100)])

    result = await runner.run_gate(make_plan(), gate_config(["only"], overall=80), tmp_path)

    assert result.overall is True
    assert result.score == 100


@pytest.mark.asyncio
async def test_fully_disabled_gate_scores_vacuously_and_warns(tmp_path: Path) -> None:
    logger = RecordingLogger()
    runner = GateRunner([scored_check("a", 10)], logger=logger)

    result = await runner.run_gate(make_plan(), gate_config([("a", False)]), tmp_path)

    assert result.overall is True
    assert result.score == 100
    assert "gate_run_vacuous_score" in logger.names("warning")


@pytest.mark.asyncio
async def test_checks_receive_their_entry_config_and_workspace(tmp_path: Path) -> None:
    seen: list[CheckContext] = []

    async def run(context: CheckContext) -> GateResult:
        seen.append(context)
        return success_result("recorder", "ok", score=100)

    config = GateConfig(
        checks=(GateCheckConfig(name="recorder", config={"min_score": 42}),),
        thresholds={"overall_score": 80},
    )
    plan = make_plan([file_create("src/app.py", "print('hi')\n")])
    runner = GateRunner([Check(name="recorder", description="", run=run)])

    await runner.run_gate(plan, config, str(tmp_path))

    [context] = seen
    assert context.check_config == {"min_score": 42}
    assert context.global_config is config
    assert context.workspace_root == tmp_path
    assert context.plan is plan


@pytest.mark.asyncio
async def test_run_logs_start_and_completion(tmp_path: Path) -> None:
    logger = RecordingLogger()
    runner = GateRunner([scored_check("a", 100)], logger=logger)

    await runner.run_gate(make_plan(), gate_config(["a"]), tmp_path)

    assert logger.names("info") == [
        "gate_run_started",
        "gate_check_completed",
        "gate_run_completed",
    ]
    completed = logger.events[-1][2]
    assert completed["overall"] is True
    assert completed["passed"] == 1


@pytest.mark.asyncio
async def test_unvalidated_plan_is_rejected(tmp_path: Path) -> None:
    runner = GateRunner([])

    with pytest.raises(TypeError, match="expected ValidatedPlan"):
        raw = {"id": "aps-00000000"}
        await runner.run_gate(raw, gate_config([]), tmp_path)  # type: ignore[arg-type]


def test_registry_operations() -> None:
    runner = GateRunner([scored_check("a", 1)])

    assert runner.available_checks() == ("a",)
    runner.register_check(scored_check("b", 2))
    replacement = scored_check("a", 3)
    runner.register_check(replacement)

    assert runner.available_checks() == ("a", "b")
    assert runner.get_check("a") is replacement
    assert runner.unregister_check("a") is True
    assert runner.unregister_check("a") is False
    assert runner.get_check("a") is None


def test_default_runner_registers_builtin_checks() -> None:
    assert GateRunner().available_checks() == ("lint", "coverage", "secret")


def test_aggregate_and_summary_helpers() -> None:
    results = [
        GateResult(check="a", passed=True, message="", score=50),
        GateResult(check="b", passed=False, message=""),
        GateResult(check="c", passed=True, message="", skipped=True),
    ]

    assert aggregate_score(results) == 50
    assert aggregate_score([]) is None
    assert summarize(results).to_dict() == {"total": 3, "passed": 1, "failed": 1, "skipped": 1}
