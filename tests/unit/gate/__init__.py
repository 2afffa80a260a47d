"""Shared deterministic builders and fakes for gate tests."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from anvil_gate.domain.plan import create_plan, seal_plan
from anvil_gate.gate.checks.base import (
    CheckContext,
    CommandExecutor,
    CommandResult,
    CommandSpec,
)
from anvil_gate.gate.config import GateConfig, default_gate_config
from anvil_gate.validation.validator import PlanValidator, ValidatedPlan

FIXED_TIMESTAMP = "2026-01-15T09:30:00.000Z"
FIXED_PLAN_ID = "aps-0a1b2c3d"


def make_plan(
    changes: Sequence[Mapping[str, object]] = (),
    *,
    intent: str = "Add a health endpoint to the service",
) -> ValidatedPlan:
    raw = create_plan(
        intent,
        changes=changes,
        plan_id=FIXED_PLAN_ID,
        provenance={"timestamp": FIXED_TIMESTAMP, "source": "cli", "version": "1.0.0"},
    )
    return PlanValidator().assert_valid(seal_plan(raw), validate_hash=True)


def file_create(path: str, content: str | None = None) -> dict[str, object]:
    change: dict[str, object] = {
        "type": "file_create",
        "path": path,
        "description": f"Create {path}",
    }
    if content is not None:
        change["content"] = content
    return change


def make_context(
    plan: ValidatedPlan,
    workspace_root: Path,
    *,
    check_config: Mapping[str, Any] | None = None,
    global_config: GateConfig | None = None,
    executor: CommandExecutor | None = None,
) -> CheckContext:
    return CheckContext(
        plan=plan,
        workspace_root=workspace_root,
        global_config=global_config if global_config is not None else default_gate_config(),
        check_config=dict(check_config or {}),
        command_executor=executor,
    )


@dataclass(frozen=True, slots=True)
class FakeOutcome:
    exit_code: int | None = 0
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 5
    timed_out: bool = False
    error: str | None = None


class FakeExecutor(CommandExecutor):
    """Returns one canned outcome for every command and records the calls."""

    def __init__(self, outcome: FakeOutcome | Exception | None = None) -> None:
        self.outcome = outcome if outcome is not None else FakeOutcome()
        self.calls: list[CommandSpec] = []

    async def run(self, spec: CommandSpec) -> CommandResult:
        self.calls.append(spec)
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return CommandResult(
            argv=tuple(spec.argv),
            exit_code=self.outcome.exit_code,
            stdout=self.outcome.stdout,
            stderr=self.outcome.stderr,
            duration_ms=self.outcome.duration_ms,
            timed_out=self.outcome.timed_out,
            error=self.outcome.error,
        )


@dataclass
class RecordingLogger:
    events: list[tuple[str, str, dict[str, object]]] = field(default_factory=list)

    def debug(self, event: str, **kwargs: object) -> None:
        self.events.append(("debug", event, dict(kwargs)))

    def info(self, event: str, **kwargs: object) -> None:
        self.events.append(("info", event, dict(kwargs)))

    def warning(self, event: str, **kwargs: object) -> None:
        self.events.append(("warning", event, dict(kwargs)))

    def error(self, event: str, **kwargs: object) -> None:
        self.events.append(("error", event, dict(kwargs)))

    def names(self, level: str | None = None) -> list[str]:
        return [name for lvl, name, _ in self.events if level is None or lvl == level]
