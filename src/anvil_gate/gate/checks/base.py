"""
anvil-gate — check contract

File: src/anvil_gate/gate/checks/base.py

Purpose
- Defines what a quality check is: a name, a description and an async ``run(context)``.
- Defines the per-check result envelope and the command execution seam used by tool-backed checks.

Functional requirements
- A check is a plain value (``Check``), not a subclass; registries map names to these values.
- Every check converts its own internal faults into a failing ``GateResult``.
- Subprocess execution is pluggable (``CommandExecutor``) so tests never spawn real tools.

Non-functional requirements
- Results are JSON-safe and omit absent optional fields when exported.
"""

from __future__ import annotations

import asyncio
import math
import os
import time
from collections.abc import Awaitable, Callable, Iterable, Mapping, Sequence
from contextlib import suppress
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, NoReturn, Protocol, runtime_checkable

from anvil_gate.domain.plan import Change

if TYPE_CHECKING:
    from anvil_gate.gate.config import GateConfig
    from anvil_gate.validation.validator import ValidatedPlan

_MAX_TEXT_LENGTH = 8192
_MAX_ENV_ENTRIES = 256


@dataclass(frozen=True, slots=True)
class GateResult:
    """Outcome of one check within a gate run."""

    check: str
    passed: bool
    message: str
    score: float | None = None
    details: dict[str, Any] | None = None
    error: str | None = None
    skipped: bool | None = None

    def __post_init__(self) -> None:
        if self.score is not None:
            if isinstance(self.score, bool) or not isinstance(self.score, (int, float)):
                _fail("GateResult.score", f"expected number, got {type(self.score).__name__}")
            if not math.isfinite(self.score) or not 0 <= self.score <= 100:
                _fail("GateResult.score", f"must be within 0..100, got {self.score!r}")

    @property
    def is_skipped(self) -> bool:
        return self.skipped is True

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "check": self.check,
            "passed": self.passed,
            "message": self.message,
        }
        if self.score is not None:
            out["score"] = self.score
        if self.details is not None:
            out["details"] = self.details
        if self.error is not None:
            out["error"] = self.error
        if self.skipped is not None:
            out["skipped"] = self.skipped
        return out


@dataclass(slots=True)
class CommandSpec:
    """Portable command invocation contract used by tool-backed checks."""

    argv: tuple[str, ...]
    cwd: str | None = None
    env: Mapping[str, str] = field(default_factory=dict)
    timeout_seconds: float | None = None
    allowed_exit_codes: tuple[int, ...] = (0,)
    inherit_env: bool = True

    def __post_init__(self) -> None:
        if not isinstance(self.argv, Sequence) or isinstance(self.argv, (str, bytes)):
            _fail("CommandSpec.argv", f"expected sequence, got {type(self.argv).__name__}")
        self.argv = tuple(
            _as_str(item, f"CommandSpec.argv[{index}]") for index, item in enumerate(self.argv)
        )
        if not self.argv:
            _fail("CommandSpec.argv", "must not be empty")
        if self.cwd is not None:
            self.cwd = _as_str(self.cwd, "CommandSpec.cwd")
        if len(self.env) > _MAX_ENV_ENTRIES:
            _fail("CommandSpec.env", f"contains too many entries (>{_MAX_ENV_ENTRIES})")
        self.env = {
            _as_str(key, "CommandSpec.env.<key>"): _as_str(value, f"CommandSpec.env.{key}")
            for key, value in sorted(self.env.items())
        }
        if self.timeout_seconds is not None:
            self.timeout_seconds = _as_positive_float(
                self.timeout_seconds, "CommandSpec.timeout_seconds"
            )
        if not self.allowed_exit_codes:
            _fail("CommandSpec.allowed_exit_codes", "must not be empty")
        self.allowed_exit_codes = tuple(sorted(set(self.allowed_exit_codes)))

    def build_env(self) -> dict[str, str] | None:
        if self.inherit_env:
            env = dict(os.environ)
            env.update(self.env)
            return env
        return dict(self.env)


@dataclass(slots=True)
class CommandResult:
    """Command execution outcome."""

    argv: tuple[str, ...]
    exit_code: int | None
    stdout: str
    stderr: str
    duration_ms: int
    timed_out: bool = False
    error: str | None = None

    def __post_init__(self) -> None:
        self.argv = tuple(self.argv)
        if self.timed_out and self.exit_code is not None:
            _fail("CommandResult.exit_code", "must be None when timed_out is true")

    def is_success(self, spec: CommandSpec | None = None) -> bool:
        if self.timed_out or self.error is not None or self.exit_code is None:
            return False
        if spec is None:
            return self.exit_code == 0
        return self.exit_code in spec.allowed_exit_codes


@runtime_checkable
class CommandExecutor(Protocol):
    """Pluggable async command execution interface for checks."""

    async def run(self, spec: CommandSpec) -> CommandResult: ...


class LocalSubprocessExecutor(CommandExecutor):
    """Async local subprocess executor with timeout and output truncation."""

    def __init__(
        self,
        *,
        default_timeout_seconds: float | None = None,
        max_output_chars: int | None = 200_000,
    ) -> None:
        self._default_timeout_seconds = (
            _as_positive_float(default_timeout_seconds, "default_timeout_seconds")
            if default_timeout_seconds is not None
            else None
        )
        self._max_output_chars = max_output_chars

    async def run(self, spec: CommandSpec) -> CommandResult:
        started_ns = time.monotonic_ns()
        timeout = (
            spec.timeout_seconds
            if spec.timeout_seconds is not None
            else self._default_timeout_seconds
        )

        try:
            process = await asyncio.create_subprocess_exec(
                *spec.argv,
                cwd=spec.cwd,
                env=spec.build_env(),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            return CommandResult(
                argv=spec.argv,
                exit_code=None,
                stdout="",
                stderr="",
                duration_ms=_elapsed_ms(started_ns),
                error=str(exc),
            )

        try:
            stdout_bytes, stderr_bytes = await _communicate_with_timeout(
                process=process,
                timeout_seconds=timeout,
            )
            timed_out = False
            error_text: str | None = None
            exit_code = process.returncode
        except _CommandTimeoutError as exc:
            stdout_bytes = exc.stdout
            stderr_bytes = exc.stderr
            timed_out = True
            error_text = f"command timed out after {timeout or 0.0:.3f}s"
            exit_code = None

        return CommandResult(
            argv=spec.argv,
            exit_code=exit_code,
            stdout=_truncate_text(_normalize_output_text(stdout_bytes), self._max_output_chars),
            stderr=_truncate_text(_normalize_output_text(stderr_bytes), self._max_output_chars),
            duration_ms=_elapsed_ms(started_ns),
            timed_out=timed_out,
            error=error_text,
        )


@dataclass(frozen=True, slots=True)
class CheckContext:
    """Everything a check may look at while it runs."""

    plan: ValidatedPlan
    workspace_root: Path
    global_config: GateConfig
    check_config: Mapping[str, Any] = field(default_factory=dict)
    command_executor: CommandExecutor | None = None

    def require_executor(self) -> CommandExecutor:
        if self.command_executor is None:
            return LocalSubprocessExecutor()
        return self.command_executor


CheckRun = Callable[[CheckContext], Awaitable[GateResult]]


@dataclass(frozen=True, slots=True)
class Check:
    """A named quality check; ``run`` must not raise."""

    name: str
    description: str
    run: CheckRun


def success_result(
    check: str,
    message: str,
    *,
    score: float | None = None,
    details: dict[str, Any] | None = None,
) -> GateResult:
    return GateResult(check=check, passed=True, message=message, score=score, details=details)


def failure_result(
    check: str,
    message: str,
    *,
    error: str | None = None,
    score: float | None = None,
    details: dict[str, Any] | None = None,
) -> GateResult:
    return GateResult(
        check=check,
        passed=False,
        message=message,
        score=score,
        details=details,
        error=error,
    )


def file_changes(
    context: CheckContext,
    *,
    extensions: Iterable[str] | None = None,
) -> tuple[Change, ...]:
    """Return the plan's create/update/delete changes, optionally filtered by suffix."""

    allowed = {item.lower() for item in extensions} if extensions is not None else None
    selected: list[Change] = []
    for change in context.plan.plan.file_changes():
        if allowed is not None and Path(change.path).suffix.lower() not in allowed:
            continue
        selected.append(change)
    return tuple(selected)


def resolve_workspace_path(workspace_root: Path, relative: str) -> Path | None:
    """Resolve ``relative`` under ``workspace_root``; ``None`` when it escapes the root."""

    root = workspace_root.resolve()
    candidate = (root / relative).resolve()
    if candidate != root and root not in candidate.parents:
        return None
    return candidate


def relative_posix(workspace_root: Path, path: Path) -> str:
    try:
        return path.resolve().relative_to(workspace_root.resolve()).as_posix()
    except ValueError:
        return path.as_posix()


def option_number(config: Mapping[str, Any], key: str, default: float) -> float:
    value = config.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if not math.isfinite(value):
        return default
    return value


def option_str(config: Mapping[str, Any], key: str, default: str) -> str:
    value = config.get(key)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def option_str_tuple(
    config: Mapping[str, Any],
    key: str,
    default: tuple[str, ...],
) -> tuple[str, ...]:
    value = config.get(key)
    if not isinstance(value, Sequence) or isinstance(value, (str, bytes)):
        return default
    items = tuple(item.strip() for item in value if isinstance(item, str) and item.strip())
    return items if items else default


def option_mapping(config: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = config.get(key)
    if isinstance(value, Mapping):
        return value
    return {}


@dataclass(slots=True)
class _CommandTimeoutError(Exception):
    stdout: bytes
    stderr: bytes


async def _communicate_with_timeout(
    *,
    process: asyncio.subprocess.Process,
    timeout_seconds: float | None,
) -> tuple[bytes, bytes]:
    try:
        if timeout_seconds is None:
            return await process.communicate()
        return await asyncio.wait_for(process.communicate(), timeout=timeout_seconds)
    except TimeoutError as exc:
        with suppress(ProcessLookupError):
            process.kill()
        stdout_bytes, stderr_bytes = await process.communicate()
        raise _CommandTimeoutError(stdout=stdout_bytes, stderr=stderr_bytes) from exc
    except asyncio.CancelledError:
        with suppress(ProcessLookupError):
            process.kill()
        await process.communicate()
        raise


def _elapsed_ms(started_ns: int) -> int:
    delta_ns = time.monotonic_ns() - started_ns
    if delta_ns < 0:
        return 0
    return delta_ns // 1_000_000


def _normalize_output_text(raw: bytes) -> str:
    text = raw.decode("utf-8", errors="replace")
    return text.replace("\r\n", "\n").replace("\r", "\n")


def _truncate_text(text: str, max_chars: int | None) -> str:
    if max_chars is None or len(text) <= max_chars:
        return text
    omitted = len(text) - max_chars
    return f"{text[:max_chars]}\n...[truncated {omitted} chars]"


def _as_str(value: object, path: str) -> str:
    if not isinstance(value, str):
        _fail(path, f"expected string, got {type(value).__name__}")
    if not value.strip():
        _fail(path, "must not be empty")
    if len(value) > _MAX_TEXT_LENGTH:
        _fail(path, f"must be <= {_MAX_TEXT_LENGTH} characters")
    return value


def _as_positive_float(value: object, path: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        _fail(path, f"expected number, got {type(value).__name__}")
    parsed = float(value)
    if not math.isfinite(parsed) or parsed <= 0.0:
        _fail(path, "must be a finite number > 0")
    return parsed


def _fail(path: str, message: str) -> NoReturn:
    raise ValueError(f"{path}: {message}")


__all__ = [
    "Check",
    "CheckContext",
    "CheckRun",
    "CommandExecutor",
    "CommandResult",
    "CommandSpec",
    "GateResult",
    "LocalSubprocessExecutor",
    "failure_result",
    "file_changes",
    "option_mapping",
    "option_number",
    "option_str",
    "option_str_tuple",
    "relative_posix",
    "resolve_workspace_path",
    "success_result",
]
