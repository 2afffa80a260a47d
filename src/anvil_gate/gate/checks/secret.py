"""
Secret check — gate stage.

Functional requirements:
- Scans the plan's file-change targets line by line against an ordered pattern list.
- Streams the file from the workspace when it exists, else scans the change's inline ``content``.
- Lines are split on ``\\n`` only, so reported line numbers match the file on disk.
- Records file (workspace-relative), line, pattern name, matched text and the stripped line.
- Passes only with zero findings; score is ``max(0, 100 - 10 * findings)``.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, Final

import structlog

from anvil_gate.domain.plan import ChangeType
from anvil_gate.gate.checks.base import (
    Check,
    CheckContext,
    GateResult,
    failure_result,
    file_changes,
    relative_posix,
    resolve_workspace_path,
)

SECRET_CHECK_NAME: Final[str] = "secret"
SECRET_CHECK_DESCRIPTION: Final[str] = "Secret scanning"

FINDING_PENALTY: Final[int] = 10


@dataclass(frozen=True, slots=True)
class SecretPattern:
    name: str
    regex: re.Pattern[str]


SECRET_PATTERNS: Final[tuple[SecretPattern, ...]] = (
    SecretPattern(
        name="API Key",
        regex=re.compile(r"(?i)(?:api[_-]?key|apikey)\s*[:=]\s*['\"]?[a-zA-Z0-9_\-]{20,}['\"]?"),
    ),
    SecretPattern(
        name="JWT Token",
        regex=re.compile(r"eyJ[a-zA-Z0-9_-]*\.eyJ[a-zA-Z0-9_-]*\.[a-zA-Z0-9_-]*"),
    ),
    SecretPattern(name="AWS Key", regex=re.compile(r"AKIA[0-9A-Z]{16}")),
    SecretPattern(
        name="Private Key",
        regex=re.compile(r"-----BEGIN\s+(?:RSA\s+)?PRIVATE\s+KEY-----"),
    ),
    SecretPattern(
        name="Database URL",
        regex=re.compile(r"(?:postgres|mysql|mongodb)://[^:\s]+:[^@\s]+@"),
    ),
    SecretPattern(
        name="Generic Secret",
        regex=re.compile(r"(?i)(?:secret|password|passwd|pwd)\s*[:=]\s*['\"]?[^\s'\"]{8,}['\"]?"),
    ),
    SecretPattern(
        name="Credit Card",
        regex=re.compile(r"\b\d{4}[-\s]?\d{4}[-\s]?\d{4}[-\s]?\d{4}\b"),
    ),
)

_INLINE_CONTENT_TYPES: Final[frozenset[ChangeType]] = frozenset(
    {ChangeType.FILE_CREATE, ChangeType.FILE_UPDATE}
)

__all__ = [
    "SECRET_CHECK_DESCRIPTION",
    "SECRET_CHECK_NAME",
    "SECRET_PATTERNS",
    "SecretPattern",
    "run_secret_scan",
    "scan_lines",
    "scan_text",
    "secret_check",
]


def secret_check(*, logger: Any | None = None) -> Check:
    async def run(context: CheckContext) -> GateResult:
        return await run_secret_scan(context, logger=logger)

    return Check(name=SECRET_CHECK_NAME, description=SECRET_CHECK_DESCRIPTION, run=run)


async def run_secret_scan(context: CheckContext, *, logger: Any | None = None) -> GateResult:
    log = logger if logger is not None else structlog.get_logger(__name__)
    try:
        return _run_secret_scan(context, log)
    except Exception as exc:  # noqa: BLE001
        log.debug("secret_check_faulted", error=str(exc))
        return failure_result(SECRET_CHECK_NAME, "Secret scan failed", error=str(exc))


def scan_text(
    text: str,
    path: str,
    patterns: tuple[SecretPattern, ...] = SECRET_PATTERNS,
) -> list[dict[str, Any]]:
    """Scan in-memory ``text``; lines are delimited by ``\\n`` only."""

    return scan_lines(text.split("\n"), path, patterns)


def scan_lines(
    lines: Iterable[str],
    path: str,
    patterns: tuple[SecretPattern, ...] = SECRET_PATTERNS,
) -> list[dict[str, Any]]:
    """Return one finding per (line, pattern) match, first match on the line only."""

    findings: list[dict[str, Any]] = []
    for line_no, raw in enumerate(lines, start=1):
        line = raw.rstrip("\n")
        for pattern in patterns:
            match = pattern.regex.search(line)
            if match is None:
                continue
            findings.append(
                {
                    "file": path,
                    "line": line_no,
                    "type": pattern.name,
                    "match": match.group(0),
                    "context": line.strip(),
                }
            )
    return findings


def _run_secret_scan(context: CheckContext, log: Any) -> GateResult:
    findings: list[dict[str, Any]] = []
    scanned: list[str] = []
    seen: set[str] = set()
    for change in file_changes(context):
        resolved = resolve_workspace_path(context.workspace_root, change.path)
        if resolved is None:
            log.debug("secret_scan_path_outside_workspace", path=change.path)
            continue
        path = relative_posix(context.workspace_root, resolved)
        if path in seen:
            continue

        if resolved.is_file():
            # newline="\n" keeps form feeds and lone "\r" inside their line
            with resolved.open(encoding="utf-8", errors="replace", newline="\n") as handle:
                findings.extend(scan_lines(handle, path))
        elif change.type in _INLINE_CONTENT_TYPES and change.content is not None:
            findings.extend(scan_text(change.content, path))
        else:
            continue
        seen.add(path)
        scanned.append(path)

    count = len(findings)
    passed = count == 0
    return GateResult(
        check=SECRET_CHECK_NAME,
        passed=passed,
        message="No secrets detected" if passed else f"Found {count} potential secret(s)",
        score=100 if passed else max(0, 100 - count * FINDING_PENALTY),
        details={"findings": findings, "scanned_files": scanned},
    )
