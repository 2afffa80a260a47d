"""Conversion of gate run results into append-only plan evidence."""

from __future__ import annotations

import json
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from anvil_gate.constants import GATE_VERSION
from anvil_gate.domain.plan import (
    Evidence,
    EvidenceEntry,
    EvidenceStatus,
    OverallStatus,
    utc_timestamp,
)
from anvil_gate.gate.checks.base import GateResult
from anvil_gate.gate.runner import GateRunResult

__all__ = ["build_evidence", "evidence_status", "overall_status"]


def evidence_status(result: GateResult) -> EvidenceStatus:
    if result.is_skipped:
        return EvidenceStatus.SKIPPED
    if result.passed:
        return EvidenceStatus.PASSED
    return EvidenceStatus.FAILED


def overall_status(run_result: GateRunResult) -> OverallStatus:
    if run_result.overall:
        return OverallStatus.PASSED
    summary = run_result.summary
    if summary.passed > 0 and summary.failed > 0:
        return OverallStatus.PARTIAL
    return OverallStatus.FAILED


def build_evidence(
    run_result: GateRunResult,
    *,
    gate_version: str = GATE_VERSION,
    timestamp: datetime | str | None = None,
    artifacts: Mapping[str, str] | None = None,
) -> Evidence:
    """
    Record ``run_result`` as one ``Evidence`` block.

    Every check entry shares the run timestamp. Scores and errors are kept
    under the entry's ``details`` next to the check's own details.
    """

    stamp = timestamp if isinstance(timestamp, str) else utc_timestamp(timestamp)
    entries = tuple(
        EvidenceEntry(
            check=result.check,
            status=evidence_status(result),
            timestamp=stamp,
            details=_entry_details(result),
            message=result.message,
        )
        for result in run_result.checks
    )
    return Evidence(
        gate_version=gate_version,
        timestamp=stamp,
        overall_status=overall_status(run_result),
        checks=entries,
        summary=json.dumps(run_result.summary.to_dict(), sort_keys=True, separators=(",", ":")),
        artifacts=dict(artifacts) if artifacts is not None else None,
    )


def _entry_details(result: GateResult) -> dict[str, Any] | None:
    details: dict[str, Any] = {}
    if result.score is not None:
        details["score"] = result.score
    if result.error is not None:
        details["error"] = result.error
    if result.details is not None:
        details["details"] = result.details
    return details or None
