"""
anvil-gate — plan domain model

File: src/anvil_gate/domain/plan.py

Purpose
- Typed, immutable representation of an Anvil Plan Specification (APS) document.
- Builders for fresh plans with the defaults producers are expected to use.

Functional requirements
- ``to_dict`` omits optional fields that are absent; absent and ``None`` are never conflated.
- Open ``metadata``/``details``/``custom_rules`` maps are kept as plain dicts of arbitrary values.
- Timestamps are carried verbatim as ISO-8601 strings so re-serialization never changes a hash.

Non-functional requirements
- No IO; the validation package is the only sanctioned path from raw data to these types.
"""

from __future__ import annotations

import copy
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Final

from anvil_gate.constants import DEFAULT_REQUIRED_CHECKS, SCHEMA_VERSION
from anvil_gate.domain.ids import generate_plan_id
from anvil_gate.utils.canonical import format_timestamp
from anvil_gate.utils.hashing import generate_hash

JSONObject = dict[str, Any]


class ChangeType(StrEnum):
    FILE_CREATE = "file_create"
    FILE_UPDATE = "file_update"
    FILE_DELETE = "file_delete"
    CONFIG_UPDATE = "config_update"
    DEPENDENCY_ADD = "dependency_add"
    DEPENDENCY_REMOVE = "dependency_remove"
    DEPENDENCY_UPDATE = "dependency_update"
    SCRIPT_EXECUTE = "script_execute"


FILE_CHANGE_TYPES: Final[frozenset[ChangeType]] = frozenset(
    {ChangeType.FILE_CREATE, ChangeType.FILE_UPDATE, ChangeType.FILE_DELETE}
)


class ProvenanceSource(StrEnum):
    CLI = "cli"
    API = "api"
    AUTOMATION = "automation"
    MANUAL = "manual"


class EvidenceStatus(StrEnum):
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"
    WARNING = "warning"


class OverallStatus(StrEnum):
    PASSED = "passed"
    FAILED = "failed"
    PARTIAL = "partial"


class ExecutionOperation(StrEnum):
    APPLY = "apply"
    ROLLBACK = "rollback"
    DRY_RUN = "dry-run"


class ExecutionStatus(StrEnum):
    SUCCESS = "success"
    FAILED = "failed"
    PARTIAL = "partial"


@dataclass(frozen=True, slots=True)
class Change:
    """One proposed change; list position is the step order."""

    type: ChangeType
    path: str
    description: str
    content: str | None = None
    diff: str | None = None
    metadata: JSONObject | None = None

    @property
    def is_file_change(self) -> bool:
        return self.type in FILE_CHANGE_TYPES

    def to_dict(self) -> JSONObject:
        out: JSONObject = {
            "type": self.type.value,
            "path": self.path,
            "description": self.description,
        }
        _put_optional(out, "content", self.content)
        _put_optional(out, "diff", self.diff)
        _put_optional(out, "metadata", _copy_open(self.metadata))
        return out


@dataclass(frozen=True, slots=True)
class Provenance:
    timestamp: str
    source: ProvenanceSource
    version: str
    author: str | None = None
    repository: str | None = None
    branch: str | None = None
    commit: str | None = None

    def to_dict(self) -> JSONObject:
        out: JSONObject = {"timestamp": self.timestamp}
        _put_optional(out, "author", self.author)
        out["source"] = self.source.value
        out["version"] = self.version
        _put_optional(out, "repository", self.repository)
        _put_optional(out, "branch", self.branch)
        _put_optional(out, "commit", self.commit)
        return out


@dataclass(frozen=True, slots=True)
class Validations:
    required_checks: tuple[str, ...] = ()
    skip_checks: tuple[str, ...] = ()
    policy_version: str | None = None
    custom_rules: JSONObject | None = None

    def to_dict(self) -> JSONObject:
        out: JSONObject = {"required_checks": list(self.required_checks)}
        _put_optional(out, "policy_version", self.policy_version)
        out["skip_checks"] = list(self.skip_checks)
        _put_optional(out, "custom_rules", _copy_open(self.custom_rules))
        return out


@dataclass(frozen=True, slots=True)
class EvidenceEntry:
    check: str
    status: EvidenceStatus
    timestamp: str
    details: JSONObject | None = None
    message: str | None = None

    def to_dict(self) -> JSONObject:
        out: JSONObject = {
            "check": self.check,
            "status": self.status.value,
            "timestamp": self.timestamp,
        }
        _put_optional(out, "details", _copy_open(self.details))
        _put_optional(out, "message", self.message)
        return out


@dataclass(frozen=True, slots=True)
class Evidence:
    """Immutable record of one gate execution."""

    gate_version: str
    timestamp: str
    overall_status: OverallStatus
    checks: tuple[EvidenceEntry, ...] = ()
    summary: str | None = None
    artifacts: dict[str, str] | None = None

    def to_dict(self) -> JSONObject:
        out: JSONObject = {
            "gate_version": self.gate_version,
            "timestamp": self.timestamp,
            "overall_status": self.overall_status.value,
            "checks": [entry.to_dict() for entry in self.checks],
        }
        _put_optional(out, "summary", self.summary)
        if self.artifacts is not None:
            out["artifacts"] = dict(self.artifacts)
        return out


@dataclass(frozen=True, slots=True)
class Approval:
    approved: bool
    approved_by: str | None = None
    approved_at: str | None = None
    approval_notes: str | None = None

    def to_dict(self) -> JSONObject:
        out: JSONObject = {"approved": self.approved}
        _put_optional(out, "approved_by", self.approved_by)
        _put_optional(out, "approved_at", self.approved_at)
        _put_optional(out, "approval_notes", self.approval_notes)
        return out


@dataclass(frozen=True, slots=True)
class ExecutionResult:
    operation: ExecutionOperation
    status: ExecutionStatus
    timestamp: str
    executed_by: str | None = None
    changes_applied: tuple[str, ...] | None = None
    changes_failed: tuple[str, ...] | None = None
    rollback_point: str | None = None
    logs: tuple[str, ...] | None = None

    def to_dict(self) -> JSONObject:
        out: JSONObject = {
            "operation": self.operation.value,
            "status": self.status.value,
            "timestamp": self.timestamp,
        }
        _put_optional(out, "executed_by", self.executed_by)
        _put_optional(out, "changes_applied", _list_or_none(self.changes_applied))
        _put_optional(out, "changes_failed", _list_or_none(self.changes_failed))
        _put_optional(out, "rollback_point", self.rollback_point)
        _put_optional(out, "logs", _list_or_none(self.logs))
        return out


@dataclass(frozen=True, slots=True)
class Plan:
    """A structurally valid plan. Hash integrity is checked separately."""

    id: str
    hash: str
    intent: str
    proposed_changes: tuple[Change, ...]
    provenance: Provenance
    validations: Validations
    schema_version: str = SCHEMA_VERSION
    evidence: tuple[Evidence, ...] | None = None
    approval: Approval | None = None
    executions: tuple[ExecutionResult, ...] | None = None
    tags: tuple[str, ...] | None = None
    metadata: JSONObject | None = field(default=None)

    def file_changes(self) -> tuple[Change, ...]:
        """Return create/update/delete file changes in step order."""

        return tuple(change for change in self.proposed_changes if change.is_file_change)

    def to_dict(self, *, include_hash: bool = True) -> JSONObject:
        out: JSONObject = {"id": self.id}
        if include_hash:
            out["hash"] = self.hash
        out["intent"] = self.intent
        out["schema_version"] = self.schema_version
        out["proposed_changes"] = [change.to_dict() for change in self.proposed_changes]
        out["provenance"] = self.provenance.to_dict()
        out["validations"] = self.validations.to_dict()
        if self.evidence is not None:
            out["evidence"] = [item.to_dict() for item in self.evidence]
        if self.approval is not None:
            out["approval"] = self.approval.to_dict()
        if self.executions is not None:
            out["executions"] = [item.to_dict() for item in self.executions]
        _put_optional(out, "tags", _list_or_none(self.tags))
        _put_optional(out, "metadata", _copy_open(self.metadata))
        return out


def utc_timestamp(value: datetime | None = None) -> str:
    """Return ``value`` (default: now) as an ISO-8601 UTC string ending in ``Z``."""

    return format_timestamp(value if value is not None else datetime.now(UTC))


def create_plan(
    intent: str,
    *,
    changes: Iterable[Mapping[str, object] | Change] = (),
    provenance: Mapping[str, object] | Provenance | None = None,
    plan_id: str | None = None,
    required_checks: Iterable[str] = DEFAULT_REQUIRED_CHECKS,
    skip_checks: Iterable[str] = (),
    tags: Iterable[str] | None = None,
    metadata: Mapping[str, object] | None = None,
) -> JSONObject:
    """
    Build an unhashed plan mapping with producer defaults.

    The result has no ``hash`` key; call ``seal_plan`` once the content is final.
    Changes and provenance are not validated here.
    """

    resolved_provenance: JSONObject
    if isinstance(provenance, Provenance):
        resolved_provenance = provenance.to_dict()
    else:
        resolved_provenance = {
            "timestamp": utc_timestamp(),
            "source": ProvenanceSource.CLI.value,
            "version": "0.0.0",
        }
        if provenance is not None:
            resolved_provenance.update(copy.deepcopy(dict(provenance)))

    plan: JSONObject = {
        "schema_version": SCHEMA_VERSION,
        "id": plan_id if plan_id is not None else generate_plan_id(),
        "intent": intent,
        "proposed_changes": [
            change.to_dict() if isinstance(change, Change) else copy.deepcopy(dict(change))
            for change in changes
        ],
        "provenance": resolved_provenance,
        "validations": {
            "required_checks": list(required_checks),
            "skip_checks": list(skip_checks),
        },
    }
    if tags is not None:
        plan["tags"] = list(tags)
    if metadata is not None:
        plan["metadata"] = copy.deepcopy(dict(metadata))
    return plan


def calculate_plan_hash(plan: Mapping[str, object] | Plan) -> str:
    """Return the content hash of ``plan``, ignoring any ``hash`` field it carries."""

    if isinstance(plan, Plan):
        return generate_hash(plan.to_dict(include_hash=False))
    return generate_hash({key: value for key, value in plan.items() if key != "hash"})


def seal_plan(plan: Mapping[str, object]) -> JSONObject:
    """Return a copy of ``plan`` with ``hash`` set to its current content hash."""

    sealed = copy.deepcopy({key: value for key, value in plan.items() if key != "hash"})
    sealed["hash"] = calculate_plan_hash(sealed)
    return sealed


def append_evidence(
    plan: Mapping[str, object],
    evidence: Evidence | Mapping[str, object],
) -> JSONObject:
    """
    Return a copy of ``plan`` with ``evidence`` appended.

    Existing entries are carried over untouched. The stored hash is not
    recomputed: evidence is part of the hashed content, so callers that need
    an intact hash must re-seal.
    """

    updated = copy.deepcopy(dict(plan))
    existing = updated.get("evidence")
    entries = list(existing) if isinstance(existing, list) else []
    if isinstance(evidence, Evidence):
        entries.append(evidence.to_dict())
    else:
        entries.append(copy.deepcopy(dict(evidence)))
    updated["evidence"] = entries
    return updated


def _put_optional(out: JSONObject, key: str, value: object) -> None:
    if value is not None:
        out[key] = value


def _copy_open(value: Mapping[str, Any] | None) -> JSONObject | None:
    if value is None:
        return None
    return copy.deepcopy(dict(value))


def _list_or_none(value: tuple[str, ...] | None) -> list[str] | None:
    if value is None:
        return None
    return list(value)


__all__ = [
    "FILE_CHANGE_TYPES",
    "Approval",
    "Change",
    "ChangeType",
    "Evidence",
    "EvidenceEntry",
    "EvidenceStatus",
    "ExecutionOperation",
    "ExecutionResult",
    "ExecutionStatus",
    "OverallStatus",
    "Plan",
    "Provenance",
    "ProvenanceSource",
    "Validations",
    "append_evidence",
    "calculate_plan_hash",
    "create_plan",
    "seal_plan",
    "utc_timestamp",
]
