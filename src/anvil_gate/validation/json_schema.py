"""Draft-07 JSON Schema projection of the plan schema for non-Python tooling."""

from __future__ import annotations

import json
import os
from enum import StrEnum
from typing import Any

from anvil_gate.constants import (
    HASH_HEX_LENGTH,
    INTENT_MAX_LENGTH,
    INTENT_MIN_LENGTH,
    JSON_SCHEMA_ID,
    SCHEMA_VERSION,
)
from anvil_gate.domain.ids import PLAN_ID_PATTERN
from anvil_gate.domain.plan import (
    ChangeType,
    EvidenceStatus,
    ExecutionOperation,
    ExecutionStatus,
    OverallStatus,
    ProvenanceSource,
)
from anvil_gate.utils.fs import atomic_write

JSONSchema = dict[str, Any]

DRAFT_07: str = "http://json-schema.org/draft-07/schema#"
SCHEMA_TITLE: str = "Anvil Plan Specification (APS)"
SCHEMA_DESCRIPTION: str = (
    "Schema for Anvil Plan Specification - a deterministic plan format for development automation"
)

__all__ = [
    "DRAFT_07",
    "SCHEMA_DESCRIPTION",
    "SCHEMA_TITLE",
    "generate_json_schema",
    "get_json_schema_string",
    "write_json_schema",
]


def generate_json_schema() -> JSONSchema:
    """Return the plan schema as a standalone draft-07 document with all definitions inlined."""

    properties: JSONSchema = {
        "id": _string("Unique plan identifier", pattern=PLAN_ID_PATTERN),
        "hash": _string(
            "SHA-256 hash of the plan content",
            pattern=f"^[a-f0-9]{{{HASH_HEX_LENGTH}}}$",
        ),
        "intent": _string(
            "Human-readable description of what this plan intends to achieve",
            minLength=INTENT_MIN_LENGTH,
            maxLength=INTENT_MAX_LENGTH,
        ),
        "schema_version": {
            "type": "string",
            "const": SCHEMA_VERSION,
            "description": "Version of the APS schema",
        },
        "proposed_changes": _array(_change_schema(), "List of changes this plan will make"),
        "provenance": _provenance_schema(),
        "validations": _validations_schema(),
        "evidence": _array(
            _evidence_schema(),
            "Evidence from gate executions (immutable, append-only)",
        ),
        "approval": _approval_schema(),
        "executions": _array(_execution_schema(), "History of plan executions"),
        "tags": _array({"type": "string"}, "Tags for categorization and filtering"),
        "metadata": _record("Additional plan-specific metadata"),
    }
    return {
        "$schema": DRAFT_07,
        "$id": JSON_SCHEMA_ID,
        "title": SCHEMA_TITLE,
        "description": SCHEMA_DESCRIPTION,
        "version": SCHEMA_VERSION,
        "type": "object",
        "properties": properties,
        "required": [
            "id",
            "hash",
            "intent",
            "schema_version",
            "proposed_changes",
            "provenance",
            "validations",
        ],
        "additionalProperties": False,
    }


def get_json_schema_string(*, pretty: bool = True) -> str:
    schema = generate_json_schema()
    if pretty:
        return json.dumps(schema, indent=2, ensure_ascii=False) + "\n"
    return json.dumps(schema, separators=(",", ":"), ensure_ascii=False)


def write_json_schema(path: str | os.PathLike[str], *, pretty: bool = True) -> None:
    """Write the exported schema to ``path``, creating parent directories."""

    atomic_write(path, get_json_schema_string(pretty=pretty))


def _change_schema() -> JSONSchema:
    return _object(
        {
            "type": _enum(ChangeType, "Kind of change"),
            "path": _string("File or resource path affected by the change"),
            "description": _string("Human-readable description of the change"),
            "content": _string("New content for file changes"),
            "diff": _string("Unified diff for updates"),
            "metadata": _record("Additional change-specific metadata"),
        },
        required=("type", "path", "description"),
    )


def _provenance_schema() -> JSONSchema:
    return _object(
        {
            "timestamp": _datetime("ISO 8601 timestamp of plan creation"),
            "author": _string("User or system that created the plan"),
            "source": _enum(ProvenanceSource, "Origin of the plan"),
            "version": _string("Version of the tool that created the plan"),
            "repository": _string("Repository URL or identifier"),
            "branch": _string("Git branch name"),
            "commit": _string("Git commit hash"),
        },
        required=("timestamp", "source", "version"),
        description="Information about plan creation",
    )


def _validations_schema() -> JSONSchema:
    required_checks = _array({"type": "string"}, "List of required validation checks")
    required_checks["default"] = []
    skip_checks = _array({"type": "string"}, "Checks to skip for this plan")
    skip_checks["default"] = []
    return _object(
        {
            "required_checks": required_checks,
            "policy_version": _string("Version of the policy bundle to use"),
            "skip_checks": skip_checks,
            "custom_rules": _record("Custom validation rules"),
        },
        required=(),
        description="Validation requirements for this plan",
    )


def _evidence_schema() -> JSONSchema:
    entry = _object(
        {
            "check": _string("Name of the check performed"),
            "status": _enum(EvidenceStatus, "Result status"),
            "timestamp": _datetime("When the check was performed"),
            "details": _record("Detailed check results"),
            "message": _string("Human-readable result message"),
        },
        required=("check", "status", "timestamp"),
    )
    return _object(
        {
            "gate_version": _string("Version of the gate that ran"),
            "timestamp": _datetime("When the gate was executed"),
            "overall_status": _enum(OverallStatus, "Overall gate result"),
            "checks": _array(entry, "Individual check results"),
            "summary": _string("Summary of gate execution"),
            "artifacts": {
                "type": "object",
                "additionalProperties": {"type": "string"},
                "description": "Links or references to artifacts",
            },
        },
        required=("gate_version", "timestamp", "overall_status", "checks"),
    )


def _approval_schema() -> JSONSchema:
    return _object(
        {
            "approved": {"type": "boolean", "description": "Whether the plan is approved"},
            "approved_by": _string("User who approved the plan"),
            "approved_at": _datetime("When the plan was approved"),
            "approval_notes": _string("Notes or comments on approval"),
        },
        required=("approved",),
        description="Approval information",
    )


def _execution_schema() -> JSONSchema:
    return _object(
        {
            "operation": _enum(ExecutionOperation, "Type of operation"),
            "status": _enum(ExecutionStatus, "Execution status"),
            "timestamp": _datetime("When the operation was performed"),
            "executed_by": _string("User who executed the operation"),
            "changes_applied": _array({"type": "string"}, "List of successfully applied changes"),
            "changes_failed": _array({"type": "string"}, "List of failed changes"),
            "rollback_point": _string("Snapshot ID for rollback"),
            "logs": _array({"type": "string"}, "Execution logs"),
        },
        required=("operation", "status", "timestamp"),
    )


def _object(
    properties: JSONSchema,
    *,
    required: tuple[str, ...],
    description: str | None = None,
) -> JSONSchema:
    # Nested objects drop unknown keys during validation, so they stay open here.
    schema: JSONSchema = {"type": "object", "properties": properties}
    if required:
        schema["required"] = list(required)
    if description is not None:
        schema["description"] = description
    return schema


def _string(description: str, **constraints: Any) -> JSONSchema:
    return {"type": "string", **constraints, "description": description}


def _datetime(description: str) -> JSONSchema:
    return {"type": "string", "format": "date-time", "description": description}


def _enum(enum_cls: type[StrEnum], description: str) -> JSONSchema:
    return {
        "type": "string",
        "enum": [item.value for item in enum_cls],
        "description": description,
    }


def _array(items: JSONSchema, description: str) -> JSONSchema:
    return {"type": "array", "items": items, "description": description}


def _record(description: str) -> JSONSchema:
    return {"type": "object", "additionalProperties": {}, "description": description}
