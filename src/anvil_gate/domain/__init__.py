"""Domain types for plans: identifiers, changes, provenance, evidence and approvals."""

from anvil_gate.domain.ids import generate_plan_id, is_valid_plan_id, validate_plan_id
from anvil_gate.domain.plan import (
    FILE_CHANGE_TYPES,
    Approval,
    Change,
    ChangeType,
    Evidence,
    EvidenceEntry,
    EvidenceStatus,
    ExecutionOperation,
    ExecutionResult,
    ExecutionStatus,
    OverallStatus,
    Plan,
    Provenance,
    ProvenanceSource,
    Validations,
    append_evidence,
    calculate_plan_hash,
    create_plan,
    seal_plan,
    utc_timestamp,
)

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
    "generate_plan_id",
    "is_valid_plan_id",
    "seal_plan",
    "utc_timestamp",
    "validate_plan_id",
]
