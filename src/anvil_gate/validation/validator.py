"""
anvil-gate — plan schema and integrity validation

File: src/anvil_gate/validation/validator.py

Purpose
- Turn untrusted plan data into a ``ValidatedPlan`` or a deterministic list of issues.
- Check stored plan hashes against recomputed content hashes.

Functional requirements
- Structure and hash integrity are validated independently and can be combined.
- Expected invalid input never raises; issues carry dotted paths (``proposed_changes.0.type``).
- Strict mode rejects unknown top-level keys; nested objects drop unknown keys.
- ``ValidatedPlan`` cannot be constructed outside this module.

Non-functional requirements
- No global validator instance; callers construct ``PlanValidator`` and pass it along.
"""

from __future__ import annotations

import copy
import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any, Final, TypeVar

from anvil_gate.constants import INTENT_MAX_LENGTH, INTENT_MIN_LENGTH, SCHEMA_VERSION
from anvil_gate.domain.ids import PLAN_ID_PATTERN, is_valid_plan_id
from anvil_gate.domain.plan import (
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
)
from anvil_gate.utils.hashing import generate_hash, is_valid_hash
from anvil_gate.validation.errors import (
    ROOT_PATH,
    HashValidationError,
    IssueCode,
    SchemaValidationError,
    ValidationIssue,
    hash_mismatch_issue,
)

HashFunction = Callable[[object], str]
TEnum = TypeVar("TEnum", bound=StrEnum)
TItem = TypeVar("TItem")

PLAN_REQUIRED_FIELDS: Final[tuple[str, ...]] = (
    "id",
    "hash",
    "intent",
    "schema_version",
    "proposed_changes",
    "provenance",
    "validations",
)
PLAN_OPTIONAL_FIELDS: Final[tuple[str, ...]] = (
    "evidence",
    "approval",
    "executions",
    "tags",
    "metadata",
)
PLAN_FIELDS: Final[frozenset[str]] = frozenset(PLAN_REQUIRED_FIELDS + PLAN_OPTIONAL_FIELDS)

_DATETIME_RE: Final[re.Pattern[str]] = re.compile(
    r"^(?P<base>\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})(?:\.\d+)?Z$"
)
_CONSTRUCTION_TOKEN: Final[object] = object()


class ValidatedPlan:
    """A plan that passed schema validation. Only this module can create one."""

    __slots__ = ("_plan",)

    def __init__(self, plan: Plan, token: object) -> None:
        if token is not _CONSTRUCTION_TOKEN:
            raise TypeError("ValidatedPlan instances are created by plan validation only")
        self._plan = plan

    @property
    def plan(self) -> Plan:
        return self._plan

    @property
    def id(self) -> str:
        return self._plan.id

    @property
    def hash(self) -> str:
        return self._plan.hash

    def to_dict(self, *, include_hash: bool = True) -> dict[str, Any]:
        return self._plan.to_dict(include_hash=include_hash)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ValidatedPlan):
            return NotImplemented
        return self._plan == other._plan

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"ValidatedPlan(id={self._plan.id!r}, hash={self._plan.hash!r})"


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """Outcome of a validation pass; ``data`` is set only on success."""

    data: ValidatedPlan | None
    errors: tuple[ValidationIssue, ...] = ()

    @property
    def success(self) -> bool:
        return self.data is not None and not self.errors

    @property
    def is_valid(self) -> bool:
        return self.success


class _IssueCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[ValidationIssue] = []

    def add(self, path: str, message: str, code: IssueCode) -> None:
        self._items.append(
            ValidationIssue(path=path if path else ROOT_PATH, message=message, code=code)
        )

    def mark(self) -> int:
        return len(self._items)

    def clean_since(self, mark: int) -> bool:
        return len(self._items) == mark

    def items(self) -> tuple[ValidationIssue, ...]:
        return tuple(self._items)

    @property
    def has_issues(self) -> bool:
        return bool(self._items)


class PlanValidator:
    """Schema and hash validator; construct one per composition root."""

    def __init__(self, *, hash_function: HashFunction | None = None) -> None:
        self._hash_function: HashFunction = (
            hash_function if hash_function is not None else generate_hash
        )

    def validate_schema(self, data: object, *, strict: bool = True) -> ValidationResult:
        """Validate structure only."""

        issues = _IssueCollector()
        plan = _parse_plan(data, issues, strict=strict)
        if plan is None or issues.has_issues:
            return ValidationResult(data=None, errors=issues.items())
        return ValidationResult(data=ValidatedPlan(plan, _CONSTRUCTION_TOKEN))

    def is_schema_valid(self, data: object, *, strict: bool = True) -> bool:
        return self.validate_schema(data, strict=strict).success

    def compute_hash(self, plan: ValidatedPlan) -> str:
        """Recompute the content hash, excluding the stored ``hash`` field."""

        return self._hash_function(plan.to_dict(include_hash=False))

    def validate_hash(self, plan: ValidatedPlan) -> ValidationResult:
        """Validate hash integrity only."""

        computed = self.compute_hash(plan)
        if computed != plan.hash:
            mismatch = hash_mismatch_issue(expected=computed, actual=plan.hash)
            return ValidationResult(data=None, errors=(mismatch,))
        return ValidationResult(data=plan)

    def validate(
        self,
        data: object,
        *,
        validate_hash: bool = True,
        strict: bool = True,
    ) -> ValidationResult:
        """Validate structure, then hash integrity when ``validate_hash`` is set."""

        schema_result = self.validate_schema(data, strict=strict)
        if schema_result.data is None or not validate_hash:
            return schema_result
        return self.validate_hash(schema_result.data)

    def assert_valid(
        self,
        data: object,
        *,
        validate_hash: bool = False,
        strict: bool = True,
    ) -> ValidatedPlan:
        """Return a ``ValidatedPlan`` or raise ``SchemaValidationError``/``HashValidationError``."""

        schema_result = self.validate_schema(data, strict=strict)
        if schema_result.data is None:
            raise SchemaValidationError(schema_result.errors)
        validated = schema_result.data
        if validate_hash:
            computed = self.compute_hash(validated)
            if computed != validated.hash:
                raise HashValidationError(expected_hash=computed, actual_hash=validated.hash)
        return validated


def validate_plan(data: object, *, strict: bool = True) -> ValidationResult:
    """Validate plan structure with a default-configured ``PlanValidator``."""

    return PlanValidator().validate_schema(data, strict=strict)


def assert_valid_plan(
    data: object,
    *,
    validate_hash: bool = False,
    strict: bool = True,
    validator: PlanValidator | None = None,
) -> ValidatedPlan:
    """Validate and raise on failure."""

    resolved = validator if validator is not None else PlanValidator()
    return resolved.assert_valid(data, validate_hash=validate_hash, strict=strict)


def _parse_plan(payload: object, issues: _IssueCollector, *, strict: bool) -> Plan | None:
    root = _as_object(payload, "", issues)
    if root is None:
        return None

    if strict:
        for key in sorted(root):
            if key not in PLAN_FIELDS:
                issues.add(key, f"unknown field {key!r}", IssueCode.UNRECOGNIZED_KEY)

    plan_id = _required(root, "id", "", issues, _as_plan_id)
    plan_hash = _required(root, "hash", "", issues, _as_hash)
    intent = _required(root, "intent", "", issues, _as_intent)
    schema_version = _required(root, "schema_version", "", issues, _as_schema_version)
    changes = _required(
        root,
        "proposed_changes",
        "",
        issues,
        lambda value, path, sink: _as_list_of(value, path, sink, _parse_change),
    )
    provenance = _required(root, "provenance", "", issues, _parse_provenance)
    validations = _required(root, "validations", "", issues, _parse_validations)
    evidence = _optional(
        root,
        "evidence",
        "",
        issues,
        lambda value, path, sink: _as_list_of(value, path, sink, _parse_evidence),
    )
    approval = _optional(root, "approval", "", issues, _parse_approval)
    executions = _optional(
        root,
        "executions",
        "",
        issues,
        lambda value, path, sink: _as_list_of(value, path, sink, _parse_execution),
    )
    tags = _optional(root, "tags", "", issues, _as_str_list)
    metadata = _optional(root, "metadata", "", issues, _as_record)

    if issues.has_issues:
        return None
    assert plan_id is not None and plan_hash is not None and intent is not None
    assert schema_version is not None and changes is not None
    assert provenance is not None and validations is not None
    return Plan(
        id=plan_id,
        hash=plan_hash,
        intent=intent,
        schema_version=schema_version,
        proposed_changes=changes,
        provenance=provenance,
        validations=validations,
        evidence=evidence,
        approval=approval,
        executions=executions,
        tags=tags,
        metadata=metadata,
    )


def _parse_change(value: object, path: str, issues: _IssueCollector) -> Change | None:
    obj = _as_object(value, path, issues)
    if obj is None:
        return None
    mark = issues.mark()
    change_type = _required(obj, "type", path, issues, _enum_parser(ChangeType))
    change_path = _required(obj, "path", path, issues, _as_str)
    description = _required(obj, "description", path, issues, _as_str)
    content = _optional(obj, "content", path, issues, _as_str)
    diff = _optional(obj, "diff", path, issues, _as_str)
    metadata = _optional(obj, "metadata", path, issues, _as_record)
    if not issues.clean_since(mark):
        return None
    assert change_type is not None and change_path is not None and description is not None
    return Change(
        type=change_type,
        path=change_path,
        description=description,
        content=content,
        diff=diff,
        metadata=metadata,
    )


def _parse_provenance(value: object, path: str, issues: _IssueCollector) -> Provenance | None:
    obj = _as_object(value, path, issues)
    if obj is None:
        return None
    mark = issues.mark()
    timestamp = _required(obj, "timestamp", path, issues, _as_datetime)
    author = _optional(obj, "author", path, issues, _as_str)
    source = _required(obj, "source", path, issues, _enum_parser(ProvenanceSource))
    version = _required(obj, "version", path, issues, _as_str)
    repository = _optional(obj, "repository", path, issues, _as_str)
    branch = _optional(obj, "branch", path, issues, _as_str)
    commit = _optional(obj, "commit", path, issues, _as_str)
    if not issues.clean_since(mark):
        return None
    assert timestamp is not None and source is not None and version is not None
    return Provenance(
        timestamp=timestamp,
        source=source,
        version=version,
        author=author,
        repository=repository,
        branch=branch,
        commit=commit,
    )


def _parse_validations(value: object, path: str, issues: _IssueCollector) -> Validations | None:
    obj = _as_object(value, path, issues)
    if obj is None:
        return None
    mark = issues.mark()
    required_checks = _optional(obj, "required_checks", path, issues, _as_str_list)
    policy_version = _optional(obj, "policy_version", path, issues, _as_str)
    skip_checks = _optional(obj, "skip_checks", path, issues, _as_str_list)
    custom_rules = _optional(obj, "custom_rules", path, issues, _as_record)
    if not issues.clean_since(mark):
        return None
    return Validations(
        required_checks=required_checks if required_checks is not None else (),
        skip_checks=skip_checks if skip_checks is not None else (),
        policy_version=policy_version,
        custom_rules=custom_rules,
    )


def _parse_evidence_entry(
    value: object, path: str, issues: _IssueCollector
) -> EvidenceEntry | None:
    obj = _as_object(value, path, issues)
    if obj is None:
        return None
    mark = issues.mark()
    check = _required(obj, "check", path, issues, _as_str)
    status = _required(obj, "status", path, issues, _enum_parser(EvidenceStatus))
    timestamp = _required(obj, "timestamp", path, issues, _as_datetime)
    details = _optional(obj, "details", path, issues, _as_record)
    message = _optional(obj, "message", path, issues, _as_str)
    if not issues.clean_since(mark):
        return None
    assert check is not None and status is not None and timestamp is not None
    return EvidenceEntry(
        check=check,
        status=status,
        timestamp=timestamp,
        details=details,
        message=message,
    )


def _parse_evidence(value: object, path: str, issues: _IssueCollector) -> Evidence | None:
    obj = _as_object(value, path, issues)
    if obj is None:
        return None
    mark = issues.mark()
    gate_version = _required(obj, "gate_version", path, issues, _as_str)
    timestamp = _required(obj, "timestamp", path, issues, _as_datetime)
    overall_status = _required(obj, "overall_status", path, issues, _enum_parser(OverallStatus))
    checks = _required(
        obj,
        "checks",
        path,
        issues,
        lambda item, item_path, sink: _as_list_of(item, item_path, sink, _parse_evidence_entry),
    )
    summary = _optional(obj, "summary", path, issues, _as_str)
    artifacts = _optional(obj, "artifacts", path, issues, _as_str_record)
    if not issues.clean_since(mark):
        return None
    assert gate_version is not None and timestamp is not None
    assert overall_status is not None and checks is not None
    return Evidence(
        gate_version=gate_version,
        timestamp=timestamp,
        overall_status=overall_status,
        checks=checks,
        summary=summary,
        artifacts=artifacts,
    )


def _parse_approval(value: object, path: str, issues: _IssueCollector) -> Approval | None:
    obj = _as_object(value, path, issues)
    if obj is None:
        return None
    mark = issues.mark()
    approved = _required(obj, "approved", path, issues, _as_bool)
    approved_by = _optional(obj, "approved_by", path, issues, _as_str)
    approved_at = _optional(obj, "approved_at", path, issues, _as_datetime)
    approval_notes = _optional(obj, "approval_notes", path, issues, _as_str)
    if not issues.clean_since(mark):
        return None
    assert approved is not None
    return Approval(
        approved=approved,
        approved_by=approved_by,
        approved_at=approved_at,
        approval_notes=approval_notes,
    )


def _parse_execution(value: object, path: str, issues: _IssueCollector) -> ExecutionResult | None:
    obj = _as_object(value, path, issues)
    if obj is None:
        return None
    mark = issues.mark()
    operation = _required(obj, "operation", path, issues, _enum_parser(ExecutionOperation))
    status = _required(obj, "status", path, issues, _enum_parser(ExecutionStatus))
    timestamp = _required(obj, "timestamp", path, issues, _as_datetime)
    executed_by = _optional(obj, "executed_by", path, issues, _as_str)
    changes_applied = _optional(obj, "changes_applied", path, issues, _as_str_list)
    changes_failed = _optional(obj, "changes_failed", path, issues, _as_str_list)
    rollback_point = _optional(obj, "rollback_point", path, issues, _as_str)
    logs = _optional(obj, "logs", path, issues, _as_str_list)
    if not issues.clean_since(mark):
        return None
    assert operation is not None and status is not None and timestamp is not None
    return ExecutionResult(
        operation=operation,
        status=status,
        timestamp=timestamp,
        executed_by=executed_by,
        changes_applied=changes_applied,
        changes_failed=changes_failed,
        rollback_point=rollback_point,
        logs=logs,
    )


_FieldParser = Callable[[object, str, _IssueCollector], TItem | None]


def _required(
    obj: Mapping[str, object],
    key: str,
    path: str,
    issues: _IssueCollector,
    parse: _FieldParser[TItem],
) -> TItem | None:
    field_path = _join(path, key)
    if key not in obj:
        issues.add(field_path, "missing required field", IssueCode.REQUIRED)
        return None
    return parse(obj[key], field_path, issues)


def _optional(
    obj: Mapping[str, object],
    key: str,
    path: str,
    issues: _IssueCollector,
    parse: _FieldParser[TItem],
) -> TItem | None:
    if key not in obj:
        return None
    return parse(obj[key], _join(path, key), issues)


def _as_object(value: object, path: str, issues: _IssueCollector) -> dict[str, object] | None:
    if not isinstance(value, Mapping):
        issues.add(path, f"expected object, got {_type_name(value)}", IssueCode.INVALID_TYPE)
        return None
    out: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            issues.add(
                path,
                f"object key must be string, got {_type_name(key)}",
                IssueCode.INVALID_TYPE,
            )
            return None
        out[key] = item
    return out


def _as_str(value: object, path: str, issues: _IssueCollector) -> str | None:
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {_type_name(value)}", IssueCode.INVALID_TYPE)
        return None
    return value


def _as_bool(value: object, path: str, issues: _IssueCollector) -> bool | None:
    if isinstance(value, bool):
        return value
    issues.add(path, f"expected boolean, got {_type_name(value)}", IssueCode.INVALID_TYPE)
    return None


def _as_plan_id(value: object, path: str, issues: _IssueCollector) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if not is_valid_plan_id(parsed):
        issues.add(path, f"must match {PLAN_ID_PATTERN}", IssueCode.INVALID_FORMAT)
        return None
    return parsed


def _as_hash(value: object, path: str, issues: _IssueCollector) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if not is_valid_hash(parsed):
        issues.add(path, "must be 64 lowercase hex characters", IssueCode.INVALID_FORMAT)
        return None
    return parsed


def _as_intent(value: object, path: str, issues: _IssueCollector) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    length = _utf16_length(parsed)
    if length < INTENT_MIN_LENGTH:
        issues.add(
            path,
            f"Intent must be at least {INTENT_MIN_LENGTH} characters",
            IssueCode.TOO_SMALL,
        )
        return None
    if length > INTENT_MAX_LENGTH:
        issues.add(
            path,
            f"Intent must not exceed {INTENT_MAX_LENGTH} characters",
            IssueCode.TOO_BIG,
        )
        return None
    return parsed


def _utf16_length(text: str) -> int:
    # bounds count UTF-16 code units, so astral characters such as emoji count twice
    return len(text.encode("utf-16-le", errors="surrogatepass")) // 2


def _as_schema_version(value: object, path: str, issues: _IssueCollector) -> str | None:
    if not isinstance(value, str) or value != SCHEMA_VERSION:
        issues.add(
            path,
            f"expected {SCHEMA_VERSION!r}, got {value!r}",
            IssueCode.INVALID_LITERAL,
        )
        return None
    return value


def _as_datetime(value: object, path: str, issues: _IssueCollector) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    match = _DATETIME_RE.fullmatch(parsed)
    if match is None:
        issues.add(path, "expected ISO-8601 UTC datetime", IssueCode.INVALID_DATETIME)
        return None
    try:
        datetime.strptime(match.group("base"), "%Y-%m-%dT%H:%M:%S")
    except ValueError:
        issues.add(path, "expected ISO-8601 UTC datetime", IssueCode.INVALID_DATETIME)
        return None
    return parsed


def _enum_parser(enum_cls: type[TEnum]) -> _FieldParser[TEnum]:
    def parse(value: object, path: str, issues: _IssueCollector) -> TEnum | None:
        parsed = _as_str(value, path, issues)
        if parsed is None:
            return None
        try:
            return enum_cls(parsed)
        except ValueError:
            expected = ", ".join(item.value for item in enum_cls)
            issues.add(
                path,
                f"invalid value {parsed!r}; expected one of: {expected}",
                IssueCode.INVALID_ENUM_VALUE,
            )
            return None

    return parse


def _as_list_of(
    value: object,
    path: str,
    issues: _IssueCollector,
    parse_item: _FieldParser[TItem],
) -> tuple[TItem, ...] | None:
    if not isinstance(value, Sequence) or isinstance(value, (str, bytes, bytearray)):
        issues.add(path, f"expected array, got {_type_name(value)}", IssueCode.INVALID_TYPE)
        return None
    mark = issues.mark()
    parsed: list[TItem] = []
    for index, item in enumerate(value):
        result = parse_item(item, _join(path, str(index)), issues)
        if result is not None:
            parsed.append(result)
    if not issues.clean_since(mark):
        return None
    return tuple(parsed)


def _as_str_list(value: object, path: str, issues: _IssueCollector) -> tuple[str, ...] | None:
    return _as_list_of(value, path, issues, _as_str)


def _as_record(value: object, path: str, issues: _IssueCollector) -> dict[str, Any] | None:
    obj = _as_object(value, path, issues)
    if obj is None:
        return None
    return copy.deepcopy(obj)


def _as_str_record(value: object, path: str, issues: _IssueCollector) -> dict[str, str] | None:
    obj = _as_object(value, path, issues)
    if obj is None:
        return None
    mark = issues.mark()
    out: dict[str, str] = {}
    for key, item in obj.items():
        parsed = _as_str(item, _join(path, key), issues)
        if parsed is not None:
            out[key] = parsed
    if not issues.clean_since(mark):
        return None
    return out


def _type_name(value: object) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, Mapping):
        return "object"
    if isinstance(value, (list, tuple)):
        return "array"
    return type(value).__name__


def _join(path: str, key: str) -> str:
    if not path:
        return key
    return f"{path}.{key}"


__all__ = [
    "PLAN_FIELDS",
    "PLAN_OPTIONAL_FIELDS",
    "PLAN_REQUIRED_FIELDS",
    "HashFunction",
    "PlanValidator",
    "ValidatedPlan",
    "ValidationResult",
    "assert_valid_plan",
    "validate_plan",
]
