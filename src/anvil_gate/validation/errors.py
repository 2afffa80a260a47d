"""Structured validation issues, exception types, and human-readable renderers."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Final, Literal

ROOT_PATH: Final[str] = "<root>"

Severity = Literal["error", "warning"]


class IssueCode(StrEnum):
    INVALID_TYPE = "invalid_type"
    REQUIRED = "required"
    TOO_SMALL = "too_small"
    TOO_BIG = "too_big"
    INVALID_FORMAT = "invalid_format"
    INVALID_LITERAL = "invalid_literal"
    INVALID_ENUM_VALUE = "invalid_enum_value"
    UNRECOGNIZED_KEY = "unrecognized_key"
    INVALID_DATETIME = "invalid_datetime"
    HASH_MISMATCH = "hash_mismatch"


@dataclass(frozen=True, slots=True)
class ValidationIssue:
    """Single structured validation failure with a dotted field path."""

    path: str
    message: str
    code: IssueCode
    severity: Severity = "error"

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "message": self.message,
            "code": self.code.value,
            "severity": self.severity,
        }


class PlanValidationError(ValueError):
    """Raised when a caller asks for a plan to be valid and it is not."""

    def __init__(self, issues: Sequence[ValidationIssue], *, label: str = "invalid plan") -> None:
        self.issues = tuple(issues)
        if not self.issues:
            rendered = "unknown validation failure"
        else:
            rendered = "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
        super().__init__(f"{label}:\n{rendered}")


class SchemaValidationError(PlanValidationError):
    """Plan structure does not match the schema."""

    def __init__(self, issues: Sequence[ValidationIssue]) -> None:
        super().__init__(issues, label="plan failed schema validation")


class HashValidationError(PlanValidationError):
    """Stored plan hash does not match the plan content."""

    def __init__(self, expected_hash: str, actual_hash: str) -> None:
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            (hash_mismatch_issue(expected=expected_hash, actual=actual_hash),),
            label="plan failed hash validation",
        )


def hash_mismatch_issue(*, expected: str, actual: str) -> ValidationIssue:
    return ValidationIssue(
        path="hash",
        message=f"Hash mismatch: expected {expected}, got {actual}",
        code=IssueCode.HASH_MISMATCH,
    )


def format_validation_errors(issues: Sequence[ValidationIssue]) -> str:
    """Render issues as a numbered, multi-line report."""

    if not issues:
        return "No validation errors"

    plural = "s" if len(issues) > 1 else ""
    lines = [f"Found {len(issues)} validation error{plural}:"]
    for index, issue in enumerate(issues, start=1):
        marker = "error" if issue.severity == "error" else "warning"
        lines.append(f"  {index}. [{marker}] {issue.message}")
        if issue.path != ROOT_PATH:
            lines.append(f"     path: {issue.path}")
        lines.append(f"     code: {issue.code.value}")
    return "\n".join(lines)


def create_validation_summary(is_valid: bool, issues: Sequence[ValidationIssue] = ()) -> str:
    """Return a one-line pass/fail summary with error and warning counts."""

    if is_valid:
        return "Validation passed"

    error_count = sum(1 for issue in issues if issue.severity == "error")
    warning_count = sum(1 for issue in issues if issue.severity == "warning")
    counts: list[str] = []
    if error_count:
        counts.append(f"{error_count} error{'s' if error_count > 1 else ''}")
    if warning_count:
        counts.append(f"{warning_count} warning{'s' if warning_count > 1 else ''}")
    if not counts:
        return "Validation failed"
    return f"Validation failed: {', '.join(counts)}"


__all__ = [
    "ROOT_PATH",
    "HashValidationError",
    "IssueCode",
    "PlanValidationError",
    "SchemaValidationError",
    "Severity",
    "ValidationIssue",
    "create_validation_summary",
    "format_validation_errors",
    "hash_mismatch_issue",
]
