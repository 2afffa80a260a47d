"""Plan validation: structured issues, the validator, and JSON Schema export."""

from anvil_gate.validation.errors import (
    HashValidationError,
    IssueCode,
    PlanValidationError,
    SchemaValidationError,
    ValidationIssue,
    create_validation_summary,
    format_validation_errors,
)
from anvil_gate.validation.json_schema import (
    generate_json_schema,
    get_json_schema_string,
    write_json_schema,
)
from anvil_gate.validation.validator import (
    PlanValidator,
    ValidatedPlan,
    ValidationResult,
    assert_valid_plan,
    validate_plan,
)

__all__ = [
    "HashValidationError",
    "IssueCode",
    "PlanValidationError",
    "PlanValidator",
    "SchemaValidationError",
    "ValidatedPlan",
    "ValidationIssue",
    "ValidationResult",
    "assert_valid_plan",
    "create_validation_summary",
    "format_validation_errors",
    "generate_json_schema",
    "get_json_schema_string",
    "validate_plan",
    "write_json_schema",
]
