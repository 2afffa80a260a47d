"""
anvil-gate — plan file persistence

File: src/anvil_gate/persistence/plan_store.py

Purpose
- Read and write plan documents as JSON or YAML, one file per plan named ``<id>.json``.
- Locate the workspace root and the conventional ``.anvil/plans`` directory.

Functional requirements
- Loading always validates; callers receive a ``ValidatedPlan`` or a ``PlanStoreError``.
- YAML timestamps stay strings so loaded plans hash the same as their JSON form.
"""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Literal, cast

import yaml

from anvil_gate.constants import PLANS_DIRNAME, WORKSPACE_MARKERS, WORKSPACE_STATE_DIR
from anvil_gate.domain.ids import validate_plan_id
from anvil_gate.utils.fs import atomic_write
from anvil_gate.validation.validator import PlanValidator, ValidatedPlan

PathLike = str | os.PathLike[str]
PlanFormat = Literal["json", "yaml"]

_YAML_SUFFIXES = frozenset({".yaml", ".yml"})
_YAML_TIMESTAMP_TAG = "tag:yaml.org,2002:timestamp"

__all__ = [
    "PlanFormat",
    "PlanStoreError",
    "find_plan_by_id",
    "find_workspace_root",
    "load_plan",
    "plan_path_for",
    "plans_dir",
    "read_plan_document",
    "save_plan",
]


class PlanStoreError(ValueError):
    """Raised when a plan file cannot be read, parsed, or validated."""


class _PlanYamlLoader(yaml.SafeLoader):
    """Safe loader that keeps ISO-8601 timestamps as plain strings."""


_PlanYamlLoader.yaml_implicit_resolvers = {
    first_char: [
        (tag, pattern) for tag, pattern in resolvers if tag != _YAML_TIMESTAMP_TAG
    ]
    for first_char, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


def plans_dir(workspace_root: PathLike) -> Path:
    return Path(workspace_root) / WORKSPACE_STATE_DIR / PLANS_DIRNAME


def plan_path_for(workspace_root: PathLike, plan_id: str) -> Path:
    validate_plan_id(plan_id)
    return plans_dir(workspace_root) / f"{plan_id}.json"


def find_plan_by_id(plan_id: str, workspace_root: PathLike) -> Path | None:
    """Return the stored plan file for ``plan_id`` when it exists."""

    candidate = plan_path_for(workspace_root, plan_id)
    if candidate.is_file():
        return candidate
    return None


def find_workspace_root(start: PathLike | None = None) -> Path:
    """Walk up from ``start`` to the first directory holding a workspace marker."""

    origin = Path(start) if start is not None else Path.cwd()
    origin = origin.resolve()
    for candidate in (origin, *origin.parents):
        if any((candidate / marker).exists() for marker in WORKSPACE_MARKERS):
            return candidate
    return origin


def save_plan(
    plan: ValidatedPlan | Mapping[str, object],
    path: PathLike,
    *,
    format: PlanFormat | None = None,  # noqa: A002
) -> Path:
    """Write ``plan`` to ``path`` and return the resolved target path."""

    target = Path(path)
    payload = plan.to_dict() if isinstance(plan, ValidatedPlan) else dict(plan)
    resolved_format = format if format is not None else _format_for(target)
    if resolved_format == "yaml":
        rendered = yaml.safe_dump(
            payload,
            sort_keys=False,
            default_flow_style=False,
            allow_unicode=True,
            width=120,
        )
    else:
        rendered = json.dumps(payload, indent=2, ensure_ascii=False) + "\n"
    atomic_write(target, rendered)
    return target


def read_plan_document(path: PathLike) -> dict[str, Any]:
    """Parse a plan file into a raw mapping without validating it."""

    source = Path(path)
    if not source.is_file():
        raise PlanStoreError(f"Plan file not found: {source}")
    try:
        text = source.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise PlanStoreError(f"{source}: unable to read plan file ({exc})") from exc

    try:
        if _format_for(source) == "yaml":
            loaded = cast("object", yaml.load(text, Loader=_PlanYamlLoader))  # noqa: S506
        else:
            loaded = json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise PlanStoreError(f"{source}: unable to parse plan file ({exc})") from exc

    if not isinstance(loaded, dict):
        raise PlanStoreError(f"{source}: expected a top-level object, got {type(loaded).__name__}")
    return loaded


def load_plan(
    path: PathLike,
    *,
    validator: PlanValidator | None = None,
    validate_hash: bool = False,
) -> ValidatedPlan:
    """Read, parse and validate a plan file."""

    document = read_plan_document(path)
    resolved = validator if validator is not None else PlanValidator()
    result = resolved.validate(document, validate_hash=validate_hash)
    if result.data is None:
        messages = ", ".join(issue.message for issue in result.errors)
        raise PlanStoreError(f"Invalid plan: {messages or 'Unknown validation error'}")
    return result.data


def _format_for(path: Path) -> PlanFormat:
    return "yaml" if path.suffix.lower() in _YAML_SUFFIXES else "json"
