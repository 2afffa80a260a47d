"""Plan file persistence and workspace discovery."""

from anvil_gate.persistence.plan_store import (
    PlanStoreError,
    find_plan_by_id,
    find_workspace_root,
    load_plan,
    plan_path_for,
    plans_dir,
    read_plan_document,
    save_plan,
)

__all__ = [
    "PlanStoreError",
    "find_plan_by_id",
    "find_workspace_root",
    "load_plan",
    "plan_path_for",
    "plans_dir",
    "read_plan_document",
    "save_plan",
]
