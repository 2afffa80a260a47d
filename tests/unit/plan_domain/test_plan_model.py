"""Unit tests for plan construction, sealing and evidence appends."""

from __future__ import annotations

from datetime import UTC, datetime

from anvil_gate.constants import DEFAULT_REQUIRED_CHECKS, SCHEMA_VERSION
from anvil_gate.domain.ids import is_valid_plan_id
from anvil_gate.domain.plan import (
    Change,
    ChangeType,
    Evidence,
    EvidenceEntry,
    EvidenceStatus,
    OverallStatus,
    Provenance,
    ProvenanceSource,
    append_evidence,
    calculate_plan_hash,
    create_plan,
    seal_plan,
    utc_timestamp,
)
from anvil_gate.utils.hashing import generate_hash, is_valid_hash


def _evidence(status: OverallStatus = OverallStatus.PASSED) -> Evidence:
    return Evidence(
        gate_version="0.1.0",
        timestamp="2026-01-15T10:00:00.000Z",
        overall_status=status,
        checks=(
            EvidenceEntry(
                check="lint",
                status=EvidenceStatus.PASSED,
                timestamp="2026-01-15T10:00:00.000Z",
            ),
        ),
    )


def test_create_plan_fills_producer_defaults() -> None:
    plan = create_plan("Refactor the billing module")

    assert plan["schema_version"] == SCHEMA_VERSION
    assert is_valid_plan_id(plan["id"])
    assert "hash" not in plan
    assert plan["proposed_changes"] == []
    assert plan["provenance"]["source"] == "cli"
    assert plan["provenance"]["version"] == "0.0.0"
    assert plan["provenance"]["timestamp"].endswith("Z")
    assert plan["validations"] == {
        "required_checks": list(DEFAULT_REQUIRED_CHECKS),
        "skip_checks": [],
    }
    assert "tags" not in plan
    assert "metadata" not in plan


def test_create_plan_accepts_typed_changes_and_provenance() -> None:
    provenance = Provenance(
        timestamp="2026-01-15T09:30:00.000Z",
        source=ProvenanceSource.API,
        version="2.0.0",
        author="ci",
    )
    change = Change(type=ChangeType.FILE_UPDATE, path="src/app.py", description="Tweak app")
    plan = create_plan(
        "Tweak the application entry point",
        changes=[change],
        provenance=provenance,
        plan_id="aps-00000001",
        tags=["refactor"],
        metadata={"ticket": 42},
    )

    assert plan["id"] == "aps-00000001"
    assert plan["proposed_changes"] == [
        {"type": "file_update", "path": "src/app.py", "description": "Tweak app"}
    ]
    assert plan["provenance"]["author"] == "ci"
    assert plan["tags"] == ["refactor"]
    assert plan["metadata"] == {"ticket": 42}


def test_seal_plan_hash_excludes_hash_field() -> None:
    raw = create_plan("Refactor the billing module", plan_id="aps-00000002")
    sealed = seal_plan(raw)

    assert is_valid_hash(sealed["hash"])
    assert sealed["hash"] == generate_hash(raw)
    assert calculate_plan_hash(sealed) == sealed["hash"]
    assert seal_plan(sealed)["hash"] == sealed["hash"]
    assert "hash" not in raw


def test_any_content_change_invalidates_hash() -> None:
    sealed = seal_plan(create_plan("Refactor the billing module", plan_id="aps-00000003"))
    mutated = dict(sealed)
    mutated["intent"] = "Refactor the invoicing module"
    assert calculate_plan_hash(mutated) != sealed["hash"]


def test_append_evidence_returns_new_mapping_and_keeps_existing_entries() -> None:
    sealed = seal_plan(create_plan("Refactor the billing module", plan_id="aps-00000004"))
    first = append_evidence(sealed, _evidence())
    second = append_evidence(first, _evidence(OverallStatus.FAILED).to_dict())

    assert "evidence" not in sealed
    assert len(first["evidence"]) == 1
    assert [item["overall_status"] for item in second["evidence"]] == ["passed", "failed"]
    assert second["evidence"][0] == first["evidence"][0]
    assert second["hash"] == sealed["hash"]


def test_to_dict_omits_absent_optional_fields() -> None:
    entry = EvidenceEntry(
        check="secret",
        status=EvidenceStatus.SKIPPED,
        timestamp="2026-01-15T10:00:00.000Z",
    )
    assert entry.to_dict() == {
        "check": "secret",
        "status": "skipped",
        "timestamp": "2026-01-15T10:00:00.000Z",
    }
    assert "summary" not in _evidence().to_dict()


def test_utc_timestamp_formats_with_milliseconds() -> None:
    value = datetime(2026, 3, 4, 5, 6, 7, 891_000, tzinfo=UTC)
    assert utc_timestamp(value) == "2026-03-04T05:06:07.891Z"
