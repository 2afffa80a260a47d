"""Unit tests for gate configuration loading, normalization and edits."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from anvil_gate.gate.config import (
    GateCheckConfig,
    GateConfig,
    GateConfigError,
    GateConfigManager,
    default_gate_config,
    normalize_gate_config,
)

from . import RecordingLogger

if TYPE_CHECKING:
    from pathlib import Path


def test_missing_file_yields_default_config(tmp_path: Path) -> None:
    manager = GateConfigManager(tmp_path)
    config = manager.load_config()

    assert manager.config_path == tmp_path / ".anvilrc"
    assert config == default_gate_config()
    assert [entry.name for entry in config.checks] == ["lint", "coverage", "secret"]
    assert all(entry.enabled for entry in config.checks)
    assert config.overall_score == 80
    assert not manager.config_path.exists()


def test_default_config_is_a_fresh_copy() -> None:
    first = default_gate_config()
    first.checks[0].config["min_score"] = 5
    assert default_gate_config().checks[0].config["min_score"] == 80


@pytest.mark.parametrize("content", ["{not json", "[1, 2]", '"text"'])
def test_malformed_file_logs_warning_and_falls_back(tmp_path: Path, content: str) -> None:
    (tmp_path / ".anvilrc").write_text(content, encoding="utf-8")
    logger = RecordingLogger()

    config = GateConfigManager(tmp_path, logger=logger).load_config()

    assert config == default_gate_config()
    assert logger.names("warning") == ["gate_config_load_failed"]


def test_strict_load_raises_for_malformed_file(tmp_path: Path) -> None:
    (tmp_path / ".anvilrc").write_text("{not json", encoding="utf-8")
    with pytest.raises(GateConfigError, match="unable to load gate config"):
        GateConfigManager(tmp_path).load_config_strict()


def test_save_then_load_round_trips(tmp_path: Path) -> None:
    logger = RecordingLogger()
    manager = GateConfigManager(
        tmp_path, config_path=tmp_path / "conf" / "gate.json", logger=logger
    )
    config = GateConfig(
        version=2,
        checks=(
            GateCheckConfig(
                name="lint", description="Lint", enabled=False, config={"min_score": 90}
            ),
            GateCheckConfig(name="custom", description="Custom", config={"level": "high"}),
        ),
        thresholds={"overall_score": 70, "coverage_floor": 60.5},
    )

    saved = manager.save_config(config)
    loaded = manager.load_config()

    assert saved == config
    assert loaded == config
    assert manager.config_path.read_text(encoding="utf-8").startswith('{\n  "version": 2')
    assert logger.names("info") == ["gate_config_saved"]
    assert logger.events[0][2]["checks"] == ["lint", "custom"]


def test_partial_entries_are_normalized() -> None:
    logger = RecordingLogger()
    config = normalize_gate_config(
        {
            "checks": [
                {"name": "lint"},
                {"name": "secret", "enabled": "yes", "config": "bad"},
                "garbage",
                {"name": "lint", "description": "duplicate"},
            ],
            "thresholds": {"overall_score": "high", "custom": 12, "flag": True},
        },
        logger=logger,
    )

    assert config.version == 1
    assert config.checks == (
        GateCheckConfig(name="lint"),
        GateCheckConfig(name="secret"),
        GateCheckConfig(name="unknown"),
    )
    assert config.thresholds == {"custom": 12, "overall_score": 80}
    assert logger.names("warning") == ["gate_config_duplicate_check"]


def test_save_accepts_raw_mappings(tmp_path: Path) -> None:
    manager = GateConfigManager(tmp_path)
    saved = manager.save_config({"checks": [{"name": "secret"}]})

    assert saved.checks == (GateCheckConfig(name="secret"),)
    assert json.loads(manager.config_path.read_text(encoding="utf-8")) == {
        "version": 1,
        "checks": [{"name": "secret", "description": "", "enabled": True, "config": {}}],
        "thresholds": {"overall_score": 80},
    }


def test_update_merges_existing_and_appends_new(tmp_path: Path) -> None:
    manager = GateConfigManager(tmp_path)

    updated = manager.update_check("lint", config={"min_score": 95})
    assert updated.get_check("lint") == GateCheckConfig(
        name="lint",
        description="Code quality checks",
        enabled=True,
        config={"min_score": 95},
    )

    appended = manager.update_check("typecheck", description="Static types", enabled=False)
    assert [entry.name for entry in appended.checks] == ["lint", "coverage", "secret", "typecheck"]
    assert manager.get_check("typecheck") == GateCheckConfig(
        name="typecheck", description="Static types", enabled=False
    )


def test_enable_and_disable_persist(tmp_path: Path) -> None:
    manager = GateConfigManager(tmp_path)

    manager.disable_check("coverage")
    coverage = manager.get_check("coverage")
    assert coverage is not None
    assert coverage.enabled is False

    manager.enable_check("coverage")
    coverage = manager.get_check("coverage")
    assert coverage is not None
    assert coverage.enabled is True
    assert len(manager.list_checks()) == 3


def test_set_threshold_validates_and_persists(tmp_path: Path) -> None:
    manager = GateConfigManager(tmp_path)

    manager.set_threshold("overall_score", 90)
    assert manager.load_config().overall_score == 90

    with pytest.raises(GateConfigError, match="expected number"):
        manager.set_threshold("overall_score", "high")  # type: ignore[arg-type]
    with pytest.raises(GateConfigError, match="must be finite"):
        manager.set_threshold("overall_score", float("nan"))
