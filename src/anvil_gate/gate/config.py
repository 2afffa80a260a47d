"""
anvil-gate — gate configuration management

File: src/anvil_gate/gate/config.py

Purpose
- Load, normalize, persist and incrementally edit the per-workspace gate configuration.

Functional requirements
- A missing file yields the built-in default (lint, coverage and secret enabled; overall score 80).
- Malformed or unreadable files are logged as warnings and replaced by the default, never raised.
- Every config passing through the manager is normalized: missing sections are filled and each
  check entry is coerced to ``name``/``description``/``enabled``/``config``.
- Check names are unique within one config; later duplicates are dropped.
- Edits read-modify-write the whole file.

Non-functional requirements
- Writes are atomic and create missing parent directories.
"""

from __future__ import annotations

import copy
import json
import math
import os
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Final, cast

import structlog

from anvil_gate.constants import (
    DEFAULT_MIN_SCORE,
    DEFAULT_OVERALL_SCORE,
    GATE_CONFIG_FILENAME,
    GATE_CONFIG_VERSION,
)
from anvil_gate.utils.fs import atomic_write

PathLike = str | os.PathLike[str]

OVERALL_SCORE_KEY: Final[str] = "overall_score"
UNKNOWN_CHECK_NAME: Final[str] = "unknown"

DEFAULT_CHECKS: Final[tuple[Mapping[str, Any], ...]] = (
    {
        "name": "lint",
        "description": "Code quality checks",
        "enabled": True,
        "config": {"min_score": DEFAULT_MIN_SCORE},
    },
    {
        "name": "coverage",
        "description": "Test coverage validation",
        "enabled": True,
        "config": {
            "min_score": DEFAULT_MIN_SCORE,
            "thresholds": {
                "lines": DEFAULT_MIN_SCORE,
                "functions": DEFAULT_MIN_SCORE,
                "branches": DEFAULT_MIN_SCORE,
                "statements": DEFAULT_MIN_SCORE,
            },
        },
    },
    {
        "name": "secret",
        "description": "Secret scanning",
        "enabled": True,
        "config": {},
    },
)

__all__ = [
    "DEFAULT_CHECKS",
    "OVERALL_SCORE_KEY",
    "GateCheckConfig",
    "GateConfig",
    "GateConfigError",
    "GateConfigManager",
    "default_gate_config",
    "normalize_gate_config",
]


class GateConfigError(ValueError):
    """Raised by strict config helpers when a config file cannot be used."""


@dataclass(frozen=True, slots=True)
class GateCheckConfig:
    """One configured check; ``config`` is opaque to everything but the check itself."""

    name: str
    description: str = ""
    enabled: bool = True
    config: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "enabled": self.enabled,
            "config": copy.deepcopy(self.config),
        }


@dataclass(frozen=True, slots=True)
class GateConfig:
    version: int = GATE_CONFIG_VERSION
    checks: tuple[GateCheckConfig, ...] = ()
    thresholds: dict[str, float] = field(
        default_factory=lambda: {OVERALL_SCORE_KEY: DEFAULT_OVERALL_SCORE}
    )
    global_config: dict[str, Any] | None = None

    @property
    def overall_score(self) -> float:
        return self.thresholds.get(OVERALL_SCORE_KEY, DEFAULT_OVERALL_SCORE)

    def get_check(self, name: str) -> GateCheckConfig | None:
        for entry in self.checks:
            if entry.name == name:
                return entry
        return None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "version": self.version,
            "checks": [entry.to_dict() for entry in self.checks],
            "thresholds": dict(self.thresholds),
        }
        if self.global_config is not None:
            out["global_config"] = copy.deepcopy(self.global_config)
        return out


def default_gate_config() -> GateConfig:
    """Return a fresh copy of the built-in default configuration."""

    return normalize_gate_config(
        {
            "version": GATE_CONFIG_VERSION,
            "checks": copy.deepcopy(list(DEFAULT_CHECKS)),
            "thresholds": {OVERALL_SCORE_KEY: DEFAULT_OVERALL_SCORE},
        }
    )


def normalize_gate_config(raw: object, *, logger: Any | None = None) -> GateConfig:
    """
    Coerce arbitrary decoded JSON into a ``GateConfig``.

    Never raises for malformed content: non-object input becomes an empty
    config with default version and thresholds.
    """

    log = logger if logger is not None else structlog.get_logger(__name__)
    payload: Mapping[str, object] = raw if isinstance(raw, Mapping) else {}

    version_raw = payload.get("version")
    version = (
        version_raw
        if isinstance(version_raw, int) and not isinstance(version_raw, bool) and version_raw
        else GATE_CONFIG_VERSION
    )

    checks_raw = payload.get("checks")
    entries = checks_raw if isinstance(checks_raw, list) else []
    checks: list[GateCheckConfig] = []
    seen: set[str] = set()
    for entry in (_normalize_check(item) for item in entries):
        if entry.name in seen:
            log.warning("gate_config_duplicate_check", check=entry.name)
            continue
        seen.add(entry.name)
        checks.append(entry)

    global_raw = payload.get("global_config")
    return GateConfig(
        version=version,
        checks=tuple(checks),
        thresholds=_normalize_thresholds(payload.get("thresholds")),
        global_config=copy.deepcopy(dict(global_raw)) if isinstance(global_raw, Mapping) else None,
    )


class GateConfigManager:
    """Reads and writes ``<workspace_root>/.anvilrc``."""

    def __init__(
        self,
        workspace_root: PathLike,
        *,
        config_path: PathLike | None = None,
        logger: Any | None = None,
    ) -> None:
        self._workspace_root = Path(workspace_root)
        self._config_path = (
            Path(config_path)
            if config_path is not None
            else self._workspace_root / GATE_CONFIG_FILENAME
        )
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @property
    def config_path(self) -> Path:
        return self._config_path

    def get_default_config(self) -> GateConfig:
        return default_gate_config()

    def load_config(self) -> GateConfig:
        """Load the config file, falling back to defaults when absent or unusable."""

        if not self._config_path.exists():
            return default_gate_config()
        try:
            raw = json.loads(self._config_path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            self._logger.warning(
                "gate_config_load_failed",
                path=str(self._config_path),
                error=str(exc),
            )
            return default_gate_config()
        if not isinstance(raw, Mapping):
            self._logger.warning(
                "gate_config_load_failed",
                path=str(self._config_path),
                error=f"expected a JSON object, got {type(raw).__name__}",
            )
            return default_gate_config()
        return normalize_gate_config(raw, logger=self._logger)

    def load_config_strict(self) -> GateConfig:
        """Like ``load_config`` but raises ``GateConfigError`` for unusable files."""

        if not self._config_path.exists():
            return default_gate_config()
        try:
            raw = json.loads(self._config_path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise GateConfigError(
                f"{self._config_path}: unable to load gate config ({exc})"
            ) from exc
        if not isinstance(raw, Mapping):
            raise GateConfigError(
                f"{self._config_path}: expected a JSON object, got {type(raw).__name__}"
            )
        return normalize_gate_config(raw, logger=self._logger)

    def save_config(self, config: GateConfig | Mapping[str, object]) -> GateConfig:
        """Normalize and write ``config`` as pretty-printed JSON; return what was written."""

        normalized = (
            config
            if isinstance(config, GateConfig)
            else normalize_gate_config(config, logger=self._logger)
        )
        rendered = json.dumps(normalized.to_dict(), indent=2, ensure_ascii=False) + "\n"
        atomic_write(self._config_path, rendered)
        self._logger.info(
            "gate_config_saved",
            path=str(self._config_path),
            checks=_names(normalized.checks),
        )
        return normalized

    def list_checks(self) -> tuple[GateCheckConfig, ...]:
        return self.load_config().checks

    def get_check(self, name: str) -> GateCheckConfig | None:
        return self.load_config().get_check(name)

    def update_check(
        self,
        name: str,
        *,
        description: str | None = None,
        enabled: bool | None = None,
        config: Mapping[str, object] | None = None,
    ) -> GateConfig:
        """Merge changes into the entry for ``name``, or append a new entry."""

        current = self.load_config()
        changes: dict[str, Any] = {}
        if description is not None:
            changes["description"] = description
        if enabled is not None:
            changes["enabled"] = enabled
        if config is not None:
            changes["config"] = copy.deepcopy(dict(config))

        updated: list[GateCheckConfig] = []
        found = False
        for entry in current.checks:
            if entry.name == name:
                updated.append(replace(entry, **changes))
                found = True
            else:
                updated.append(entry)
        if not found:
            updated.append(GateCheckConfig(name=name, **changes))

        return self.save_config(replace(current, checks=tuple(updated)))

    def enable_check(self, name: str) -> GateConfig:
        return self.update_check(name, enabled=True)

    def disable_check(self, name: str) -> GateConfig:
        return self.update_check(name, enabled=False)

    def set_threshold(self, name: str, value: float) -> GateConfig:
        """Persist a named threshold (``overall_score`` or a custom one)."""

        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise GateConfigError(f"thresholds.{name}: expected number, got {type(value).__name__}")
        if not math.isfinite(value):
            raise GateConfigError(f"thresholds.{name}: must be finite")
        current = self.load_config()
        thresholds = dict(current.thresholds)
        thresholds[name] = value
        return self.save_config(replace(current, thresholds=thresholds))


def _normalize_check(raw: object) -> GateCheckConfig:
    entry: Mapping[str, object] = raw if isinstance(raw, Mapping) else {}
    name = entry.get("name")
    description = entry.get("description")
    config = entry.get("config")
    return GateCheckConfig(
        name=name if isinstance(name, str) else UNKNOWN_CHECK_NAME,
        description=description if isinstance(description, str) else "",
        enabled=entry.get("enabled") is not False,
        config=copy.deepcopy(dict(config)) if isinstance(config, Mapping) else {},
    )


def _normalize_thresholds(raw: object) -> dict[str, float]:
    if not isinstance(raw, Mapping):
        return {OVERALL_SCORE_KEY: DEFAULT_OVERALL_SCORE}
    thresholds: dict[str, float] = {}
    for key, value in raw.items():
        if isinstance(key, str) and _is_number(value):
            thresholds[key] = cast("float", value)
    thresholds.setdefault(OVERALL_SCORE_KEY, DEFAULT_OVERALL_SCORE)
    return thresholds


def _is_number(value: object) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def _names(entries: Iterable[GateCheckConfig]) -> list[str]:
    return [entry.name for entry in entries]
