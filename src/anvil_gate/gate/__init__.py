"""Quality gate: configuration, built-in checks, runner and evidence."""

from anvil_gate.gate.checks import (
    Check,
    CheckContext,
    CommandExecutor,
    GateResult,
    builtin_checks,
)
from anvil_gate.gate.config import (
    GateCheckConfig,
    GateConfig,
    GateConfigError,
    GateConfigManager,
    default_gate_config,
    normalize_gate_config,
)
from anvil_gate.gate.evidence import build_evidence
from anvil_gate.gate.runner import GateRunner, GateRunResult, GateSummary

__all__ = [
    "Check",
    "CheckContext",
    "CommandExecutor",
    "GateCheckConfig",
    "GateConfig",
    "GateConfigError",
    "GateConfigManager",
    "GateResult",
    "GateRunResult",
    "GateRunner",
    "GateSummary",
    "build_evidence",
    "builtin_checks",
    "default_gate_config",
    "normalize_gate_config",
]
