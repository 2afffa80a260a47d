"""Logging setup shared by the gate and plan tooling."""

from anvil_gate.observability.logging import configure_logging, redact_value

__all__ = ["configure_logging", "redact_value"]
