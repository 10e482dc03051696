# ============================================================================
# ERROR TAXONOMY
# ============================================================================
# EPOCH: 1 - HEALTH PASS
# STATUS: Foundation - Exception hierarchy
# PURPOSE: Errors raised by configuration, registry, probes and alerting
# CREATED: 18 OCT 2026
# ============================================================================
"""
Exceptions for the health aggregator.

Propagation rules:
- ConfigError: fatal, raised before any probe runs
- DuplicateNameError: programming error while building the registry
- MeasurementUnavailable: a probe could not measure; the aggregator maps it
  to WARN or FAIL through the unavailable-measurement policy
- NotificationError: alert delivery failed; logged, never escalated
"""

from typing import Optional


class StackwatchError(Exception):
    """Base exception for stackwatch errors."""
    pass


class ConfigError(StackwatchError):
    """Raised when configuration cannot be loaded or is invalid."""

    def __init__(self, message: str, key: Optional[str] = None):
        self.key = key
        super().__init__(message)


class DuplicateNameError(StackwatchError):
    """Raised when a check name is already registered."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Health check already registered: {name}")


class MeasurementUnavailable(StackwatchError):
    """Raised by a probe that cannot determine the state it checks."""
    pass


class MetricUnavailable(MeasurementUnavailable):
    """Raised when a system metric cannot be read or parsed."""

    def __init__(self, metric: str, reason: str):
        self.metric = metric
        self.reason = reason
        super().__init__(f"unable to read {metric}: {reason}")


class NotificationError(StackwatchError):
    """Raised by an alert sink when delivery fails."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


__all__ = [
    "StackwatchError",
    "ConfigError",
    "DuplicateNameError",
    "MeasurementUnavailable",
    "MetricUnavailable",
    "NotificationError",
]
