# ============================================================================
# HEALTH CHECK MODULE
# ============================================================================
# EPOCH: 1 - HEALTH PASS
# STATUS: Infrastructure - Health aggregation
# PURPOSE: Periodic probes, consolidated alerting, exit-code health signal
# CREATED: 18 OCT 2026
# ============================================================================
"""
Health Check Module

Short-lived health aggregator for a self-hosted automation stack:
- CheckRegistry: ordered, named checks
- Probes (health.checks): HTTP liveness, readiness commands, resource thresholds
- Aggregator: runs every probe with timeouts, builds a RunReport
- Notifier: one consolidated alert per pass

Usage:
    from health import Aggregator, Notifier
    from health.checks import build_registry

    registry = build_registry(settings)
    report = Aggregator().run_pass(registry)
    sys.exit(report.exit_code)
"""

from health.core import (
    CheckStatus,
    CheckKind,
    CheckOutcome,
    CheckDefinition,
    HealthProbe,
    ProbeResult,
    RunReport,
)
from health.registry import CheckRegistry
from health.executor import Aggregator, UnavailablePolicy
from health.notifier import AlertSink, LogOnlySink, TelegramSink, Notifier
from health.runner import HealthPass

__all__ = [
    # Core types
    "CheckStatus",
    "CheckKind",
    "CheckOutcome",
    "CheckDefinition",
    "HealthProbe",
    "ProbeResult",
    "RunReport",
    # Registry
    "CheckRegistry",
    # Executor
    "Aggregator",
    "UnavailablePolicy",
    # Notifier
    "AlertSink",
    "LogOnlySink",
    "TelegramSink",
    "Notifier",
    # Runner
    "HealthPass",
]
