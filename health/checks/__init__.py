# ============================================================================
# HEALTH CHECK PLUGINS
# ============================================================================
# EPOCH: 1 - HEALTH PASS
# STATUS: Infrastructure - Probe implementations and registry wiring
# PURPOSE: Concrete probes for the automation host stack
# CREATED: 18 OCT 2026
# ============================================================================
"""
Health Check Plugins

Checks registered by build_registry(), in this order:

Liveness:
- n8n: n8n /healthz endpoint
- waha: WhatsApp session state (unless WAHA_ENABLED=false)

Readiness:
- postgres: pg_isready in the compose service, or a direct connection
- containers: expected compose services running (if HEALTH_CONTAINERS set)

Resource:
- disk: filesystem usage of DISK_PATH
- memory: host memory usage
"""

from typing import Optional

from core.config.settings import HealthSettings, PostgresCheckMode
from health.core import CheckDefinition, CheckKind
from health.metrics import SystemMetrics, get_metrics_backend
from health.registry import CheckRegistry
from health.checks.http import HttpLivenessProbe, WahaSessionProbe
from health.checks.readiness import (
    CommandReadinessProbe,
    ComposeServicesProbe,
    PostgresReadinessProbe,
)
from health.checks.resources import ResourceThresholdProbe


def build_registry(
    settings: HealthSettings,
    metrics: Optional[SystemMetrics] = None,
) -> CheckRegistry:
    """Build the ordered registry for one pass from settings."""
    metrics = metrics or get_metrics_backend(settings.metrics_backend)
    timeout = settings.probe_timeout_seconds
    registry = CheckRegistry()

    # Liveness
    registry.register(CheckDefinition(
        name="n8n",
        probe=HttpLivenessProbe(
            settings.n8n_health_url,
            accepted_status=settings.n8n_accepted_status,
            timeout=timeout,
        ),
        kind=CheckKind.LIVENESS,
        timeout_seconds=timeout + 1,
    ))

    if settings.waha.enabled:
        registry.register(CheckDefinition(
            name="waha",
            probe=WahaSessionProbe(
                settings.waha.url,
                session=settings.waha.session,
                api_key=settings.waha.api_key,
                timeout=timeout,
            ),
            kind=CheckKind.LIVENESS,
            timeout_seconds=timeout + 1,
        ))

    # Readiness
    pg = settings.postgres
    if pg.mode == PostgresCheckMode.DIRECT:
        postgres_probe = PostgresReadinessProbe(pg.conninfo(), connect_timeout=max(1, int(timeout)))
    else:
        postgres_probe = CommandReadinessProbe.pg_isready(
            settings.compose_file,
            pg.user,
            compose_service=pg.compose_service,
        )
    registry.register(CheckDefinition(
        name="postgres",
        probe=postgres_probe,
        kind=CheckKind.READINESS,
        timeout_seconds=timeout * 2,
    ))

    if settings.containers:
        registry.register(CheckDefinition(
            name="containers",
            probe=ComposeServicesProbe(settings.compose_file, settings.containers),
            kind=CheckKind.READINESS,
            timeout_seconds=timeout * 2,
        ))

    # Resource
    registry.register(CheckDefinition(
        name="disk",
        probe=ResourceThresholdProbe.disk(metrics, settings.disk_path, settings.disk),
        kind=CheckKind.RESOURCE,
        timeout_seconds=timeout,
    ))
    registry.register(CheckDefinition(
        name="memory",
        probe=ResourceThresholdProbe.memory(metrics, settings.memory),
        kind=CheckKind.RESOURCE,
        timeout_seconds=timeout,
    ))

    return registry


__all__ = [
    "build_registry",
    # Liveness
    "HttpLivenessProbe",
    "WahaSessionProbe",
    # Readiness
    "CommandReadinessProbe",
    "PostgresReadinessProbe",
    "ComposeServicesProbe",
    # Resource
    "ResourceThresholdProbe",
]
