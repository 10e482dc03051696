# ============================================================================
# RESOURCE THRESHOLD CHECKS
# ============================================================================
# EPOCH: 1 - HEALTH PASS
# STATUS: Infrastructure - Host capacity probes
# PURPOSE: Disk and memory usage against warning/critical thresholds
# CREATED: 18 OCT 2026
# ============================================================================
"""
Resource Threshold Checks

value <  warn          -> OK
warn <= value < crit   -> WARN
value >= crit          -> FAIL

Thresholds are configuration (ThresholdPair). Readings come from a
SystemMetrics backend; an unreadable or non-numeric reading raises
MetricUnavailable and is resolved by the aggregator's policy.
"""

import asyncio
import logging
import math
from typing import Callable

from core.config.settings import ThresholdPair
from core.errors import MetricUnavailable
from health.core import CheckStatus, HealthProbe, ProbeResult
from health.metrics import SystemMetrics

logger = logging.getLogger(__name__)


def classify(value: float, thresholds: ThresholdPair) -> CheckStatus:
    """Map a percentage onto OK / WARN / FAIL."""
    if value >= thresholds.crit:
        return CheckStatus.FAIL
    if value >= thresholds.warn:
        return CheckStatus.WARN
    return CheckStatus.OK


def _pct(value: float) -> str:
    return f"{round(value, 1):g}%"


class ResourceThresholdProbe(HealthProbe):
    """Compare one numeric percentage against warn/crit thresholds."""

    def __init__(
        self,
        label: str,
        reader: Callable[[], float],
        thresholds: ThresholdPair,
    ):
        self.label = label
        self.reader = reader
        self.thresholds = thresholds

    @classmethod
    def disk(cls, metrics: SystemMetrics, path: str, thresholds: ThresholdPair) -> "ResourceThresholdProbe":
        return cls(f"disk usage on {path}", lambda: metrics.disk_usage_percent(path), thresholds)

    @classmethod
    def memory(cls, metrics: SystemMetrics, thresholds: ThresholdPair) -> "ResourceThresholdProbe":
        return cls("memory usage", metrics.memory_usage_percent, thresholds)

    def describe(self) -> str:
        return (
            f"{self.label} (warn {_pct(self.thresholds.warn)}, "
            f"critical {_pct(self.thresholds.crit)})"
        )

    async def check(self) -> ProbeResult:
        # Readers may block on filesystem calls
        raw = await asyncio.to_thread(self.reader)

        try:
            value = float(raw)
        except (TypeError, ValueError) as e:
            raise MetricUnavailable(self.label, f"non-numeric reading {raw!r}") from e
        if math.isnan(value) or math.isinf(value):
            raise MetricUnavailable(self.label, f"invalid reading {raw!r}")

        status = classify(value, self.thresholds)
        details = {
            "value": round(value, 2),
            "warn_threshold": self.thresholds.warn,
            "crit_threshold": self.thresholds.crit,
        }

        if status == CheckStatus.FAIL:
            return ProbeResult.fail(
                f"{self.label} {_pct(value)} (threshold {_pct(self.thresholds.crit)})",
                **details,
            )
        if status == CheckStatus.WARN:
            return ProbeResult.warn(
                f"{self.label} {_pct(value)} (threshold {_pct(self.thresholds.warn)})",
                **details,
            )
        return ProbeResult.ok(f"{self.label} {_pct(value)}", **details)


__all__ = [
    "ResourceThresholdProbe",
    "classify",
]
