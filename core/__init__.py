# ============================================================================
# CORE MODULE
# ============================================================================
# EPOCH: 1 - HEALTH PASS
# STATUS: Core module initialization
# PURPOSE: Export errors and configuration
# CREATED: 18 OCT 2026
# ============================================================================

from core.errors import (
    StackwatchError,
    ConfigError,
    DuplicateNameError,
    MeasurementUnavailable,
    MetricUnavailable,
    NotificationError,
)
from core.config import HealthSettings, ThresholdPair

__all__ = [
    # Errors
    "StackwatchError",
    "ConfigError",
    "DuplicateNameError",
    "MeasurementUnavailable",
    "MetricUnavailable",
    "NotificationError",
    # Config
    "HealthSettings",
    "ThresholdPair",
]
