# ============================================================================
# CONFIGURATION MODULE
# ============================================================================
# EPOCH: 1 - HEALTH PASS
# STATUS: Core - Configuration
# PURPOSE: Centralized configuration management
# CREATED: 18 OCT 2026
# ============================================================================
"""
Configuration Module

Typed, validated settings for the health aggregator.
"""

from core.config.settings import (
    HealthSettings,
    ThresholdPair,
    TelegramSettings,
    PostgresSettings,
    PostgresCheckMode,
    WahaSettings,
    UnavailablePolicySettings,
    MetricsBackendName,
)

__all__ = [
    "HealthSettings",
    "ThresholdPair",
    "TelegramSettings",
    "PostgresSettings",
    "PostgresCheckMode",
    "WahaSettings",
    "UnavailablePolicySettings",
    "MetricsBackendName",
]
