# ============================================================================
# VERSION - STACKWATCH
# ============================================================================
# EPOCH: 1 - HEALTH PASS
# ============================================================================
"""
Version information for Stackwatch.

This is the single source of truth for the application version.
Updated manually for each release.
"""
__version__ = "0.1.0"
__version_info__ = tuple(int(x) for x in __version__.split("."))

BUILD_DATE = "2026-10-18"
EPOCH = 1
CODENAME = "Health Pass"
