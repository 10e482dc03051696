# ============================================================================
# SYSTEM METRICS BACKENDS
# ============================================================================
# EPOCH: 1 - HEALTH PASS
# STATUS: Infrastructure - Host resource readings
# PURPOSE: Disk and memory usage percentages behind one interface
# CREATED: 18 OCT 2026
# ============================================================================
"""
System Metrics

Resource probes read percentages through a SystemMetrics backend so that
operating-system specific accounting stays out of the probes:

- PsutilMetrics: psutil, any supported OS
- ProcfsMetrics: Linux /proc/meminfo (MemAvailable) and statvfs, with the
  same used / (used + available) formula df uses

Any failure to read or parse a value raises MetricUnavailable; backends
never guess a default percentage.
"""

import os
import sys
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Union

import psutil

from core.config.settings import MetricsBackendName
from core.errors import MetricUnavailable


class SystemMetrics(ABC):
    """Source of host resource usage percentages (0-100)."""

    name: str = "abstract"

    @abstractmethod
    def disk_usage_percent(self, path: str) -> float:
        """Used space of the filesystem holding path."""
        pass

    @abstractmethod
    def memory_usage_percent(self) -> float:
        """Memory in use, excluding reclaimable cache."""
        pass


class PsutilMetrics(SystemMetrics):
    """Cross-platform backend using psutil."""

    name = "psutil"

    def disk_usage_percent(self, path: str) -> float:
        try:
            return float(psutil.disk_usage(path).percent)
        except (OSError, psutil.Error) as e:
            raise MetricUnavailable(f"disk usage of {path}", str(e)) from e

    def memory_usage_percent(self) -> float:
        try:
            return float(psutil.virtual_memory().percent)
        except (OSError, psutil.Error) as e:
            raise MetricUnavailable("memory usage", str(e)) from e


class ProcfsMetrics(SystemMetrics):
    """Linux backend reading /proc/meminfo and statvfs directly."""

    name = "procfs"

    def __init__(self, meminfo_path: Union[str, Path] = "/proc/meminfo"):
        self.meminfo_path = Path(meminfo_path)

    def disk_usage_percent(self, path: str) -> float:
        try:
            stats = os.statvfs(path)
        except OSError as e:
            raise MetricUnavailable(f"disk usage of {path}", str(e)) from e

        used = (stats.f_blocks - stats.f_bfree) * stats.f_frsize
        available = stats.f_bavail * stats.f_frsize
        if used + available <= 0:
            raise MetricUnavailable(f"disk usage of {path}", "filesystem reports zero size")
        return used / (used + available) * 100

    def memory_usage_percent(self) -> float:
        try:
            text = self.meminfo_path.read_text()
        except OSError as e:
            raise MetricUnavailable("memory usage", str(e)) from e

        fields = parse_meminfo(text)
        total = fields.get("MemTotal")
        if not total:
            raise MetricUnavailable("memory usage", "MemTotal missing from meminfo")

        available = fields.get("MemAvailable")
        if available is None:
            # Kernels before 3.14 have no MemAvailable
            try:
                available = fields["MemFree"] + fields["Buffers"] + fields["Cached"]
            except KeyError as e:
                raise MetricUnavailable("memory usage", f"{e.args[0]} missing from meminfo") from e

        return (total - available) / total * 100


def parse_meminfo(text: str) -> Dict[str, int]:
    """Parse `Key:   12345 kB` lines into a dict of kB values."""
    fields: Dict[str, int] = {}
    for line in text.splitlines():
        key, sep, rest = line.partition(":")
        if not sep:
            continue
        parts = rest.split()
        if not parts:
            continue
        try:
            fields[key.strip()] = int(parts[0])
        except ValueError:
            continue
    return fields


def get_metrics_backend(
    name: Union[str, MetricsBackendName] = MetricsBackendName.AUTO,
    platform: str = sys.platform,
) -> SystemMetrics:
    """
    Select a metrics backend.

    `auto` uses procfs on Linux and psutil everywhere else.
    """
    backend = MetricsBackendName(name)
    if backend == MetricsBackendName.AUTO:
        backend = MetricsBackendName.PROCFS if platform.startswith("linux") else MetricsBackendName.PSUTIL

    if backend == MetricsBackendName.PROCFS:
        return ProcfsMetrics()
    return PsutilMetrics()


__all__ = [
    "SystemMetrics",
    "PsutilMetrics",
    "ProcfsMetrics",
    "parse_meminfo",
    "get_metrics_backend",
]
