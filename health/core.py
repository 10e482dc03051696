# ============================================================================
# HEALTH CHECK CORE TYPES
# ============================================================================
# EPOCH: 1 - HEALTH PASS
# STATUS: Infrastructure - Base classes for health checks
# PURPOSE: Probe interface, outcomes and the per-pass report
# CREATED: 18 OCT 2026
# ============================================================================
"""
Health Check Core Types

Defines the probe interface and result types for health checks.

Status Hierarchy (worst wins):
- OK: check passed
- WARN: degraded or unable to verify (notifies, does not fail the pass)
- FAIL: unhealthy (notifies and fails the pass)

Kinds (reporting only):
- liveness: is the service answering at all
- readiness: can the dependency accept work
- resource: host capacity thresholds
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
from dataclasses import dataclass, field
from datetime import datetime


class CheckStatus(str, Enum):
    """Tri-state outcome of a probe."""
    OK = "OK"
    WARN = "WARN"
    FAIL = "FAIL"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]

    def __lt__(self, other: "CheckStatus") -> bool:
        """Enable comparison for 'worst wins' aggregation."""
        return self.severity < other.severity

    @classmethod
    def aggregate(cls, statuses: List["CheckStatus"]) -> "CheckStatus":
        """Aggregate multiple statuses (worst wins)."""
        if not statuses:
            return cls.OK
        return max(statuses, key=lambda s: s.severity)


_SEVERITY = {
    CheckStatus.OK: 0,
    CheckStatus.WARN: 1,
    CheckStatus.FAIL: 2,
}


class CheckKind(str, Enum):
    """Probe classification for reporting and unavailable-measurement policy."""
    LIVENESS = "liveness"
    READINESS = "readiness"
    RESOURCE = "resource"


@dataclass
class ProbeResult:
    """Verdict returned by a probe, before the aggregator names and stamps it."""
    status: CheckStatus
    message: str = ""
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, message: str = "", **details) -> "ProbeResult":
        return cls(status=CheckStatus.OK, message=message, details=details)

    @classmethod
    def warn(cls, message: str, **details) -> "ProbeResult":
        return cls(status=CheckStatus.WARN, message=message, details=details)

    @classmethod
    def fail(cls, message: str, **details) -> "ProbeResult":
        return cls(status=CheckStatus.FAIL, message=message, details=details)


@dataclass(frozen=True)
class CheckOutcome:
    """Result of one probe execution within a pass."""
    name: str
    status: CheckStatus
    message: str
    timestamp: datetime = field(default_factory=datetime.now)
    kind: Optional[CheckKind] = None
    duration_ms: float = 0.0
    details: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not isinstance(self.status, CheckStatus):
            raise ValueError(f"Invalid check status: {self.status!r}")
        if self.status != CheckStatus.OK and not self.message:
            raise ValueError(f"Check '{self.name}' is {self.status.value} without a message")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON output."""
        result = {
            "name": self.name,
            "status": self.status.value,
            "timestamp": self.timestamp.isoformat(),
            "duration_ms": round(self.duration_ms, 2),
        }
        if self.kind is not None:
            result["kind"] = self.kind.value
        if self.message:
            result["message"] = self.message
        if self.details:
            result["details"] = self.details
        return result


@dataclass(frozen=True)
class RunReport:
    """Immutable aggregate of one pass, outcomes in registration order."""
    outcomes: Tuple[CheckOutcome, ...]
    total_duration_ms: float = 0.0
    checked_at: datetime = field(default_factory=datetime.now)

    @property
    def failures(self) -> Tuple[CheckOutcome, ...]:
        return tuple(o for o in self.outcomes if o.status == CheckStatus.FAIL)

    @property
    def warnings(self) -> Tuple[CheckOutcome, ...]:
        return tuple(o for o in self.outcomes if o.status == CheckStatus.WARN)

    @property
    def overall_status(self) -> CheckStatus:
        return CheckStatus.aggregate([o.status for o in self.outcomes])

    @property
    def exit_code(self) -> int:
        """Process exit status: non-zero only when something FAILed."""
        return 1 if self.overall_status == CheckStatus.FAIL else 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "status": self.overall_status.value,
            "failures": len(self.failures),
            "warnings": len(self.warnings),
            "checks": [o.to_dict() for o in self.outcomes],
            "total_duration_ms": round(self.total_duration_ms, 2),
            "checked_at": self.checked_at.isoformat(),
        }


class HealthProbe(ABC):
    """
    Base class for probes.

    A probe performs one bounded external call (HTTP request, subprocess,
    local system read) and returns a ProbeResult. Probes do not retry and
    do not enforce their own timeout; the aggregator does.

    A probe that cannot measure raises MeasurementUnavailable; the
    aggregator maps that to WARN or FAIL depending on the check kind.

    Example:
        class PingProbe(HealthProbe):
            async def check(self) -> ProbeResult:
                return ProbeResult.ok("pong")
    """

    @abstractmethod
    async def check(self) -> ProbeResult:
        """
        Execute the probe.

        Returns:
            ProbeResult with status and message
        """
        pass

    def describe(self) -> str:
        """Short human description used by --list-checks."""
        return type(self).__name__


@dataclass(frozen=True)
class CheckDefinition:
    """Static registration entry for one check."""
    name: str
    probe: HealthProbe
    kind: CheckKind
    timeout_seconds: float = 5.0

    def __post_init__(self):
        if not self.name:
            raise ValueError("Check name must not be empty")
        if self.timeout_seconds <= 0:
            raise ValueError(f"Check '{self.name}' timeout must be positive")
