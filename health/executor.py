# ============================================================================
# HEALTH CHECK EXECUTOR
# ============================================================================
# EPOCH: 1 - HEALTH PASS
# STATUS: Infrastructure - Pass execution
# PURPOSE: Run every registered probe with timeouts and build the RunReport
# CREATED: 18 OCT 2026
# ============================================================================
"""
Health Check Executor

Executes one pass over the registry with:
- Concurrent execution (default) or strictly sequential execution
- Per-check timeouts
- A pass-level deadline; probes still running at the deadline are
  cancelled and recorded as FAIL
- Conversion of every probe error into an outcome

Error mapping:
- probe returned ProbeResult      -> as reported
- probe exceeded its timeout      -> FAIL "timed out after Ns"
- MeasurementUnavailable raised   -> UnavailablePolicy for the check kind
- any other exception             -> FAIL with the exception text

The report always holds one outcome per registered check, in registration
order, regardless of completion order.
"""

import asyncio
import logging
import time
from typing import Dict, List, Mapping, Optional

from core.errors import MeasurementUnavailable
from core.logging import log_context
from health.core import (
    CheckDefinition,
    CheckKind,
    CheckOutcome,
    CheckStatus,
    ProbeResult,
    RunReport,
)
from health.registry import CheckRegistry

logger = logging.getLogger(__name__)

# Grace period for cancelled probes to release subprocesses and sockets
CANCEL_GRACE_SECONDS = 1.0


class UnavailablePolicy:
    """
    Maps a check kind to the status recorded when its probe cannot measure.

    A resource probe that cannot read a metric is not proof of failure, so
    it defaults to WARN; liveness and readiness default to FAIL.
    """

    DEFAULTS: Dict[CheckKind, CheckStatus] = {
        CheckKind.LIVENESS: CheckStatus.FAIL,
        CheckKind.READINESS: CheckStatus.FAIL,
        CheckKind.RESOURCE: CheckStatus.WARN,
    }

    def __init__(self, overrides: Optional[Mapping[CheckKind, CheckStatus]] = None):
        self._statuses = dict(self.DEFAULTS)
        if overrides:
            for kind, status in overrides.items():
                if status == CheckStatus.OK:
                    raise ValueError("An unavailable measurement cannot map to OK")
                self._statuses[kind] = status

    @classmethod
    def from_settings(cls, settings) -> "UnavailablePolicy":
        """Build from UnavailablePolicySettings (lowercase 'warn'/'fail')."""
        return cls({
            CheckKind.LIVENESS: CheckStatus(settings.liveness.upper()),
            CheckKind.READINESS: CheckStatus(settings.readiness.upper()),
            CheckKind.RESOURCE: CheckStatus(settings.resource.upper()),
        })

    def status_for(self, kind: CheckKind) -> CheckStatus:
        return self._statuses[kind]


class Aggregator:
    """
    Runs all registered checks and collects a RunReport.

    Never short-circuits: every registered check produces an outcome.
    """

    def __init__(
        self,
        policy: Optional[UnavailablePolicy] = None,
        pass_timeout: float = 60.0,
        concurrent: bool = True,
    ):
        """
        Initialize aggregator.

        Args:
            policy: Unavailable-measurement policy (defaults if None)
            pass_timeout: Wall-clock budget for the whole pass
            concurrent: Run probes in parallel tasks
        """
        if pass_timeout <= 0:
            raise ValueError("pass_timeout must be positive")
        self.policy = policy or UnavailablePolicy()
        self.pass_timeout = pass_timeout
        self.concurrent = concurrent

    def run_pass(self, registry: CheckRegistry) -> RunReport:
        """Synchronous entry point for one pass."""
        return asyncio.run(self.run_all(registry))

    async def run_all(self, registry: CheckRegistry) -> RunReport:
        """
        Execute all registered checks.

        Returns:
            RunReport with one outcome per check, in registration order
        """
        start_time = time.monotonic()
        definitions = registry.all()

        if self.concurrent:
            outcomes = await self._run_concurrent(definitions)
        else:
            outcomes = await self._run_sequential(definitions, start_time)

        total_duration_ms = (time.monotonic() - start_time) * 1000
        report = RunReport(outcomes=tuple(outcomes), total_duration_ms=total_duration_ms)

        logger.debug(
            f"Pass complete: {report.overall_status.value} "
            f"({len(report.failures)} failed, {len(report.warnings)} warnings, "
            f"{total_duration_ms:.1f}ms)"
        )
        return report

    async def _run_concurrent(
        self,
        definitions: List[CheckDefinition],
    ) -> List[CheckOutcome]:
        """Run every check as its own task and wait up to the pass deadline."""
        if not definitions:
            return []

        start_time = time.monotonic()
        tasks = [
            asyncio.create_task(self._execute_check(definition))
            for definition in definitions
        ]

        done, pending = await asyncio.wait(
            tasks,
            timeout=self.pass_timeout,
            return_when=asyncio.ALL_COMPLETED,
        )

        if pending:
            logger.warning(
                f"Pass deadline ({self.pass_timeout:g}s) exceeded, "
                f"abandoning {len(pending)} check(s)"
            )
            for task in pending:
                task.cancel()
            await asyncio.wait(pending, timeout=CANCEL_GRACE_SECONDS)

        elapsed_ms = (time.monotonic() - start_time) * 1000
        outcomes = []
        for definition, task in zip(definitions, tasks):
            if task in done:
                outcomes.append(task.result())
            else:
                outcomes.append(self._deadline_outcome(definition, elapsed_ms))
        return outcomes

    async def _run_sequential(
        self,
        definitions: List[CheckDefinition],
        start_time: float,
    ) -> List[CheckOutcome]:
        """Run checks one after another, within the pass deadline."""
        outcomes = []
        for definition in definitions:
            remaining = self.pass_timeout - (time.monotonic() - start_time)
            if remaining <= 0:
                outcomes.append(self._deadline_outcome(definition, 0.0))
                continue

            timeout = min(definition.timeout_seconds, remaining)
            outcomes.append(await self._execute_check(definition, timeout=timeout))
        return outcomes

    async def _execute_check(
        self,
        definition: CheckDefinition,
        timeout: Optional[float] = None,
    ) -> CheckOutcome:
        """Execute a single check with timeout; never raises."""
        timeout = definition.timeout_seconds if timeout is None else timeout
        start_time = time.monotonic()

        with log_context(check=definition.name, kind=definition.kind.value):
            try:
                result = await asyncio.wait_for(definition.probe.check(), timeout=timeout)
                if not isinstance(result, ProbeResult):
                    raise TypeError(
                        f"probe returned {type(result).__name__}, expected ProbeResult"
                    )
                status = CheckStatus(result.status)
                message = str(result.message or "")
                details = dict(result.details)

            except asyncio.TimeoutError:
                logger.warning(f"Health check {definition.name} timed out after {timeout:g}s")
                status = CheckStatus.FAIL
                message = f"timed out after {timeout:g}s"
                details = {}

            except MeasurementUnavailable as e:
                status = self.policy.status_for(definition.kind)
                message = f"unable to verify: {e}"
                details = {"unavailable": True}
                logger.info(f"Health check {definition.name} could not measure: {e}")

            except Exception as e:
                logger.error(f"Health check {definition.name} crashed: {e}", exc_info=True)
                status = CheckStatus.FAIL
                message = f"{type(e).__name__}: {e}" if str(e) else type(e).__name__
                details = {"exception_type": type(e).__name__}

        if status != CheckStatus.OK and not message:
            message = f"{definition.name} reported {status.value} without detail"

        duration_ms = (time.monotonic() - start_time) * 1000
        logger.debug(f"Health check {definition.name}: {status.value} ({duration_ms:.1f}ms)")

        return CheckOutcome(
            name=definition.name,
            status=status,
            message=message,
            kind=definition.kind,
            duration_ms=duration_ms,
            details=details,
        )

    def _deadline_outcome(self, definition: CheckDefinition, elapsed_ms: float) -> CheckOutcome:
        return CheckOutcome(
            name=definition.name,
            status=CheckStatus.FAIL,
            message=f"timed out after {self.pass_timeout:g}s (pass deadline)",
            kind=definition.kind,
            duration_ms=elapsed_ms,
            details={"pass_deadline": True},
        )


__all__ = [
    "Aggregator",
    "UnavailablePolicy",
]
