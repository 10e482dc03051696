# ============================================================================
# HEALTH PASS RUNNER
# ============================================================================
# EPOCH: 1 - HEALTH PASS
# STATUS: Infrastructure - One complete pass
# PURPOSE: Run checks, write the audit trail, alert once
# CREATED: 18 OCT 2026
# ============================================================================
"""
Health Pass Runner

Ties the pieces of one invocation together:

1. Record pass start
2. Aggregator.run_all() over the registry
3. Record one audit line per outcome
4. Notifier.notify() (skipped with notify=False)
5. Record the summary; warn on stdout if any audit line was lost
6. The caller exits with report.exit_code
"""

import logging
import uuid

from core.logging import AuditLog, log_context
from health.core import CheckStatus, RunReport
from health.executor import Aggregator
from health.notifier import Notifier
from health.registry import CheckRegistry

logger = logging.getLogger(__name__)

_LEVELS = {
    CheckStatus.OK: logging.INFO,
    CheckStatus.WARN: logging.WARNING,
    CheckStatus.FAIL: logging.ERROR,
}


class HealthPass:
    """One stateless health pass; build a new one per invocation."""

    def __init__(
        self,
        registry: CheckRegistry,
        aggregator: Aggregator,
        notifier: Notifier,
        audit: AuditLog,
    ):
        self.registry = registry
        self.aggregator = aggregator
        self.notifier = notifier
        self.audit = audit

    async def run(self, notify: bool = True) -> RunReport:
        pass_id = uuid.uuid4().hex[:12]

        with log_context(pass_id=pass_id):
            self.audit.record("INFO", f"Health pass started ({len(self.registry)} checks)")

            report = await self.aggregator.run_all(self.registry)

            for outcome in report.outcomes:
                line = f"{outcome.name}: {outcome.status.value}"
                if outcome.message:
                    line += f" - {outcome.message}"
                self.audit.record(_LEVELS[outcome.status], line)

            if notify:
                await self.notifier.notify(report)
            elif report.overall_status != CheckStatus.OK:
                self.audit.record("WARN", "Alert suppressed (notifications disabled)")

            self.audit.record(
                _LEVELS[report.overall_status],
                f"Health pass finished: {report.overall_status.value} "
                f"(failures={len(report.failures)}, warnings={len(report.warnings)}, "
                f"{report.total_duration_ms:.0f}ms)",
            )

            write_failures = self.audit.write_failures
            if write_failures:
                logger.warning(
                    f"Audit log incomplete: {write_failures} line(s) could not be "
                    f"written to {self.audit.path}"
                )

        return report


__all__ = [
    "HealthPass",
]
