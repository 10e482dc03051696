# ============================================================================
# HEALTH CHECK REGISTRY
# ============================================================================
# EPOCH: 1 - HEALTH PASS
# STATUS: Infrastructure - Check registration
# PURPOSE: Ordered collection of named checks for one pass
# CREATED: 18 OCT 2026
# ============================================================================
"""
Health Check Registry

Holds the fixed, ordered list of checks to run. Registration order is
significant: it is the report order, and by convention liveness checks
are registered before readiness and resource checks.

The registry is built once per invocation (see health.checks.build_registry)
and discarded at exit; there is no global instance and no removal.

Usage:
    registry = CheckRegistry()
    registry.register(CheckDefinition("n8n", HttpLivenessProbe(url), CheckKind.LIVENESS))

    for definition in registry.all():
        ...
"""

import logging
from typing import Dict, Iterator, List, Optional

from core.errors import DuplicateNameError
from health.core import CheckDefinition

logger = logging.getLogger(__name__)


class CheckRegistry:
    """Registry of check definitions, in registration order."""

    def __init__(self):
        self._checks: Dict[str, CheckDefinition] = {}

    def register(self, definition: CheckDefinition) -> None:
        """
        Register a check definition.

        Raises:
            DuplicateNameError: If a check with the same name is registered
        """
        if definition.name in self._checks:
            raise DuplicateNameError(definition.name)

        self._checks[definition.name] = definition
        logger.debug(
            f"Registered health check: {definition.name} "
            f"(kind={definition.kind.value}, timeout={definition.timeout_seconds}s)"
        )

    def all(self) -> List[CheckDefinition]:
        """Get all checks in registration order."""
        return list(self._checks.values())

    def get(self, name: str) -> Optional[CheckDefinition]:
        """Get check definition by name."""
        return self._checks.get(name)

    def names(self) -> List[str]:
        return list(self._checks)

    def __len__(self) -> int:
        return len(self._checks)

    def __contains__(self, name: str) -> bool:
        return name in self._checks

    def __iter__(self) -> Iterator[CheckDefinition]:
        return iter(self.all())


__all__ = [
    "CheckRegistry",
]
