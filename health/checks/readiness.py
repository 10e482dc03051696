# ============================================================================
# READINESS CHECKS
# ============================================================================
# EPOCH: 1 - HEALTH PASS
# STATUS: Infrastructure - Dependency readiness probes
# PURPOSE: PostgreSQL readiness and Docker Compose service state
# CREATED: 18 OCT 2026
# ============================================================================
"""
Readiness Checks

- CommandReadinessProbe: run a command, exit status 0 means ready
  (default use: `docker compose exec -T postgres pg_isready -U <user>`)
- PostgresReadinessProbe: direct psycopg connection and `SELECT 1`
- ComposeServicesProbe: every listed compose service is `running`

None of these take locks or hold connections beyond the call, so running
them alongside other probes against the same dependency is safe.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Sequence, Tuple

import psycopg

from core.errors import MeasurementUnavailable
from health.core import HealthProbe, ProbeResult

logger = logging.getLogger(__name__)

# Longest slice of command output carried into a message
OUTPUT_EXCERPT_CHARS = 200


def _excerpt(output: bytes) -> str:
    text = output.decode("utf-8", errors="replace").strip()
    if len(text) > OUTPUT_EXCERPT_CHARS:
        text = text[:OUTPUT_EXCERPT_CHARS] + "..."
    return text


async def run_command(argv: Sequence[str]) -> Tuple[int, bytes, bytes]:
    """
    Run a command and capture its output.

    The child is killed if the awaiting task is cancelled (probe timeout or
    pass deadline).

    Raises:
        MeasurementUnavailable: If the executable cannot be started
    """
    try:
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except (FileNotFoundError, PermissionError) as e:
        raise MeasurementUnavailable(f"cannot run {argv[0]}: {e}") from e

    try:
        stdout, stderr = await process.communicate()
    finally:
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
            await process.wait()

    return process.returncode, stdout, stderr


class CommandReadinessProbe(HealthProbe):
    """Ready when the command exits with status 0."""

    def __init__(self, argv: Sequence[str], service: str):
        if not argv:
            raise ValueError("Readiness command must not be empty")
        self.argv = list(argv)
        self.service = service

    @classmethod
    def pg_isready(
        cls,
        compose_file: str,
        user: str,
        compose_service: str = "postgres",
    ) -> "CommandReadinessProbe":
        """pg_isready inside the compose service container."""
        return cls(
            [
                "docker", "compose", "-f", compose_file,
                "exec", "-T", compose_service,
                "pg_isready", "-U", user,
            ],
            service="PostgreSQL",
        )

    def describe(self) -> str:
        return " ".join(self.argv)

    async def check(self) -> ProbeResult:
        returncode, stdout, stderr = await run_command(self.argv)

        if returncode == 0:
            return ProbeResult.ok(f"{self.service} is ready", output=_excerpt(stdout))

        detail = _excerpt(stderr) or _excerpt(stdout) or "no output"
        return ProbeResult.fail(
            f"{self.service} is not ready (exit {returncode}): {detail}",
            returncode=returncode,
        )


class PostgresReadinessProbe(HealthProbe):
    """
    PostgreSQL readiness over a direct connection.

    Opens a fresh connection per check; never shares or pools it.
    """

    def __init__(self, conninfo: str, connect_timeout: int = 5, label: str = "PostgreSQL"):
        self.conninfo = conninfo
        self.connect_timeout = connect_timeout
        self.label = label

    def describe(self) -> str:
        return f"{self.label} SELECT 1"

    async def check(self) -> ProbeResult:
        try:
            async with await psycopg.AsyncConnection.connect(
                self.conninfo,
                connect_timeout=self.connect_timeout,
                autocommit=True,
            ) as conn:
                async with conn.cursor() as cur:
                    await cur.execute("SELECT 1")
                    row = await cur.fetchone()

        except psycopg.OperationalError as e:
            return ProbeResult.fail(f"{self.label} connection failed: {e}")

        except psycopg.Error as e:
            return ProbeResult.fail(f"{self.label} query failed: {e}")

        if not row or row[0] != 1:
            return ProbeResult.fail(f"{self.label} returned unexpected result: {row!r}")

        return ProbeResult.ok(f"{self.label} is ready")


class ComposeServicesProbe(HealthProbe):
    """
    Every expected compose service has a running container.

    Parses `docker compose ps --format json`, which prints either one JSON
    array or one JSON object per line depending on the compose version.
    """

    def __init__(self, compose_file: str, services: Sequence[str]):
        if not services:
            raise ValueError("At least one service is required")
        self.compose_file = compose_file
        self.services = list(services)

    @property
    def argv(self) -> List[str]:
        return ["docker", "compose", "-f", self.compose_file, "ps", "--all", "--format", "json"]

    def describe(self) -> str:
        return f"compose services running: {', '.join(self.services)}"

    async def check(self) -> ProbeResult:
        returncode, stdout, stderr = await run_command(self.argv)
        if returncode != 0:
            raise MeasurementUnavailable(
                f"docker compose ps failed (exit {returncode}): {_excerpt(stderr) or 'no output'}"
            )

        states = {
            entry.get("Service"): str(entry.get("State", "unknown")).lower()
            for entry in parse_compose_ps(stdout.decode("utf-8", errors="replace"))
        }

        down = []
        for service in self.services:
            state = states.get(service, "missing")
            if state != "running":
                down.append(f"{service} ({state})")

        if down:
            return ProbeResult.fail(
                f"services not running: {', '.join(down)}",
                states=states,
            )
        return ProbeResult.ok(f"{len(self.services)} service(s) running", states=states)


def parse_compose_ps(output: str) -> List[Dict[str, Any]]:
    """
    Parse `docker compose ps --format json` output.

    Raises:
        MeasurementUnavailable: If the output is not valid JSON
    """
    output = output.strip()
    if not output:
        return []

    try:
        if output.startswith("["):
            entries = json.loads(output)
        else:
            entries = [json.loads(line) for line in output.splitlines() if line.strip()]
    except json.JSONDecodeError as e:
        raise MeasurementUnavailable(f"unparsable docker compose ps output: {e}") from e

    return [entry for entry in entries if isinstance(entry, dict)]


__all__ = [
    "CommandReadinessProbe",
    "PostgresReadinessProbe",
    "ComposeServicesProbe",
    "parse_compose_ps",
    "run_command",
]
