# ============================================================================
# HTTP LIVENESS CHECKS
# ============================================================================
# EPOCH: 1 - HEALTH PASS
# STATUS: Infrastructure - HTTP endpoint probes
# PURPOSE: n8n liveness endpoint and WAHA WhatsApp session status
# CREATED: 18 OCT 2026
# ============================================================================
"""
HTTP Liveness Checks

- HttpLivenessProbe: GET a URL, OK only for accepted status codes
- WahaSessionProbe: WAHA session state (WORKING / SCAN_QR_CODE / STOPPED ...)

Timeouts, refused connections and DNS failures are FAIL verdicts: an
endpoint that does not answer is down.
"""

import logging
from typing import Dict, Iterable, Optional

import httpx

from health.core import HealthProbe, ProbeResult

logger = logging.getLogger(__name__)

# WAHA session states that still need operator action but are not broken
WAHA_TRANSITIONAL_STATES = frozenset({"STARTING", "SCAN_QR_CODE"})
WAHA_WORKING_STATE = "WORKING"


def _error_text(error: Exception) -> str:
    return str(error) or type(error).__name__


class HttpLivenessProbe(HealthProbe):
    """
    GET a liveness URL.

    OK if the response code is in accepted_status (default: 200 only).
    """

    def __init__(
        self,
        url: str,
        accepted_status: Iterable[int] = (200,),
        timeout: float = 5.0,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.accepted_status = frozenset(accepted_status)
        self.timeout = timeout
        self.headers = headers or {}
        self._transport = transport

    def describe(self) -> str:
        return f"GET {self.url} (accept {sorted(self.accepted_status)})"

    async def check(self) -> ProbeResult:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(self.url, headers=self.headers)

        except httpx.TimeoutException as e:
            return ProbeResult.fail(
                f"{self.url} did not respond within {self.timeout:g}s ({_error_text(e)})",
                url=self.url,
            )

        except httpx.ConnectError as e:
            return ProbeResult.fail(
                f"cannot connect to {self.url}: {_error_text(e)}",
                url=self.url,
            )

        except httpx.HTTPError as e:
            return ProbeResult.fail(
                f"request to {self.url} failed: {_error_text(e)}",
                url=self.url,
            )

        if response.status_code in self.accepted_status:
            return ProbeResult.ok(
                f"{self.url} returned {response.status_code}",
                url=self.url,
                status_code=response.status_code,
            )

        return ProbeResult.fail(
            f"{self.url} returned HTTP {response.status_code}",
            url=self.url,
            status_code=response.status_code,
        )


class WahaSessionProbe(HealthProbe):
    """
    WAHA WhatsApp session health.

    Reads GET /api/sessions/<session>:
    1. WORKING -> OK
    2. STARTING / SCAN_QR_CODE -> WARN (session needs linking or is booting)
    3. anything else (STOPPED, FAILED, ...) -> FAIL
    """

    def __init__(
        self,
        base_url: str,
        session: str = "default",
        api_key: Optional[str] = None,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.session = session
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    @property
    def url(self) -> str:
        return f"{self.base_url}/api/sessions/{self.session}"

    def describe(self) -> str:
        return f"WAHA session '{self.session}' at {self.base_url}"

    async def check(self) -> ProbeResult:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["X-Api-Key"] = self.api_key

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(self.url, headers=headers)

        except httpx.TimeoutException as e:
            return ProbeResult.fail(
                f"WAHA did not respond within {self.timeout:g}s ({_error_text(e)})",
                url=self.url,
            )

        except httpx.HTTPError as e:
            return ProbeResult.fail(
                f"cannot reach WAHA at {self.url}: {_error_text(e)}",
                url=self.url,
            )

        if response.status_code == 404:
            return ProbeResult.fail(
                f"WAHA session '{self.session}' does not exist",
                url=self.url,
                status_code=404,
            )

        if response.status_code in (401, 403):
            return ProbeResult.fail(
                f"WAHA rejected the API key (HTTP {response.status_code})",
                url=self.url,
                status_code=response.status_code,
            )

        if response.status_code != 200:
            return ProbeResult.fail(
                f"WAHA returned HTTP {response.status_code}",
                url=self.url,
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError:
            return ProbeResult.fail(
                "WAHA returned a non-JSON session response",
                url=self.url,
            )

        state = str(data.get("status", "UNKNOWN")).upper() if isinstance(data, dict) else "UNKNOWN"

        if state == WAHA_WORKING_STATE:
            return ProbeResult.ok(f"WhatsApp session '{self.session}' is {state}", state=state)

        if state in WAHA_TRANSITIONAL_STATES:
            return ProbeResult.warn(
                f"WhatsApp session '{self.session}' is {state}",
                state=state,
            )

        return ProbeResult.fail(
            f"WhatsApp session '{self.session}' is {state}",
            state=state,
        )


__all__ = [
    "HttpLivenessProbe",
    "WahaSessionProbe",
]
