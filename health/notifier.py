# ============================================================================
# ALERT NOTIFIER
# ============================================================================
# EPOCH: 1 - HEALTH PASS
# STATUS: Infrastructure - Consolidated alert delivery
# PURPOSE: Turn a non-OK RunReport into one message and send it once
# CREATED: 18 OCT 2026
# ============================================================================
"""
Alert Notifier

One pass produces at most one alert: failures and warnings are batched into
a single message. Delivery is best-effort; the process exit code is the
durable health signal, so delivery errors are logged and dropped.

Sinks:
- TelegramSink: Telegram Bot API sendMessage (HTML parse mode)
- LogOnlySink: used when no bot token / chat id is configured
"""

import html
import logging
import re
from abc import ABC, abstractmethod
from typing import Optional

import httpx

from core.errors import NotificationError
from health.core import CheckOutcome, CheckStatus, RunReport

logger = logging.getLogger(__name__)

FAIL_ICON = "🔴"
WARN_ICON = "⚠️"
OK_ICON = "✅"

# Telegram rejects messages longer than this
TELEGRAM_MAX_MESSAGE_CHARS = 4096
TRUNCATION_MARKER = "\n…"

_TRAILING_PARTIAL_MARKUP = re.compile(r"(&[#\w]*|<[^<>]*)$")


def truncate_html(message: str, limit: int = TELEGRAM_MAX_MESSAGE_CHARS) -> str:
    """
    Shorten an HTML message without cutting through a tag or an entity.

    Cuts back to the last complete line and appends a marker. A message with
    no line break inside the limit is hard-cut with any dangling `&...` or
    `<...` removed.
    """
    if len(message) <= limit:
        return message
    cut = message.rfind("\n", 0, limit - len(TRUNCATION_MARKER) + 1)
    if cut > 0:
        return message[:cut] + TRUNCATION_MARKER
    return _TRAILING_PARTIAL_MARKUP.sub("", message[:limit])


class AlertSink(ABC):
    """External channel receiving consolidated alerts."""

    name: str = "sink"

    @abstractmethod
    async def send(self, message: str) -> None:
        """
        Send one message.

        Raises:
            NotificationError: If the channel rejected or never received it
        """
        pass


class LogOnlySink(AlertSink):
    """Sink for hosts without alert credentials; the audit log is the record."""

    name = "log"

    async def send(self, message: str) -> None:
        logger.info("No alert sink configured, alert not sent")


class TelegramSink(AlertSink):
    """Telegram Bot API sendMessage."""

    name = "telegram"

    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        api_url: str = "https://api.telegram.org",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not bot_token or not chat_id:
            raise ValueError("Telegram sink needs both a bot token and a chat id")
        self._bot_token = bot_token
        self.chat_id = chat_id
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @property
    def endpoint(self) -> str:
        return f"{self.api_url}/bot{self._bot_token}/sendMessage"

    def _redact(self, text: str) -> str:
        return text.replace(self._bot_token, "***")

    async def send(self, message: str) -> None:
        payload = {
            "chat_id": self.chat_id,
            "text": truncate_html(message),
            "parse_mode": "HTML",
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.endpoint, data=payload)
        except httpx.HTTPError as e:
            raise NotificationError(
                self._redact(f"Telegram request failed: {str(e) or type(e).__name__}")
            ) from e

        if response.status_code != 200:
            raise NotificationError(
                self._redact(f"Telegram returned HTTP {response.status_code}: {response.text[:200]}"),
                status_code=response.status_code,
            )


class Notifier:
    """Formats a RunReport and delivers it to the sink once per pass."""

    def __init__(self, sink: Optional[AlertSink] = None, host_name: str = "localhost"):
        self.sink = sink or LogOnlySink()
        self.host_name = host_name

    def format(self, report: RunReport) -> str:
        """
        Build the consolidated alert.

        Header with host and counts, then one line per FAIL, then one per WARN.
        """
        failures = report.failures
        warnings = report.warnings

        if failures:
            header = f"{FAIL_ICON} <b>HEALTH ALERT</b> on {html.escape(self.host_name)}"
        else:
            header = f"{WARN_ICON} <b>HEALTH WARNING</b> on {html.escape(self.host_name)}"

        lines = [
            header,
            f"Failures ({len(failures)}), Warnings ({len(warnings)})",
            "",
        ]
        lines.extend(_outcome_line(FAIL_ICON, "FAIL", o) for o in failures)
        lines.extend(_outcome_line(WARN_ICON, "WARN", o) for o in warnings)
        return "\n".join(lines)

    async def deliver(self, message: str, sink: Optional[AlertSink] = None) -> bool:
        """
        Send a formatted message. Never raises.

        Returns:
            True if the sink accepted the message
        """
        sink = sink or self.sink
        try:
            await sink.send(message)
        except NotificationError as e:
            logger.warning(f"Alert delivery via {sink.name} failed: {e}")
            return False
        except Exception as e:
            logger.warning(f"Alert delivery via {sink.name} failed unexpectedly: {type(e).__name__}: {e}")
            return False

        logger.info(f"Alert delivered via {sink.name}")
        return True

    async def notify(self, report: RunReport) -> bool:
        """
        Alert on a non-OK report; log success otherwise.

        Returns:
            True if an alert was delivered
        """
        if report.overall_status == CheckStatus.OK:
            logger.info(f"{OK_ICON} All services healthy ({len(report.outcomes)} checks)")
            return False

        return await self.deliver(self.format(report))


def _outcome_line(icon: str, label: str, outcome: CheckOutcome) -> str:
    return f"{icon} {label} <b>{html.escape(outcome.name)}</b>: {html.escape(outcome.message)}"


__all__ = [
    "AlertSink",
    "LogOnlySink",
    "TelegramSink",
    "Notifier",
    "truncate_html",
]
