# ============================================================================
# STRUCTURED LOGGING
# ============================================================================
# EPOCH: 1 - HEALTH PASS
# STATUS: Core - Audit log with size-based rotation
# PURPOSE: Consistent, line-oriented logging for every health pass
# CREATED: 18 OCT 2026
# ============================================================================
"""
Structured Logging

Two outputs share the same records:
- stdout: human lines (default) or JSON (LOG_FORMAT=json), filtered by LOG_LEVEL
- audit file: append-only `[YYYY-MM-DD HH:MM:SS] LEVEL: message` lines,
  rotated to `<file>.old` once the file grows past the configured size.
  AuditLog.record() lines always reach it at INFO and above.

Usage:
    from core.logging import configure_logging, AuditLog, log_context

    configure_logging(level="INFO")
    audit = AuditLog("/var/log/stackwatch", max_bytes=10 * 1024 * 1024)
    audit.ensure_ready()
    audit.record("INFO", "Health pass started")

    with log_context(check="n8n"):
        logger.warning("slow response")
"""

import json
import logging
import os
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field, asdict
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional, Union

AUDIT_LINE_FORMAT = "[%(asctime)s] %(levelname)s: %(message)s"
AUDIT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
ROTATED_SUFFIX = ".old"

AUDIT_LOGGER_NAME = "stackwatch"

# WARN is what operators grep for in the audit file
logging.addLevelName(logging.WARNING, "WARN")


@dataclass
class LogContext:
    """Contextual fields attached to structured records."""
    pass_id: Optional[str] = None
    check: Optional[str] = None
    kind: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict, excluding None values."""
        result = {}
        for key, value in asdict(self).items():
            if value is not None and key != "extra":
                result[key] = value
        if self.extra:
            result.update(self.extra)
        return result


# Context-local storage; each asyncio task gets its own copy
_current_context: ContextVar[LogContext] = ContextVar(
    "stackwatch_log_context", default=LogContext()
)


def get_current_context() -> LogContext:
    """Get current logging context."""
    return _current_context.get()


@contextmanager
def log_context(**kwargs):
    """
    Context manager for adding logging context.

    Example:
        with log_context(check="postgres", kind="readiness"):
            logger.info("probing")
    """
    parent = get_current_context()
    new_context = LogContext(
        pass_id=kwargs.get("pass_id", parent.pass_id),
        check=kwargs.get("check", parent.check),
        kind=kwargs.get("kind", parent.kind),
        extra={**parent.extra, **kwargs.get("extra", {})},
    )
    token = _current_context.set(new_context)
    try:
        yield new_context
    finally:
        _current_context.reset(token)


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    One JSON object per line, for log shippers.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: Dict[str, Any] = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context_dict = get_current_context().to_dict()
        if context_dict:
            log_data["context"] = context_dict

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class AuditFormatter(logging.Formatter):
    """Formats `[YYYY-MM-DD HH:MM:SS] LEVEL: message`."""

    def __init__(self):
        super().__init__(fmt=AUDIT_LINE_FORMAT, datefmt=AUDIT_DATE_FORMAT)


class OldSuffixFileHandler(RotatingFileHandler):
    """
    Rotating file handler that keeps exactly one `.old` generation.

    Rolls over when the file on disk is already larger than maxBytes,
    before the pending record is written. Write failures are counted
    instead of printed.
    """

    def __init__(self, filename: Union[str, Path], max_bytes: int, encoding: str = "utf-8"):
        super().__init__(
            filename,
            maxBytes=max_bytes,
            backupCount=1,
            encoding=encoding,
            delay=True,
        )
        self.namer = _old_suffix_name
        self.write_failures = 0

    def shouldRollover(self, record: logging.LogRecord) -> bool:
        if self.maxBytes <= 0:
            return False
        if self.stream is None:
            self.stream = self._open()
        self.stream.seek(0, os.SEEK_END)
        return self.stream.tell() > self.maxBytes

    def handleError(self, record: logging.LogRecord) -> None:
        self.write_failures += 1


def _old_suffix_name(default_name: str) -> str:
    """Map RotatingFileHandler's `<file>.1` to `<file>.old`."""
    base, _, _ = default_name.rpartition(".")
    return base + ROTATED_SUFFIX


class AuditLog:
    """
    Append-only audit log for health passes.

    Attaches a rotating file handler to the root logger so every module
    logger lands in the audit file as well as on stdout.
    """

    def __init__(
        self,
        log_dir: Union[str, Path],
        filename: str = "healthcheck.log",
        max_bytes: int = 10 * 1024 * 1024,
    ):
        self.log_dir = Path(log_dir)
        self.path = self.log_dir / filename
        self.max_bytes = max_bytes
        self._handler: Optional[OldSuffixFileHandler] = None
        self._logger = logging.getLogger(AUDIT_LOGGER_NAME)
        self._record_failures = 0

    @property
    def rotated_path(self) -> Path:
        return self.path.with_name(self.path.name + ROTATED_SUFFIX)

    @property
    def write_failures(self) -> int:
        """Number of lines that could not be written."""
        handler_failures = self._handler.write_failures if self._handler else 0
        return handler_failures + self._record_failures

    def ensure_ready(self) -> None:
        """
        Create the log directory and attach the file handler.

        Raises:
            OSError: If the directory or file is not writable
        """
        self.log_dir.mkdir(parents=True, exist_ok=True)
        if not os.access(self.log_dir, os.W_OK):
            raise OSError(f"Log directory not writable: {self.log_dir}")
        if self.path.exists() and not os.access(self.path, os.W_OK):
            raise OSError(f"Log file not writable: {self.path}")

        if self._handler is None:
            self._handler = OldSuffixFileHandler(self.path, self.max_bytes)
            self._handler.setFormatter(AuditFormatter())
            logging.getLogger().addHandler(self._handler)

    def rotate_if_oversized(self, max_bytes: Optional[int] = None) -> bool:
        """
        Rename the log file to `.old` if it is larger than max_bytes.

        Returns:
            True if the file was rotated
        """
        limit = self.max_bytes if max_bytes is None else max_bytes
        try:
            if not self.path.exists() or self.path.stat().st_size <= limit:
                return False
            if self._handler is not None:
                self._handler.doRollover()
            else:
                os.replace(self.path, self.rotated_path)
            return True
        except OSError:
            self._record_failures += 1
            return False

    def record(self, level: Union[str, int], message: Any) -> None:
        """Append one line to the audit file and stdout. Never raises."""
        try:
            self._logger.log(_resolve_level(level), "%s", message)
        except Exception:
            self._record_failures += 1

    def close(self) -> None:
        """Detach and close the file handler."""
        if self._handler is not None:
            logging.getLogger().removeHandler(self._handler)
            self._handler.close()
            self._handler = None


def _resolve_level(level: Union[str, int]) -> int:
    if isinstance(level, int):
        return level
    name = str(level).upper()
    if name == "WARN":
        return logging.WARNING
    resolved = logging.getLevelName(name)
    return resolved if isinstance(resolved, int) else logging.INFO


def configure_logging(
    level: Union[str, int] = "INFO",
    json_output: bool = False,
) -> None:
    """
    Configure stdout logging for the process.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_output: Use JSON format (for log shippers)
    """
    if isinstance(level, str):
        level = _resolve_level(level)

    if json_output or os.getenv("LOG_FORMAT", "").lower() == "json":
        formatter: logging.Formatter = StructuredFormatter()
    else:
        formatter = AuditFormatter()

    root = logging.getLogger()
    root.setLevel(level)

    # Audit lines reach the file at INFO whatever the stdout level is
    logging.getLogger(AUDIT_LOGGER_NAME).setLevel(min(level, logging.INFO))

    # Keep any attached audit file handler, replace stream handlers
    for handler in root.handlers[:]:
        if not isinstance(handler, OldSuffixFileHandler):
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(formatter)
    root.addHandler(handler)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


__all__ = [
    "LogContext",
    "StructuredFormatter",
    "AuditFormatter",
    "OldSuffixFileHandler",
    "AuditLog",
    "configure_logging",
    "log_context",
    "get_current_context",
]
