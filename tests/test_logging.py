# ============================================================================
# AUDIT LOG TESTS
# ============================================================================
# EPOCH: 1 - HEALTH PASS
# STATUS: Tests - Line format, rotation, best-effort writes
# PURPOSE: Verify the audit log contract
# CREATED: 18 OCT 2026
# ============================================================================
"""
Audit Log Tests

Covers:
1. `[YYYY-MM-DD HH:MM:SS] LEVEL: message` line format
2. Rotation to `.old` when the file is larger than max_bytes
3. record() never raises
4. Context propagation for structured output

Run with:
    pytest tests/test_logging.py -v
"""

import json
import logging
import re
from unittest.mock import patch

import pytest

from core.logging import (
    AUDIT_LOGGER_NAME,
    AuditLog,
    OldSuffixFileHandler,
    StructuredFormatter,
    configure_logging,
    get_current_context,
    log_context,
)

LINE_PATTERN = re.compile(r"^\[\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}\] (INFO|WARN|ERROR|DEBUG): .+$")


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def root_level():
    root = logging.getLogger()
    previous = root.level
    root.setLevel(logging.INFO)
    yield
    root.setLevel(previous)


@pytest.fixture
def audit(tmp_path, root_level):
    log = AuditLog(tmp_path / "logs", max_bytes=100)
    log.ensure_ready()
    yield log
    log.close()


def _lines(path):
    return path.read_text(encoding="utf-8").splitlines()


# ============================================================================
# FORMAT
# ============================================================================

class TestRecord:
    def test_line_format(self, audit):
        audit.record("INFO", "Health pass started")
        lines = _lines(audit.path)
        assert len(lines) == 1
        assert LINE_PATTERN.match(lines[0])
        assert lines[0].endswith("] INFO: Health pass started")

    def test_warn_level_name(self, audit):
        audit.record("WARN", "disk usage 85%")
        audit.record(logging.WARNING, "memory usage 90%")
        lines = _lines(audit.path)
        assert all(": " in line and "] WARN: " in line for line in lines)

    def test_error_level(self, audit):
        audit.record("ERROR", "n8n: FAIL")
        assert "] ERROR: n8n: FAIL" in _lines(audit.path)[0]

    def test_percent_signs_are_literal(self, audit):
        audit.record("INFO", "disk usage 92% (threshold 90%) %s %d")
        assert _lines(audit.path)[0].endswith("disk usage 92% (threshold 90%) %s %d")

    def test_appends(self, audit):
        audit.record("INFO", "one")
        audit.record("INFO", "two")
        assert [line.split(": ", 1)[1] for line in _lines(audit.path)] == ["one", "two"]

    def test_record_never_raises(self, audit):
        class Unprintable:
            def __str__(self):
                raise RuntimeError("cannot format")

        audit.record("INFO", Unprintable())
        assert audit.write_failures >= 1

    def test_record_without_file_handler(self, tmp_path, root_level):
        log = AuditLog(tmp_path / "never_created")
        log.record("INFO", "stdout only")
        assert not log.path.exists()


# ============================================================================
# ROTATION
# ============================================================================

class TestRotation:
    def test_oversized_file_rotates_before_next_line(self, audit):
        audit.path.write_bytes(b"x" * 101)

        audit.record("INFO", "fresh line")

        assert audit.rotated_path.read_bytes() == b"x" * 101
        lines = _lines(audit.path)
        assert len(lines) == 1
        assert lines[0].endswith("INFO: fresh line")

    def test_file_at_limit_does_not_rotate(self, audit):
        audit.path.write_bytes(b"x" * 99 + b"\n")

        audit.record("INFO", "still here")

        assert not audit.rotated_path.exists()
        assert audit.path.read_bytes().startswith(b"x" * 99)

    def test_rotation_overwrites_previous_old(self, audit):
        audit.rotated_path.write_text("ancient\n")
        audit.path.write_bytes(b"y" * 150)

        audit.record("INFO", "new")

        assert audit.rotated_path.read_bytes() == b"y" * 150

    def test_rotate_if_oversized(self, tmp_path, root_level):
        log = AuditLog(tmp_path, filename="health.log", max_bytes=1000)
        log.path.write_bytes(b"z" * 50)

        assert log.rotate_if_oversized(10) is True
        assert not log.path.exists()
        assert log.rotated_path.name == "health.log.old"
        assert log.rotated_path.read_bytes() == b"z" * 50

    def test_rotate_if_oversized_noop(self, tmp_path):
        log = AuditLog(tmp_path, max_bytes=1000)
        assert log.rotate_if_oversized() is False
        log.path.write_bytes(b"z" * 10)
        assert log.rotate_if_oversized() is False
        assert log.path.exists()


# ============================================================================
# ENSURE READY
# ============================================================================

class TestEnsureReady:
    def test_creates_directory(self, tmp_path, root_level):
        log = AuditLog(tmp_path / "a" / "b")
        log.ensure_ready()
        try:
            assert (tmp_path / "a" / "b").is_dir()
        finally:
            log.close()

    def test_not_writable(self, tmp_path):
        log = AuditLog(tmp_path)
        with patch("core.logging.os.access", return_value=False):
            with pytest.raises(OSError, match="not writable"):
                log.ensure_ready()

    def test_idempotent(self, tmp_path, root_level):
        log = AuditLog(tmp_path)
        log.ensure_ready()
        log.ensure_ready()
        try:
            log.record("INFO", "once")
            assert len(_lines(log.path)) == 1
        finally:
            log.close()


# ============================================================================
# CONTEXT
# ============================================================================

class TestLogContext:
    def test_nested_context_restored(self):
        assert get_current_context().check is None
        with log_context(pass_id="abc"):
            with log_context(check="disk", kind="resource"):
                ctx = get_current_context()
                assert (ctx.pass_id, ctx.check, ctx.kind) == ("abc", "disk", "resource")
            assert get_current_context().check is None
            assert get_current_context().pass_id == "abc"
        assert get_current_context().pass_id is None

    def test_structured_formatter_includes_context(self):
        record = logging.LogRecord("health.executor", logging.WARNING, __file__, 1, "slow %s", ("probe",), None)
        with log_context(check="n8n"):
            data = json.loads(StructuredFormatter().format(record))
        assert data["message"] == "slow probe"
        assert data["context"] == {"check": "n8n"}
        assert data["logger"] == "health.executor"


# ============================================================================
# CONFIGURE LOGGING
# ============================================================================

@pytest.fixture
def saved_logging():
    """Restore root handlers and levels that configure_logging replaces."""
    root = logging.getLogger()
    audit_logger = logging.getLogger(AUDIT_LOGGER_NAME)
    handlers, level, audit_level = root.handlers[:], root.level, audit_logger.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
    audit_logger.setLevel(audit_level)


class TestConfigureLogging:
    def test_stdout_level_does_not_filter_audit_file(self, tmp_path, saved_logging, capsys):
        configure_logging(level="WARNING")
        log = AuditLog(tmp_path)
        log.ensure_ready()
        try:
            log.record("INFO", "disk: OK - disk usage on / 42%")
            logging.getLogger("health.executor").info("not for anyone")
            log.record("ERROR", "n8n: FAIL - down")
        finally:
            log.close()

        lines = _lines(log.path)
        assert lines[0].endswith("INFO: disk: OK - disk usage on / 42%")
        assert lines[1].endswith("ERROR: n8n: FAIL - down")
        assert len(lines) == 2

        out = capsys.readouterr().out
        assert "n8n: FAIL" in out
        assert "disk: OK" not in out

    def test_keeps_file_handler(self, tmp_path, saved_logging):
        log = AuditLog(tmp_path)
        log.ensure_ready()
        try:
            configure_logging(level="INFO")
            root = logging.getLogger()
            assert any(isinstance(h, OldSuffixFileHandler) for h in root.handlers)
            assert sum(type(h) is logging.StreamHandler for h in root.handlers) == 1
        finally:
            log.close()
