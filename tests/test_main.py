# ============================================================================
# HEALTH PASS AND CLI TESTS
# ============================================================================
# EPOCH: 1 - HEALTH PASS
# STATUS: Tests - End-to-end pass, exit codes, audit trail
# PURPOSE: Verify the process contract a scheduler relies on
# CREATED: 18 OCT 2026
# ============================================================================
"""
Health Pass and CLI Tests

Covers:
1. WARN-only pass exits 0, any FAIL exits non-zero
2. Audit lines per outcome
3. --no-notify, --list-checks, configuration errors (exit 2)

Run with:
    pytest tests/test_main.py -v
"""

import asyncio
import logging
from typing import List
from unittest.mock import PropertyMock, patch

import pytest

import main
from core.logging import AUDIT_LOGGER_NAME, AuditLog
from health.core import CheckDefinition, CheckKind, HealthProbe, ProbeResult
from health.executor import Aggregator
from health.notifier import AlertSink, Notifier
from health.registry import CheckRegistry
from health.runner import HealthPass


# ============================================================================
# HELPERS
# ============================================================================

class StaticProbe(HealthProbe):
    def __init__(self, result: ProbeResult):
        self.result = result

    async def check(self) -> ProbeResult:
        return self.result


class RecordingSink(AlertSink):
    name = "recording"

    def __init__(self):
        self.messages: List[str] = []

    async def send(self, message: str) -> None:
        self.messages.append(message)


def _registry(*results: ProbeResult) -> CheckRegistry:
    registry = CheckRegistry()
    for i, result in enumerate(results):
        registry.register(CheckDefinition(
            name=f"check{i}",
            probe=StaticProbe(result),
            kind=CheckKind.RESOURCE,
        ))
    return registry


@pytest.fixture
def audit(tmp_path):
    root = logging.getLogger()
    previous = root.level
    root.setLevel(logging.INFO)
    log = AuditLog(tmp_path)
    log.ensure_ready()
    yield log
    log.close()
    root.setLevel(previous)


def _run(registry, audit, notify=True):
    sink = RecordingSink()
    health_pass = HealthPass(registry, Aggregator(), Notifier(sink, host_name="box"), audit)
    report = asyncio.run(health_pass.run(notify=notify))
    return report, sink


# ============================================================================
# HEALTH PASS
# ============================================================================

class TestHealthPass:
    def test_warn_only_exits_zero_and_notifies(self, audit):
        report, sink = _run(_registry(ProbeResult.ok(), ProbeResult.warn("disk usage 85%")), audit)
        assert report.exit_code == 0
        assert len(sink.messages) == 1

    def test_fail_exits_non_zero(self, audit):
        report, sink = _run(_registry(ProbeResult.warn("w"), ProbeResult.fail("down")), audit)
        assert report.exit_code != 0
        assert len(sink.messages) == 1

    def test_all_ok_no_alert(self, audit):
        report, sink = _run(_registry(ProbeResult.ok(), ProbeResult.ok()), audit)
        assert report.exit_code == 0
        assert sink.messages == []

    def test_audit_lines(self, audit):
        _run(_registry(ProbeResult.ok("fine"), ProbeResult.fail("down hard")), audit)
        text = audit.path.read_text()
        assert "INFO: Health pass started (2 checks)" in text
        assert "INFO: check0: OK - fine" in text
        assert "ERROR: check1: FAIL - down hard" in text
        assert "Health pass finished: FAIL (failures=1, warnings=0" in text

    def test_no_notify(self, audit):
        report, sink = _run(_registry(ProbeResult.fail("down")), audit, notify=False)
        assert sink.messages == []
        assert "Alert suppressed" in audit.path.read_text()

    def test_lost_audit_lines_reported(self, audit, caplog):
        with patch.object(AuditLog, "write_failures", new_callable=PropertyMock, return_value=3):
            with caplog.at_level(logging.WARNING, logger="health.runner"):
                _run(_registry(ProbeResult.ok()), audit)
        assert "3 line(s) could not be written" in caplog.text

    def test_complete_audit_log_not_reported(self, audit, caplog):
        with caplog.at_level(logging.WARNING, logger="health.runner"):
            _run(_registry(ProbeResult.ok()), audit)
        assert "Audit log incomplete" not in caplog.text


# ============================================================================
# CLI
# ============================================================================

@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    """Isolated cwd and log dir; stdout logging left to pytest."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HEALTH_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.delenv("HEALTH_ENV_FILE", raising=False)
    monkeypatch.delenv("TELEGRAM_BOT_TOKEN", raising=False)
    with patch("main.configure_logging"):
        yield tmp_path


class TestMain:
    def test_config_error_exits_2(self, cli_env, monkeypatch, capsys):
        monkeypatch.setenv("DISK_WARN_THRESHOLD", "lots")
        assert main.main([]) == main.EXIT_CONFIG_ERROR
        assert "Configuration error" in capsys.readouterr().err

    def test_missing_env_file_exits_2(self, cli_env):
        assert main.main(["--env-file", str(cli_env / "nope.env")]) == main.EXIT_CONFIG_ERROR

    def test_list_checks(self, cli_env, monkeypatch, capsys):
        monkeypatch.setenv("WAHA_ENABLED", "false")
        assert main.main(["--list-checks"]) == 0
        out = capsys.readouterr().out
        names = [line.split()[0] for line in out.splitlines()]
        assert names == ["n8n", "postgres", "disk", "memory"]

    def test_fail_pass_exit_code(self, cli_env, capsys):
        registry = _registry(ProbeResult.ok(), ProbeResult.fail("n8n down"))
        with patch("main.build_registry", return_value=registry):
            assert main.main(["--no-notify", "--json"]) == 1
        assert '"status": "FAIL"' in capsys.readouterr().out
        assert (cli_env / "logs" / "healthcheck.log").exists()

    def test_warn_pass_exit_code(self, cli_env):
        registry = _registry(ProbeResult.warn("memory usage 88%"))
        with patch("main.build_registry", return_value=registry):
            assert main.main(["--sequential", "--no-notify"]) == 0

    def test_env_file_picked_up_from_cwd(self, cli_env, monkeypatch, capsys):
        monkeypatch.delenv("WAHA_ENABLED", raising=False)
        (cli_env / ".env").write_text("WAHA_ENABLED=false\n")
        assert main.main(["--list-checks"]) == 0
        assert "waha" not in capsys.readouterr().out

    def test_build_sink(self):
        from core.config import HealthSettings
        from health.notifier import LogOnlySink, TelegramSink

        assert isinstance(main.build_sink(HealthSettings.from_env({})), LogOnlySink)
        settings = HealthSettings.from_env({"TELEGRAM_BOT_TOKEN": "t", "TELEGRAM_CHAT_ID": "1"})
        assert isinstance(main.build_sink(settings), TelegramSink)


@pytest.fixture
def real_logging(tmp_path, monkeypatch):
    """CLI environment with configure_logging active; restores root afterwards."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HEALTH_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.delenv("HEALTH_ENV_FILE", raising=False)
    monkeypatch.delenv("TELEGRAM_BOT_TOKEN", raising=False)
    monkeypatch.delenv("LOG_FORMAT", raising=False)

    root = logging.getLogger()
    audit_logger = logging.getLogger(AUDIT_LOGGER_NAME)
    handlers, level, audit_level = root.handlers[:], root.level, audit_logger.level
    yield tmp_path
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
    audit_logger.setLevel(audit_level)


class TestAuditTrailLevels:
    def test_warning_log_level_keeps_ok_lines(self, real_logging, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "WARNING")
        registry = _registry(ProbeResult.ok("disk usage on / 42%"), ProbeResult.fail("n8n down"))

        with patch("main.build_registry", return_value=registry):
            assert main.main(["--no-notify"]) == 1

        text = (real_logging / "logs" / "healthcheck.log").read_text()
        assert "INFO: Health pass started (2 checks)" in text
        assert "INFO: check0: OK - disk usage on / 42%" in text
        assert "ERROR: check1: FAIL - n8n down" in text
        assert "Health pass finished: FAIL" in text
