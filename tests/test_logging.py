"""Tests for logging helpers."""
import logging

import pytest

from netreconcile.utils.logging_config import (
    get_log_level,
    netconf_logger,
    perf_logger,
    setup_logging,
    timed_section,
)


class TestNetconfLogger:
    """Tests for the per-device operational log."""

    def test_lines_appended_with_timestamp(self, tmp_path):
        path = tmp_path / "ops" / "netconf.log"
        log = netconf_logger(str(path), "t1")
        log.info("[rpc] <lock/>")
        log.warning("[warning] something")
        for handler in log.handlers:
            handler.flush()
        lines = path.read_text().splitlines()
        assert len(lines) == 2
        assert lines[0].endswith(" [rpc] <lock/>")
        assert lines[0][:4].isdigit()

    def test_append_mode(self, tmp_path):
        path = tmp_path / "netconf.log"
        path.write_text("previous line\n")
        log = netconf_logger(str(path), "t2")
        log.info("new line")
        assert path.read_text().startswith("previous line\n")

    def test_empty_path_disables(self):
        log = netconf_logger("", "t3")
        assert len(log.handlers) == 1
        assert isinstance(log.handlers[0], logging.NullHandler)
        log.info("dropped")

    def test_does_not_propagate(self, tmp_path):
        log = netconf_logger(str(tmp_path / "x.log"), "t4")
        assert log.propagate is False

    def test_reconfigure_replaces_handler(self, tmp_path):
        first = tmp_path / "first.log"
        second = tmp_path / "second.log"
        netconf_logger(str(first), "t5")
        log = netconf_logger(str(second), "t5")
        log.info("only here")
        assert len(log.handlers) == 1
        assert "only here" in second.read_text()
        assert "only here" not in first.read_text()


class TestTimedSection:
    """Tests for performance timing."""

    @pytest.mark.asyncio
    async def test_success_logged(self, caplog):
        with caplog.at_level(logging.INFO, logger=perf_logger.name):
            async with timed_section("commit", device_id="edge-fw", log="x"):
                pass
        assert "commit" in caplog.text
        assert "OK" in caplog.text
        assert "log=x" in caplog.text

    @pytest.mark.asyncio
    async def test_failure_logged_and_raised(self, caplog):
        with caplog.at_level(logging.WARNING, logger=perf_logger.name):
            with pytest.raises(RuntimeError):
                async with timed_section("connect", device_id="edge-fw"):
                    raise RuntimeError("boom")
        assert "FAIL: boom" in caplog.text


class TestSetupLogging:
    """Tests for application log files."""

    def test_files_created(self, tmp_path, monkeypatch):
        log_file = tmp_path / "logs" / "app.log"
        monkeypatch.setenv("NETRECONCILE_LOG_FILE", str(log_file))
        monkeypatch.setenv("NETRECONCILE_LOG_LEVEL", "WARNING")
        root = logging.getLogger("netreconcile")
        before_root = list(root.handlers)
        before_perf = list(perf_logger.handlers)
        try:
            setup_logging()
            logging.getLogger("netreconcile.test").debug("debug goes to file")
            for handler in root.handlers:
                handler.flush()
            assert "debug goes to file" in log_file.read_text()
            assert (tmp_path / "logs" / "netreconcile-perf.log").exists()
        finally:
            for handler in root.handlers[len(before_root):]:
                root.removeHandler(handler)
                handler.close()
            for handler in perf_logger.handlers[len(before_perf):]:
                perf_logger.removeHandler(handler)
                handler.close()

    def test_log_level_from_env(self, monkeypatch):
        monkeypatch.setenv("NETRECONCILE_LOG_LEVEL", "debug")
        assert get_log_level() == logging.DEBUG
        monkeypatch.setenv("NETRECONCILE_LOG_LEVEL", "nonsense")
        assert get_log_level() == logging.INFO
