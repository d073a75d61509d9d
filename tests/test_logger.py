"""Tests for logger.py: setup_logging() and JsonFormatter.

Strategy: Mock logging.basicConfig to verify setup_logging passes correct args,
since pytest's log capture plugin interferes with actual basicConfig calls.
"""

import json
import logging
import sys
from unittest.mock import patch

from postdesk.logger import JsonFormatter, setup_logging


def _file_handlers(handlers):
    return [h for h in handlers if isinstance(h, logging.FileHandler)]


class TestSetupLogging:
    """Tests for setup_logging()."""

    @patch("postdesk.logger.logging.basicConfig")
    def test_cli_mode_logs_to_stderr(self, mock_basic):
        setup_logging(mode="cli")

        mock_basic.assert_called_once()
        handlers = mock_basic.call_args[1]["handlers"]
        assert isinstance(handlers[0], logging.StreamHandler)
        assert handlers[0].stream is sys.stderr

    @patch("postdesk.logger.logging.basicConfig")
    def test_mcp_mode_logs_to_file_only(self, mock_basic, tmp_path):
        """MCP mode never installs a stream handler (stdout is the protocol)."""
        log_file = tmp_path / "mcp.log"
        setup_logging(mode="mcp", log_file=str(log_file))

        handlers = mock_basic.call_args[1]["handlers"]
        assert len(handlers) == 1
        assert isinstance(handlers[0], logging.FileHandler)
        assert handlers[0].baseFilename == str(log_file)
        handlers[0].close()

    @patch("postdesk.logger.logging.basicConfig")
    def test_mcp_mode_honours_log_file_env(self, mock_basic, tmp_path, monkeypatch):
        log_file = tmp_path / "env.log"
        monkeypatch.setenv("LOG_FILE", str(log_file))
        setup_logging(mode="mcp")

        handler = mock_basic.call_args[1]["handlers"][0]
        assert handler.baseFilename == str(log_file)
        handler.close()

    @patch("postdesk.logger.logging.basicConfig")
    def test_debug_overrides_level(self, mock_basic, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        setup_logging(mode="cli", debug=True)

        assert mock_basic.call_args[1]["level"] == logging.DEBUG

    @patch("postdesk.logger.logging.basicConfig")
    def test_env_log_level_honored(self, mock_basic, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        setup_logging(mode="cli")

        assert mock_basic.call_args[1]["level"] == logging.ERROR

    @patch("postdesk.logger.logging.basicConfig")
    def test_default_levels(self, mock_basic, monkeypatch, tmp_path):
        """CLI defaults to INFO, MCP to WARNING."""
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        setup_logging(mode="cli")
        assert mock_basic.call_args[1]["level"] == logging.INFO

        setup_logging(mode="mcp", log_file=str(tmp_path / "mcp.log"))
        assert mock_basic.call_args[1]["level"] == logging.WARNING
        for handler in _file_handlers(mock_basic.call_args[1]["handlers"]):
            handler.close()

    @patch("postdesk.logger.logging.basicConfig")
    def test_cli_mode_with_log_file(self, mock_basic, tmp_path):
        """CLI mode with log_file creates both stderr and file handlers."""
        setup_logging(mode="cli", log_file=str(tmp_path / "cli.log"))

        handlers = mock_basic.call_args[1]["handlers"]
        file_handlers = _file_handlers(handlers)
        stream_handlers = [h for h in handlers if h not in file_handlers]
        assert len(stream_handlers) == 1
        assert len(file_handlers) == 1
        for handler in file_handlers:
            handler.close()

    @patch("postdesk.logger.logging.basicConfig")
    def test_json_format_uses_json_formatter(self, mock_basic):
        setup_logging(mode="cli", debug_format="json")

        handlers = mock_basic.call_args[1]["handlers"]
        assert all(isinstance(h.formatter, JsonFormatter) for h in handlers)

    @patch("postdesk.logger.logging.basicConfig")
    def test_git_logger_silenced(self, _mock_basic, monkeypatch):
        """GitPython's command logging is silenced outside DEBUG."""
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        setup_logging(mode="cli")

        assert logging.getLogger("git").level == logging.WARNING
        assert logging.getLogger("urllib3").level == logging.WARNING


class TestJsonFormatter:
    """Tests for JsonFormatter."""

    def _record(self, **kwargs):
        values = {
            "name": "postdesk.test",
            "level": logging.INFO,
            "pathname": "test.py",
            "lineno": 1,
            "msg": "Saved %s",
            "args": ("post.md",),
            "exc_info": None,
        }
        values.update(kwargs)
        return logging.LogRecord(**values)

    def test_basic_output(self):
        formatter = JsonFormatter(datefmt="%Y-%m-%d %H:%M:%S")
        data = json.loads(formatter.format(self._record()))

        assert "ts" in data
        assert data["level"] == "INFO"
        assert data["logger"] == "postdesk.test"
        assert data["msg"] == "Saved post.md"
        assert "exc" not in data

    def test_includes_exception(self):
        formatter = JsonFormatter()
        try:
            raise OSError("disk full")
        except OSError:
            exc_info = sys.exc_info()

        data = json.loads(
            formatter.format(
                self._record(level=logging.ERROR, msg="Write failed", args=(), exc_info=exc_info)
            )
        )

        assert "OSError: disk full" in data["exc"]
