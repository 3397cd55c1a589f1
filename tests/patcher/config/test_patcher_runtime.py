"""Tests pour patcher/config/patcher_runtime.py - Configuration Loguru."""

from __future__ import annotations

from unittest.mock import patch

from patcher.config.patcher_runtime import configure_logging


class TestConfigureLogging:
    """Tests pour configure_logging."""

    @patch("patcher.config.patcher_runtime.logger")
    def test_silent_by_default(self, mock_logger):
        """Sans flag: aucun handler."""
        configure_logging(debug=False, verbose=False)

        mock_logger.remove.assert_called_once()
        mock_logger.add.assert_not_called()

    @patch("patcher.config.patcher_runtime.logger")
    def test_verbose(self, mock_logger):
        configure_logging(debug=False, verbose=True)

        kwargs = mock_logger.add.call_args[1]
        assert kwargs["level"] == "INFO"
        assert kwargs["diagnose"] is False

    @patch("patcher.config.patcher_runtime.logger")
    def test_debug(self, mock_logger):
        configure_logging(debug=True)

        kwargs = mock_logger.add.call_args[1]
        assert kwargs["level"] == "DEBUG"
        assert kwargs["backtrace"] is True
        assert kwargs["diagnose"] is True

    @patch("patcher.config.patcher_runtime.logger")
    def test_log_file(self, mock_logger, tmp_path):
        log_file = tmp_path / "logs" / "patcher.log"

        configure_logging(debug=False, log_file=log_file)

        assert log_file.parent.is_dir()
        args, kwargs = mock_logger.add.call_args
        assert args[0] == log_file
        assert kwargs["rotation"] == "10 MB"
        assert kwargs["retention"] == "7 days"
