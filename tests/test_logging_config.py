# tests/test_logging_config.py

"""Tests for the per-run logging configuration."""

import logging
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from src.config.logging_config import setup_logging
from src.config.settings import Settings


class TestLoggingConfig(unittest.TestCase):
    """Verify logging setup behaviour."""

    def setUp(self) -> None:
        """Detach price_sweep handlers and use a scratch logs dir."""
        self._clear_handlers()
        self._tmp = tempfile.TemporaryDirectory()
        self.logs_dir = Path(self._tmp.name) / "logs"

    def tearDown(self) -> None:
        self._clear_handlers()
        self._tmp.cleanup()

    @staticmethod
    def _clear_handlers() -> None:
        root_logger = logging.getLogger("price_sweep")
        for handler in root_logger.handlers:
            handler.close()
        root_logger.handlers.clear()

    def _console_handlers(self) -> list[logging.Handler]:
        return [
            h
            for h in logging.getLogger("price_sweep").handlers
            if isinstance(h, logging.StreamHandler)
            and not isinstance(h, logging.FileHandler)
        ]

    def test_setup_creates_log_file(self) -> None:
        """setup_logging returns a path that exists on disk."""
        log_path = setup_logging(self.logs_dir)
        self.assertTrue(log_path.exists())
        self.assertEqual(log_path.parent, self.logs_dir)

    def test_log_file_naming_convention(self) -> None:
        """Log file name matches sweep_YYYYMMDD_HHMMSS.log format."""
        log_path = setup_logging(self.logs_dir)
        self.assertRegex(log_path.name, r"^sweep_\d{8}_\d{6}\.log$")

    def test_file_handler_level_debug(self) -> None:
        """File handler captures everything down to DEBUG."""
        setup_logging(self.logs_dir)
        file_handlers = [
            h
            for h in logging.getLogger("price_sweep").handlers
            if isinstance(h, logging.FileHandler)
        ]
        self.assertEqual(len(file_handlers), 1)
        self.assertEqual(file_handlers[0].level, logging.DEBUG)

    def test_console_handler_shows_progress(self) -> None:
        """Console handler lets INFO progress lines through by default."""
        with patch.object(Settings, "LOG_LEVEL", "INFO"):
            setup_logging(self.logs_dir)
        handlers = self._console_handlers()
        self.assertEqual(len(handlers), 1)
        self.assertEqual(handlers[0].level, logging.INFO)

    def test_console_level_from_settings(self) -> None:
        with patch.object(Settings, "LOG_LEVEL", "warning"):
            setup_logging(self.logs_dir)
        self.assertEqual(self._console_handlers()[0].level, logging.WARNING)

    def test_unknown_console_level_falls_back_to_info(self) -> None:
        with patch.object(Settings, "LOG_LEVEL", "CHATTY"):
            setup_logging(self.logs_dir)
        self.assertEqual(self._console_handlers()[0].level, logging.INFO)

    def test_repeated_calls_no_duplicate_handlers(self) -> None:
        """Calling setup_logging twice does not duplicate handlers."""
        setup_logging(self.logs_dir)
        root_logger = logging.getLogger("price_sweep")
        count_before = len(root_logger.handlers)
        setup_logging(self.logs_dir)
        self.assertEqual(len(root_logger.handlers), count_before)

    def test_root_logger_level_is_debug(self) -> None:
        """The root project logger is set to DEBUG."""
        setup_logging(self.logs_dir)
        self.assertEqual(
            logging.getLogger("price_sweep").level, logging.DEBUG
        )

    def test_component_records_reach_file(self) -> None:
        log_path = setup_logging(self.logs_dir)
        logging.getLogger("price_sweep.batch").debug("marker line 42")
        for handler in logging.getLogger("price_sweep").handlers:
            handler.flush()
        self.assertIn("marker line 42", log_path.read_text("utf-8"))


if __name__ == "__main__":
    unittest.main()
