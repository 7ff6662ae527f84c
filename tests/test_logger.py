"""Tests for dailybot.utils.logger."""
import logging

import pytest

from dailybot.config import Config
from dailybot.utils.logger import daily_log_path, setup_logger


@pytest.fixture
def fresh_logger():
    names = []

    def factory(name):
        names.append(name)
        return name

    yield factory

    for name in names:
        logger = logging.getLogger(name)
        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)
        logger.propagate = True


class TestSetupLogger:
    def test_handlers_attached_once(self, tmp_path, fresh_logger):
        name = fresh_logger("dailybot.tests.once")

        logger = setup_logger(name, log_dir=tmp_path / "logs")
        again = setup_logger(name, log_dir=tmp_path / "logs")

        assert again is logger
        assert len(logger.handlers) == 2
        assert logger.propagate is False

    def test_writes_to_daily_file(self, tmp_path, fresh_logger):
        log_dir = tmp_path / "logs"
        logger = setup_logger(fresh_logger("dailybot.tests.file"), log_dir=log_dir)

        logger.info("map rotated")
        for handler in logger.handlers:
            handler.flush()

        log_file = daily_log_path(log_dir)
        assert log_file.parent == log_dir
        assert log_file.name.startswith("dailybot_")
        assert "INFO - map rotated" in log_file.read_text(encoding="utf-8")

    def test_level_follows_debug_flag(self, tmp_path, fresh_logger, monkeypatch):
        monkeypatch.setattr(Config, "DEBUG", True)
        logger = setup_logger(fresh_logger("dailybot.tests.debug"), log_dir=tmp_path)
        assert logger.level == logging.DEBUG

        monkeypatch.setattr(Config, "DEBUG", False)
        logger = setup_logger(fresh_logger("dailybot.tests.info"), log_dir=tmp_path)
        assert logger.level == logging.INFO
