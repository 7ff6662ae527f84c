"""
Console and file logging for the bot.

Bot, database and cog modules get their logger from ``setup_logger``. The
tracking services use plain ``logging.getLogger(__name__)`` and reach these
handlers through the ``dailybot`` package logger configured at startup.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Union

from dailybot.config import Config

LOG_DIR = Path('logs')
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def daily_log_path(log_dir: Union[str, Path] = LOG_DIR) -> Path:
    """Today's log file, e.g. ``logs/dailybot_20240301.log``."""
    return Path(log_dir) / f'dailybot_{datetime.now():%Y%m%d}.log'


def setup_logger(name: str, log_dir: Union[str, Path] = LOG_DIR) -> logging.Logger:
    """Attach the console and daily file handlers to ``name`` once.

    Calling it again for the same name returns the configured logger unchanged.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    console_level = logging.DEBUG if Config.DEBUG else logging.INFO
    logger.setLevel(console_level)
    # records stop here, the package logger would print them again
    logger.propagate = False

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(console_level)
    console.setFormatter(formatter)
    logger.addHandler(console)

    log_file = daily_log_path(log_dir)
    log_file.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_file, encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    return logger
