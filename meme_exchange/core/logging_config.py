"""Logging setup: console, rotating app/error logs and a dedicated trade journal."""
import logging
import os
from logging.handlers import RotatingFileHandler
from datetime import datetime
import pytz
from meme_exchange.core.config import get_settings

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
MB = 1024 * 1024

# Third-party loggers that are chatty at INFO
QUIET_LOGGERS = ("apscheduler", "sqlalchemy.engine", "passlib")


class TimezoneFormatter(logging.Formatter):
    """Formatter that renders record times in a fixed pytz timezone."""

    def __init__(self, fmt=None, datefmt=None, tz=None):
        super().__init__(fmt, datefmt)
        self.tz = tz or pytz.utc

    def formatTime(self, record, datefmt=None):
        dt = datetime.fromtimestamp(record.created, tz=self.tz)
        return dt.strftime(datefmt or '%Y-%m-%d %H:%M:%S %Z')


def _rotating_handler(path: str, level: int, formatter: logging.Formatter,
                      max_mb: int, backups: int) -> RotatingFileHandler:
    handler = RotatingFileHandler(path, maxBytes=max_mb * MB, backupCount=backups, encoding='utf-8')
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging():
    """Configure logging for the exchange.

    * root: console and ``app.log`` at the configured level, ``error.log`` for errors
    * ``trading``: every commit, rejection and state transition to ``trading.log``,
      which also propagates to the root handlers at their own levels
    """
    settings = get_settings()
    logs_dir = settings.log_dir
    os.makedirs(logs_dir, exist_ok=True)

    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    formatter = TimezoneFormatter(LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S',
                                  tz=pytz.timezone(settings.timezone))

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)
    root_logger.addHandler(_rotating_handler(os.path.join(logs_dir, "app.log"), level, formatter, 10, 10))
    root_logger.addHandler(_rotating_handler(os.path.join(logs_dir, "error.log"), logging.ERROR, formatter, 10, 5))

    # Trade journal keeps DEBUG transitions even when the app runs at INFO
    trading_logger = logging.getLogger('trading')
    trading_logger.setLevel(logging.DEBUG)
    trading_logger.handlers.clear()
    trading_logger.addHandler(
        _rotating_handler(os.path.join(logs_dir, "trading.log"), logging.DEBUG, formatter, 10, 20)
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    logging.info(f"Logging initialized at {logging.getLevelName(level)} - logs in '{logs_dir}/'")
