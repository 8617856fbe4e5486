"""
Purpose:
- One place to configure logging for the service.
- Modules call get_logger("Engine") etc. instead of print().
"""

import logging
import sys
from typing import Optional

_loggers = {}

DEFAULT_FORMAT = '%(asctime)s [%(name)s] %(levelname)s: %(message)s'


def setup_logging(level: Optional[str] = None, log_file: Optional[str] = None):
    """
    Configure the 'fluxtag' logger. Call once at app startup.
    """
    log_level = getattr(logging, (level or 'INFO').upper(), logging.INFO)

    root_logger = logging.getLogger('fluxtag')
    root_logger.setLevel(log_level)

    # avoid duplicate handlers on reload
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
        root_logger.addHandler(file_handler)


def get_logger(name: str) -> logging.Logger:
    """Return the cached child logger 'fluxtag.<name>'."""
    if name not in _loggers:
        _loggers[name] = logging.getLogger(f"fluxtag.{name}")
    return _loggers[name]
