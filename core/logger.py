"""
=========================================================
Logging configuration for pg-test-util.
=========================================================

Library modules only ask for named loggers; nothing is attached to the
root logger on import. Test suites that want to see lifecycle events
(created/dropped databases, cleanup runs) call setup_logging() once,
typically from a conftest.py.

Example:
    >>> from core.logger import get_logger, setup_logging
    >>>
    >>> # In conftest.py
    >>> setup_logging(log_level='INFO')
    >>>
    >>> # In library modules
    >>> logger = get_logger(__name__)
    >>> logger.info("Created database test-db-123")
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from core.config import settings

LIBRARY_LOGGER_NAMES = ('core', 'sql', 'pg_test_util')


class ColoredFormatter(logging.Formatter):
    """Formatter adding ANSI colors and emoji markers for console output.

    Attributes:
        COLORS: Dict mapping log levels to ANSI color codes
        EMOJI: Dict mapping log levels to emoji indicators
    """

    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[35m',   # Magenta
        'RESET': '\033[0m'
    }

    EMOJI = {
        'DEBUG': '🔍',
        'INFO': 'ℹ️ ',
        'WARNING': '⚠️ ',
        'ERROR': '❌',
        'CRITICAL': '🔥'
    }

    def format(self, record):
        # Work on a copy so other handlers see the plain level name
        record = logging.makeLogRecord(record.__dict__)
        levelname = record.levelname
        record.emoji = self.EMOJI.get(levelname, '')
        if levelname in self.COLORS:
            record.levelname = f"{self.COLORS[levelname]}{levelname}{self.COLORS['RESET']}"
        return super().format(record)


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """Get a logger instance for the specified module.

    Args:
        name: Logger name (typically __name__ of calling module)
        level: Optional logging level override (DEBUG/INFO/WARNING/ERROR/CRITICAL)

    Returns:
        Logger instance
    """
    logger = logging.getLogger(name)

    if level:
        logger.setLevel(getattr(logging, level.upper()))

    return logger


def setup_logging(
    log_level: Optional[str] = None,
    log_file: Optional[str] = None,
    log_dir: Optional[str] = None,
    console_output: bool = True,
    use_colors: bool = True
) -> None:
    """Attach handlers to the library loggers.

    Only the library's own loggers are configured, so calling this from a
    test suite does not change how the application under test logs.
    Safe to call more than once; previous handlers are replaced.

    Args:
        log_level: Logging level name (defaults to settings.log_level)
        log_file: Optional log file name (e.g. 'pg-test-util.log')
        log_dir: Directory for log_file (defaults to 'logs/')
        console_output: If True, log to stderr
        use_colors: If True, use ColoredFormatter on the console

    Example:
        >>> setup_logging(log_level='DEBUG', log_file='pg-test-util.log')
    """
    level = getattr(logging, (log_level or settings.log_level).upper())
    handlers = []

    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        if use_colors:
            console_formatter = ColoredFormatter(
                '%(emoji)s %(asctime)s - %(name)s - %(levelname)s - %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
        else:
            console_formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
        console_handler.setFormatter(console_formatter)
        handlers.append(console_handler)

    if log_file:
        log_path = Path(log_dir) if log_dir else Path('logs')
        log_path.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path / log_file, encoding='utf-8')
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        handlers.append(file_handler)

    for name in LIBRARY_LOGGER_NAMES:
        library_logger = logging.getLogger(name)
        for handler in list(library_logger.handlers):
            library_logger.removeHandler(handler)
            handler.close()
        library_logger.setLevel(level)
        for handler in handlers:
            handler.setLevel(level)
            library_logger.addHandler(handler)
        library_logger.propagate = False


# Libraries should not emit "No handlers could be found" noise
for _name in LIBRARY_LOGGER_NAMES:
    logging.getLogger(_name).addHandler(logging.NullHandler())
