"""
Centralized logging configuration for editor_catalog.

Console output is colored when attached to a terminal; an optional log file
always receives DEBUG records, which is where source degradations
(unreachable API, missing manifest, stale cache) end up.

Environment:
    EDITOR_CATALOG_DEBUG=1   force DEBUG level
    EDITOR_CATALOG_COLOR=0   plain console output
    EDITOR_CATALOG_EMOJI=0   level names without symbols
"""

import logging
import os
import sys
from pathlib import Path
from typing import Optional


LOGGER_NAME = "editor_catalog"

# Global logger instance
_logger: Optional[logging.Logger] = None


def _env_flag(name: str, default: str) -> bool:
    return os.environ.get(name, default) == "1"


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    verbose: bool = False,
    quiet: bool = False,
    propagate: bool = False,
) -> logging.Logger:
    """
    Configure the editor_catalog logger.

    Module loggers (``logging.getLogger(__name__)``) are children of it and
    inherit its handlers.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path for log output
        verbose: Enable verbose (DEBUG) output
        quiet: Suppress console output (file only)
        propagate: Allow log propagation (useful for testing)

    Returns:
        Configured logger instance
    """
    global _logger

    if verbose or _env_flag("EDITOR_CATALOG_DEBUG", "0"):
        effective_level = "DEBUG"
    elif quiet:
        effective_level = "WARNING"
    else:
        effective_level = level.upper()

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, effective_level))
    logger.handlers.clear()

    if not quiet:
        # stdout carries json/tsv output
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(getattr(logging, effective_level))
        console_handler.setFormatter(ColoredFormatter(
            "%(levelname_colored)s %(message)s",
            use_colors=sys.stderr.isatty() and _env_flag("EDITOR_CATALOG_COLOR", "1"),
            use_symbols=_env_flag("EDITOR_CATALOG_EMOJI", "1"),
        ))
        logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
        logger.addHandler(file_handler)

    logger.propagate = propagate

    _logger = logger
    return logger


def get_logger() -> logging.Logger:
    """Get the configured logger, setting up defaults on first use."""
    global _logger
    if _logger is None:
        _logger = setup_logging()
    return _logger


class ColoredFormatter(logging.Formatter):
    """Adds ``levelname_colored`` to records: ANSI color plus a level symbol."""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[1;31m',
    }
    RESET = '\033[0m'

    SYMBOLS = {
        'DEBUG': '🔍',
        'INFO': '✓',
        'WARNING': '⚠️',
        'ERROR': '✗',
        'CRITICAL': '🚨',
    }

    def __init__(self, fmt: str, use_colors: bool = True, use_symbols: bool = True):
        super().__init__(fmt)
        self.use_colors = use_colors
        self.use_symbols = use_symbols

    def format(self, record: logging.LogRecord) -> str:
        levelname = record.levelname
        if self.use_colors:
            label = levelname
            if self.use_symbols:
                label = f"{self.SYMBOLS.get(levelname, '')} {levelname}"
            record.levelname_colored = f"{self.COLORS.get(levelname, '')}{label}{self.RESET}"
        else:
            record.levelname_colored = levelname

        return super().format(record)
