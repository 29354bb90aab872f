# src/utils/logging.py

import logging
import sys


class ColoredFormatter(logging.Formatter):
    """Custom formatter with colors for different log levels."""

    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[35m',   # Magenta
    }
    RESET = '\033[0m'

    def format(self, record):
        # Color the level name only, and only on a copy so other handlers see the plain name
        record = logging.makeLogRecord(record.__dict__)
        color = self.COLORS.get(record.levelname, self.RESET)
        record.levelname = f"{color}{record.levelname}{self.RESET}"

        return super().format(record)


def setup_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    """
    Creates and configures a plain colored logger (no trace ids).

    Args:
        name: Name of the logger (usually __name__)
        level: Logging level (default: INFO)

    Returns:
        Configured logger instance

    Example:
        from src.utils.logging import setup_logger

        logger = setup_logger(__name__)
        logger.info("Collector ready")
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Remove existing handlers to avoid duplicates on Streamlit reruns
    if logger.handlers:
        logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(ColoredFormatter(
        fmt='%(levelname)s: %(filename)s:%(lineno)d - %(message)s'
    ))
    logger.addHandler(handler)

    logger.propagate = False

    return logger


def setup_global_logging(level: int = logging.INFO):
    """
    Configure the root logger for the whole application.
    Call this once at application startup (dashboard or API server).

    Args:
        level: Global logging level (default: INFO)
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    if root_logger.handlers:
        root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(ColoredFormatter(
        fmt='%(levelname)s:    %(filename)s:%(lineno)d - %(message)s'
    ))
    root_logger.addHandler(handler)
