"""
Structured Logging Configuration

Colored single-line console logging for the posyandu backend, with an
optional plain-text file sink for the clinic server. Logger names under
the `posyandu.` package are shortened in console output.
"""
import logging
import sys
from typing import Iterable, Optional
from datetime import datetime, timezone

PACKAGE_PREFIX = "posyandu."

# Chatty third-party loggers capped at WARNING unless running at DEBUG
NOISY_LOGGERS = ("uvicorn.access", "httpx", "httpcore")


class StructuredFormatter(logging.Formatter):
    """Timestamp, level, short logger name, message; colored on a TTY."""

    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
    }
    RESET = '\033[0m'

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color

    @staticmethod
    def short_name(name: str) -> str:
        if name.startswith(PACKAGE_PREFIX):
            return name[len(PACKAGE_PREFIX):]
        return name

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created, timezone.utc).isoformat(timespec="milliseconds")
        line = (
            f"[{timestamp}] "
            f"{record.levelname:8} "
            f"[{self.short_name(record.name)}] "
            f"{record.getMessage()}"
        )
        if self.use_color and record.levelname in self.COLORS:
            line = f"{self.COLORS[record.levelname]}{line}{self.RESET}"

        if record.exc_info:
            line += f"\n{self.formatException(record.exc_info)}"
        return line


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    quiet: Iterable[str] = NOISY_LOGGERS,
) -> None:
    """
    Configure application-wide logging.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path for a plain-text copy of the log
        quiet: Logger names held at WARNING unless level is DEBUG
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(StructuredFormatter(use_color=sys.stdout.isatty()))
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s | %(levelname)s | %(name)s | %(message)s'
        ))
        root_logger.addHandler(file_handler)

    for name in quiet:
        logging.getLogger(name).setLevel(
            logging.DEBUG if numeric_level <= logging.DEBUG else logging.WARNING
        )


def get_logger(name: str) -> logging.Logger:
    """Logger for a module; pass __name__."""
    return logging.getLogger(name)
