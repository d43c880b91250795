"""Colored logging formatter for terminal output."""

import logging
import sys


class ColoredFormatter(logging.Formatter):
    """Formatter with color-coded log levels and a white timestamp."""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    WHITE = "\033[97m"

    COLORS = {
        logging.DEBUG: "\033[36m",  # Cyan
        logging.INFO: "\033[32m",  # Green
        logging.WARNING: "\033[33m",  # Yellow
        logging.ERROR: "\033[31m",  # Red
        logging.CRITICAL: "\033[1;31m",  # Bold Red
    }

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record with colors.

        Args:
            record: The log record to format

        Returns:
            Formatted and colored log string
        """
        color = self.COLORS.get(record.levelno, self.RESET)

        original_levelname = record.levelname
        record.levelname = f"{color}{self.BOLD}{record.levelname}{self.RESET}"
        try:
            formatted = super().format(record)
        finally:
            record.levelname = original_levelname

        # "YYYY-MM-DD HH:MM:SS [name] LEVEL - message": color the first two fields
        parts = formatted.split(" ", 2)
        if len(parts) >= 3:
            formatted = f"{self.WHITE}{parts[0]} {parts[1]}{self.RESET} {parts[2]}"

        return formatted


def setup_colored_logging(level: int = logging.INFO) -> None:
    """Route all logging to stderr, colored when stderr is a terminal.

    Args:
        level: The logging level to use
    """
    fmt = "%(asctime)s [%(name)s] %(levelname)s - %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    if sys.stderr.isatty():
        formatter: logging.Formatter = ColoredFormatter(fmt=fmt, datefmt=datefmt)
    else:
        formatter = logging.Formatter(fmt=fmt, datefmt=datefmt)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # dbus_next is chatty at DEBUG and only useful when debugging the bus itself
    if level > logging.DEBUG:
        logging.getLogger("dbus_next").setLevel(logging.WARNING)
