"""
Logging configuration for sftp-bridge.

Console output goes through Rich when running interactively (CLI) and through a
plain single-line formatter inside the serverless runtime, where the platform
captures stderr line by line.
"""

import logging
import sys
from pathlib import Path

try:
    import importlib.util

    RICH_AVAILABLE = importlib.util.find_spec("rich.logging") is not None
except Exception:
    RICH_AVAILABLE = False

ROOT_LOGGER = "sftp_bridge"


class FileFormatter(logging.Formatter):
    """Formatter for file logs - clean and parseable."""

    def __init__(self) -> None:
        super().__init__(fmt="%(asctime)s [%(levelname)-8s] %(name)s: %(message)s", datefmt="%Y-%m-%d %H:%M:%S")


class LineFormatter(logging.Formatter):
    """Single-line "LEVEL name: message" format; errors also get file:line."""

    def __init__(self) -> None:
        super().__init__(datefmt="%Y-%m-%d %H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        base_format = f"{record.levelname} {record.name}: {record.getMessage()}"
        if record.levelno >= logging.ERROR and record.pathname:
            base_format = f"{record.levelname} {record.name} {Path(record.pathname).name}:{record.lineno}: {record.getMessage()}"
        if record.exc_info:
            base_format += "\n" + self.formatException(record.exc_info)
        return base_format


# Map string level names to logging constants
LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def _parse_level(level: str | int) -> int:
    """Parse logging level from string or int; unknown values fall back to INFO."""
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        level_upper = level.upper()
        if level_upper in LEVEL_MAP:
            return LEVEL_MAP[level_upper]
    return logging.INFO


def setup_logging(
    level: str | int = logging.INFO,
    log_file: str | Path | None = None,
    use_rich: bool = False,
) -> logging.Logger:
    """
    Setup logging configuration for sftp-bridge.

    Safe to call on every invocation: handlers are replaced, never stacked.

    Args:
        level: Logging level as string (DEBUG, INFO, etc.) or int (default: INFO)
        log_file: Optional file path to write logs to (default: None, console only)
        use_rich: Use RichHandler for console output (default: False)

    Returns:
        Logger instance
    """
    logger = logging.getLogger(ROOT_LOGGER)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)

    level_int = _parse_level(level)
    logger.setLevel(level_int)

    if use_rich and RICH_AVAILABLE:
        from rich.logging import RichHandler

        console_handler: logging.Handler = RichHandler(
            level=level_int,
            show_time=True,
            show_path=False,
            rich_tracebacks=True,
            tracebacks_show_locals=False,
            log_time_format="[%X]",
        )
    else:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level_int)
        console_handler.setFormatter(LineFormatter())
    logger.addHandler(console_handler)

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="a")
        # File captures everything the logger lets through
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(FileFormatter())
        logger.addHandler(file_handler)

    # Lambda's runtime installs a root handler; avoid printing every line twice.
    logger.propagate = False
    return logger


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Logger name (default: "sftp_bridge")

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
