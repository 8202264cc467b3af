"""
Session logging for Modwatch.

Every logger handed out by :func:`get_logger` writes to two places: the
operator console (through prompt_toolkit, so the prompt survives) and one
rotating log file per session under ``MODWATCH_LOG_DIR`` (``./logs`` by
default). The console threshold starts at ``MODWATCH_LOG_LEVEL`` (INFO) and
can be lowered at runtime with :func:`set_console_level`.
"""

import logging
from logging.handlers import RotatingFileHandler
import os
import sys
from pathlib import Path
from datetime import datetime
from prompt_toolkit import print_formatted_text
from prompt_toolkit.formatted_text import ANSI

# -------------------- Configuration --------------------
LOGS_DIR: Path = Path(os.getenv("MODWATCH_LOG_DIR") or (Path(__file__).parents[3] / "logs")).resolve()
LOGS_DIR.mkdir(parents=True, exist_ok=True)

LOG_FORMAT: str = "[%(asctime)s] [%(levelname)s] [%(name)s:%(funcName)s:%(lineno)d] %(message)s"
DATE_FORMAT: str = "%Y-%m-%d %H-%M-%S"
LOG_FILE_PREFIX = "modwatch_"

# A restart within this many seconds keeps appending to the previous file.
SESSION_REUSE_SECONDS = 60
MAX_LOG_BYTES = 5 * 1024 * 1024
LOG_BACKUP_COUNT = 5

LOG_COLORS = {
    "DEBUG": "\033[36m",
    "INFO": "\033[32m",
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
    "CRITICAL": "\033[38;5;88m",
}
RESET_COLOR = "\033[0m"

LOG_FILEPATH: Path | None = None
_console_level: int = logging.getLevelName(os.getenv("MODWATCH_LOG_LEVEL", "INFO").upper())
if not isinstance(_console_level, int):
    _console_level = logging.INFO


# -------------------- Formatters & Handlers --------------------
class ColorFormatter(logging.Formatter):
    """Formatter that wraps each line in the ANSI colour of its level."""

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        color = LOG_COLORS.get(record.levelname)
        if not color:
            return text
        return f"{color}{text}{RESET_COLOR}"


class PromptToolkitHandler(logging.Handler):
    """
    Console handler that prints through prompt_toolkit.

    Args:
        formatter (logging.Formatter | None): Optional formatter to apply to log records.
    """

    def __init__(self, formatter: logging.Formatter | None = None):
        super().__init__()
        if formatter:
            self.setFormatter(formatter)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            print_formatted_text(ANSI(self.format(record)))
        except Exception:
            self.handleError(record)


def should_use_color() -> bool:
    """Return True when stderr is a terminal that can render ANSI colours."""
    try:
        return sys.stderr.isatty()
    except Exception:
        return False


plain_formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
console_formatter = ColorFormatter(LOG_FORMAT, datefmt=DATE_FORMAT) if should_use_color() else plain_formatter


# -------------------- Session log file --------------------
def _recent_session_file(now: datetime) -> Path | None:
    candidates = sorted(
        LOGS_DIR.glob(f"{LOG_FILE_PREFIX}{now:%Y-%m-%d}*.log"),
        key=lambda p: p.stat().st_mtime,
        reverse=True,
    )
    if candidates and now.timestamp() - candidates[0].stat().st_mtime < SESSION_REUSE_SECONDS:
        return candidates[0]
    return None


def get_log_filepath() -> Path:
    """
    Return the log file shared by every logger of this session.

    The path is chosen once: the newest file from today if it was written in
    the last minute, otherwise a fresh ``modwatch_<timestamp>.log``.

    Returns:
        Path: Path to the session log file.
    """
    global LOG_FILEPATH

    if LOG_FILEPATH is None:
        now = datetime.now()
        LOG_FILEPATH = _recent_session_file(now) or LOGS_DIR / f"{LOG_FILE_PREFIX}{now.strftime(DATE_FORMAT)}.log"
    return LOG_FILEPATH


# -------------------- Logger Setup --------------------
def setup_logger(logger_name: str) -> logging.Logger:
    """Configure and return a logger with console and rotating file handlers.

    Parameters
    ----------
    logger_name:
        Name of the logger to configure.

    Returns
    -------
    logging.Logger
        Configured logger instance.
    """
    logger = logging.getLogger(logger_name)
    if logger.handlers:
        return logger

    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    console_handler = PromptToolkitHandler(formatter=console_formatter)
    console_handler.setLevel(_console_level)

    file_handler = RotatingFileHandler(
        get_log_filepath(),
        encoding="utf-8",
        maxBytes=MAX_LOG_BYTES,
        backupCount=LOG_BACKUP_COUNT,
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(plain_formatter)

    logger.addHandler(console_handler)
    logger.addHandler(file_handler)
    return logger


def get_logger(logger_name: str) -> logging.Logger:
    """Retrieve a logger configured for Modwatch, creating it if necessary."""
    return setup_logger(logger_name)


def set_console_level(level: int) -> None:
    """Change the console threshold of every Modwatch logger, present and future.

    The session file always receives DEBUG.
    """
    global _console_level

    _console_level = level
    for logger in logging.Logger.manager.loggerDict.values():
        if not isinstance(logger, logging.Logger):
            continue
        for handler in logger.handlers:
            if isinstance(handler, PromptToolkitHandler):
                handler.setLevel(level)


# -------------------- Exception Handling --------------------
def handle_exception(exception_type, exception_instance, exception_traceback) -> None:
    """
    Log uncaught exceptions; installed as ``sys.excepthook``.

    KeyboardInterrupt goes to the default hook so Ctrl+C still exits normally.
    """
    if issubclass(exception_type, KeyboardInterrupt):
        sys.__excepthook__(exception_type, exception_instance, exception_traceback)
        return
    logging.error("Uncaught exception", exc_info=(exception_type, exception_instance, exception_traceback))


# -------------------- Quiet third-party loggers --------------------
NOISY_LOGGERS = ["openai", "openai._base_client", "httpx", "httpcore", "asyncio"]

for noisy_name in NOISY_LOGGERS:
    noisy = logging.getLogger(noisy_name)
    noisy.setLevel(logging.ERROR)
    noisy.propagate = False
    noisy.handlers = []


sys.excepthook = handle_exception
