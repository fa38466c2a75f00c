"""
Logging setup for ShipmentCreateWeb.

Requests are served on Flask's worker threads, while address and postal
validation run on short debounce timer threads. Each log line records the
thread and the wizard session it belongs to. That lets you follow one
user's draft from a field edit, through the validation timer it
scheduled, to the outcome they later collected.

Log Format:
    2026-03-02 10:15:30 [INFO    ] [MainThread|-] app - Starting ShipmentCreateWeb in development mode
    2026-03-02 10:15:31 [INFO    ] [Thread-4|3f9a1c2e] services.pricing_service - Received 2 option(s), first total 1750
    2026-03-02 10:15:32 [INFO    ] [Validate-postal|3f9a1c2e] services.validation_coordinator - Validating postal #2

Usage:
    from logging_config import setup_logging, get_logger, bind_session

    setup_logging(log_level=logging.INFO, enable_file_logging=True)

    logger = get_logger(__name__)
    bind_session(session_key)   # on any thread working for one session
"""

import logging
import sys
import threading
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional


APP_LOGGER_NAME = "shipment_create_web"

# Third-party loggers that are too chatty at INFO
QUIET_LOGGERS = ("urllib3",)

_context = threading.local()


# =============================================================================
# CONTEXT
# =============================================================================

def bind_session(session_key: Optional[str]) -> None:
    """
    Tag log lines from the current thread with a wizard session.

    Only the first eight characters are kept. Passing None clears the tag,
    which matters because Flask reuses worker threads across requests.
    """
    _context.session = session_key[:8] if session_key else "-"


def set_thread_name(name: str) -> None:
    """Rename the current thread, e.g. ``Validate-postal`` for a timer."""
    threading.current_thread().name = name


class SessionContextFilter(logging.Filter):
    """Adds ``thread_name`` and ``session`` to every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.thread_name = threading.current_thread().name
        record.session = getattr(_context, "session", "-")
        return True


# =============================================================================
# LOGGING SETUP
# =============================================================================

def _rotating_handler(
    path: Path,
    level: int,
    formatter: logging.Formatter,
    context_filter: logging.Filter,
) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        filename=path,
        maxBytes=10 * 1024 * 1024,  # 10 MB per file
        backupCount=5,
        encoding="utf-8"
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.addFilter(context_filter)
    return handler


def setup_logging(
    app_name: str = APP_LOGGER_NAME,
    log_level: int = logging.INFO,
    log_dir: Optional[Path] = None,
    enable_file_logging: bool = True,
) -> logging.Logger:
    """
    Configure the application logger.

    The console handler is always installed. With file logging enabled, two
    rotating files are written under ``log_dir``: one with everything at
    ``log_level`` and one with ERROR and above only.

    Args:
        app_name: Name of the application logger
        log_level: Minimum log level (default: INFO)
        log_dir: Directory for log files (default: ./logs next to this file)
        enable_file_logging: Whether to write log files

    Returns:
        The configured application logger
    """
    logger = logging.getLogger(app_name)
    logger.setLevel(log_level)
    logger.propagate = False

    # Allows re-configuration, e.g. one app per test
    logger.handlers.clear()

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)-8s] [%(thread_name)s|%(session)s] %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    context_filter = SessionContextFilter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(context_filter)
    logger.addHandler(console_handler)

    if enable_file_logging:
        if log_dir is None:
            log_dir = Path(__file__).parent / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)

        app_log_file = log_dir / f"{app_name}.log"
        logger.addHandler(_rotating_handler(app_log_file, log_level, formatter, context_filter))
        logger.addHandler(_rotating_handler(
            log_dir / f"{app_name}_error.log", logging.ERROR, formatter, context_filter
        ))
        logger.info(f"File logging enabled: {app_log_file}")

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    logger.info(f"Logging configured at level {logging.getLevelName(log_level)}")
    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Child logger under the application namespace.

    ``get_logger("services.pricing_service")`` returns the logger
    ``shipment_create_web.services.pricing_service``.
    """
    if not name.startswith(APP_LOGGER_NAME):
        name = f"{APP_LOGGER_NAME}.{name}"
    return logging.getLogger(name)
