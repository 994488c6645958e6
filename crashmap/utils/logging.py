"""Structured logging for the API and the query CLI."""
import logging
import logging.handlers
import sys
from pathlib import Path
from typing import List, Optional, TextIO

import structlog

from .config import LoggingSettings, settings

CONSOLE_FORMAT = "%(message)s"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _processors(json_output: bool) -> List[structlog.types.Processor]:
    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        renderer,
    ]


def setup_logging(
    service_name: str,
    log_level: Optional[str] = None,
    log_file: Optional[str] = None,
    stream: Optional[TextIO] = None,
) -> None:
    """Configure structlog over the standard library.

    Every event carries ``service=<service_name>``. Console output goes to
    ``stream`` (stdout unless given); the CLI passes stderr so stdout holds
    only query results.

    Args:
        service_name: Component name, e.g. ``api`` or ``cli``
        log_level: Overrides ``LOG_LEVEL``
        log_file: Overrides ``LOG_FILE``; enables a rotating file handler
        stream: Console stream
    """
    log_settings = settings.logging
    level = getattr(logging, (log_level or log_settings.level).upper())
    log_file = log_file or log_settings.file

    structlog.configure(
        processors=_processors(log_settings.format == "json"),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    structlog.contextvars.bind_contextvars(service=service_name)

    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    console_handler = logging.StreamHandler(stream or sys.stdout)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    root.addHandler(console_handler)

    if log_file:
        root.addHandler(_file_handler(log_file, log_settings))


def _file_handler(log_file: str, log_settings: LoggingSettings) -> logging.Handler:
    Path(log_file).parent.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=log_settings.max_bytes,
        backupCount=log_settings.backup_count,
    )
    handler.setFormatter(
        logging.Formatter(CONSOLE_FORMAT if log_settings.format == "json" else FILE_FORMAT)
    )
    return handler


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
