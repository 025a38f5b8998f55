"""Handler setup for digest logging.

Console output uses the human-readable formatter; an optional log file
receives JSON lines for later analysis.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from ..config import LOG_LEVEL
from .formatters import HumanReadableFormatter, JSONLogFormatter
from .trace_context import TraceContextFilter

ROOT_LOGGER_NAME = "fhir_digest"

_HANDLER_MARKER = "_fhir_digest_handler"


def _mark(handler: logging.Handler) -> logging.Handler:
    setattr(handler, _HANDLER_MARKER, True)
    handler.addFilter(TraceContextFilter())
    return handler


def setup_logging(
    level: Union[int, str] = LOG_LEVEL,
    json_format: bool = False,
    log_file: Optional[Union[str, Path]] = None,
) -> logging.Logger:
    """Configure the ``fhir_digest`` logger hierarchy.

    Calling it again replaces the handlers installed by a previous call.

    Args:
        level: Logging level for the package logger
        json_format: Emit JSON lines on the console instead of readable text
        log_file: Optional path; receives JSON lines at DEBUG level

    Returns:
        The configured package logger
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(logging.DEBUG if log_file else level)

    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_MARKER, False):
            logger.removeHandler(handler)
            handler.close()

    console = _mark(logging.StreamHandler())
    console.setFormatter(JSONLogFormatter() if json_format else HumanReadableFormatter())
    console.setLevel(level)
    logger.addHandler(console)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = _mark(logging.FileHandler(str(path), encoding="utf-8"))
        file_handler.setFormatter(JSONLogFormatter())
        file_handler.setLevel(logging.DEBUG)
        logger.addHandler(file_handler)

    return logger
