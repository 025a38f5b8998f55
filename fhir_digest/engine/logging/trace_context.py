"""Context managers for bundle-level tracing.

Fields pushed here are attached to every log record emitted within the
context by ``TraceContextFilter``.
"""

import logging
import threading
import time
from contextlib import contextmanager
from typing import Any, Dict, Generator, Optional

_trace_context = threading.local()


def _stack() -> list:
    if not hasattr(_trace_context, "stack"):
        _trace_context.stack = []
    return _trace_context.stack


def get_current_context() -> Dict[str, Any]:
    """Merge all context frames of the current thread."""
    result: Dict[str, Any] = {}
    for frame in _stack():
        result.update(frame)
    return result


def push_context(**kwargs: Any) -> None:
    _stack().append(kwargs)


def pop_context() -> Dict[str, Any]:
    stack = _stack()
    if not stack:
        return {}
    return stack.pop()


class TraceContextFilter(logging.Filter):
    """Logging filter that attaches trace context to log records.

    Add this filter to handlers so every record carries the bundle_id and
    other fields of the enclosing trace context.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in get_current_context().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


@contextmanager
def bundle_trace_context(
    bundle_id: str,
    logger: Optional[logging.Logger] = None,
) -> Generator[Dict[str, Any], None, None]:
    """Context manager for bundle-level tracing.

    Adds bundle_id to all log records within the context and logs the start
    and end of bundle processing.

    Args:
        bundle_id: The bundle identifier
        logger: Optional logger for start/end messages

    Yields:
        Dictionary for additional context (e.g. bundle_type once known)

    Example:
        with bundle_trace_context("bundle-01", logger) as ctx:
            logger.info("Normalizing entries")
            ctx["bundle_type"] = "PrescriptionRecord"
    """
    context: Dict[str, Any] = {"bundle_id": bundle_id}
    push_context(**context)

    start_time = time.time()

    if logger:
        logger.debug(
            "Starting bundle processing",
            extra={"event_type": "BUNDLE_START", "bundle_id": bundle_id},
        )

    try:
        yield context
    finally:
        duration_ms = int((time.time() - start_time) * 1000)

        if logger:
            logger.debug(
                "Finished bundle processing",
                extra={
                    "event_type": "BUNDLE_COMPLETE",
                    "bundle_id": bundle_id,
                    "bundle_type": context.get("bundle_type"),
                    "duration_ms": duration_ms,
                },
            )

        pop_context()


@contextmanager
def file_trace_context(source_file: str) -> Generator[Dict[str, Any], None, None]:
    """Tag records with the file a batch run is currently reading."""
    context: Dict[str, Any] = {"source_file": source_file}
    push_context(**context)
    try:
        yield context
    finally:
        pop_context()


@contextmanager
def resource_trace_context(
    resource_type: str,
    index: Optional[int] = None,
) -> Generator[Dict[str, Any], None, None]:
    """Tag records with the entry currently being normalized.

    Args:
        resource_type: FHIR resourceType of the entry
        index: Optional position of the entry within its bundle
    """
    context: Dict[str, Any] = {"resource_type": resource_type}
    if index is not None:
        context["entry_index"] = index
    push_context(**context)
    try:
        yield context
    finally:
        pop_context()
