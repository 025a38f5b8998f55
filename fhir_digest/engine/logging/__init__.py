"""Logging package for fhir-digest tracing.

Components:
- formatters: JSON and human-readable log formatters
- trace_context: Context managers that tag records with bundle/file context
- handlers: Console and file handler setup
"""

from .formatters import (
    JSONLogFormatter,
    HumanReadableFormatter,
    format_trace_event,
)
from .handlers import setup_logging
from .trace_context import (
    TraceContextFilter,
    bundle_trace_context,
    file_trace_context,
    resource_trace_context,
    get_current_context,
    push_context,
    pop_context,
)

__all__ = [
    # Formatters
    "JSONLogFormatter",
    "HumanReadableFormatter",
    "format_trace_event",
    # Handlers
    "setup_logging",
    # Trace context
    "TraceContextFilter",
    "bundle_trace_context",
    "file_trace_context",
    "resource_trace_context",
    "get_current_context",
    "push_context",
    "pop_context",
]
