"""JSON and human-readable log formatters for digest tracing."""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

# Extra record attributes copied into structured output
TRACE_FIELDS = (
    "event_type",
    "bundle_id",
    "bundle_type",
    "resource_type",
    "processed_type",
    "entry_count",
    "resource_count",
    "attachment_count",
    "duration_ms",
    "entry_index",
    "source_file",
    "detail",
    "error",
)


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class JSONLogFormatter(logging.Formatter):
    """Formatter that outputs structured JSON log lines (JSONL format).

    Each log record is formatted as a single JSON object on one line,
    suitable for machine parsing and analysis tools.
    """

    def __init__(self, include_extra: bool = True):
        """Initialize the JSON formatter.

        Args:
            include_extra: Whether to include trace fields from log records
        """
        super().__init__()
        self.include_extra = include_extra

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record as JSON.

        Args:
            record: The log record to format

        Returns:
            JSON string (single line)
        """
        log_data = {
            "timestamp": _utc_timestamp(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if self.include_extra:
            for field in TRACE_FIELDS:
                value = getattr(record, field, None)
                if value is not None:
                    log_data[field] = value

        return json.dumps(log_data, default=str, ensure_ascii=False)


class HumanReadableFormatter(logging.Formatter):
    """Formatter for console output.

    Prefixes each line with the time, the bundle being processed and the
    event type, then appends the most useful counters.
    """

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now().strftime("%H:%M:%S.%f")[:-3]

        parts = [f"[{timestamp}]", record.levelname]

        bundle_id = getattr(record, "bundle_id", None)
        if bundle_id:
            parts.append(f"[{bundle_id}]")

        event_type = getattr(record, "event_type", None)
        if event_type:
            parts.append(event_type)

        prefix = " ".join(parts)
        message = record.getMessage()

        details = []
        if getattr(record, "bundle_type", None):
            details.append(f"type={record.bundle_type}")
        if getattr(record, "entry_count", None) is not None:
            details.append(f"entries={record.entry_count}")
        if getattr(record, "duration_ms", None) is not None:
            details.append(f"duration={record.duration_ms}ms")

        line = f"{prefix}: {message}"
        if details:
            line += f" ({', '.join(details)})"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def format_trace_event(
    event_type: str,
    bundle_id: Optional[str] = None,
    **kwargs: Any
) -> Dict[str, Any]:
    """Create a structured trace event dictionary.

    Args:
        event_type: Type of event (e.g., "BUNDLE_CLASSIFIED")
        bundle_id: Optional bundle identifier
        **kwargs: Additional event-specific fields

    Returns:
        Dictionary with structured event data
    """
    event = {
        "timestamp": _utc_timestamp(),
        "event_type": event_type,
    }

    if bundle_id:
        event["bundle_id"] = bundle_id

    event.update(kwargs)
    return event
