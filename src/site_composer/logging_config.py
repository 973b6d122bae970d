from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone

from google.cloud import logging as cloud_logging

trace_id_var: ContextVar[str | None] = ContextVar("trace_id", default=None)

TRACE_FIELD = "logging.googleapis.com/trace"
NOISY_LOGGERS = ("google", "urllib3", "requests")

# Attributes every LogRecord has; anything else arrived through ``extra=``.
_RESERVED_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, in the shape Cloud Logging parses from stdout.

    ``extra=`` fields are copied to the top level. With a project id the trace
    is written as a full ``projects/<id>/traces/<trace>`` resource name so log
    lines group under their request.
    """

    def __init__(self, project_id: str | None = None) -> None:
        super().__init__()
        self.project_id = project_id

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "severity": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        trace_id = trace_id_var.get()
        if trace_id:
            entry[TRACE_FIELD] = f"projects/{self.project_id}/traces/{trace_id}" if self.project_id else trace_id

        entry.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RESERVED_ATTRS and not key.startswith("_")
        )
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(
    *,
    environment: str = "dev",
    project_id: str | None = None,
    use_cloud_logging: bool = True,
) -> None:
    """Configure root logging for a service.

    Args:
        environment: Environment name (dev, staging, prod)
        project_id: GCP project ID for Cloud Logging
        use_cloud_logging: Whether to use Cloud Logging client
    """
    log_level = logging.DEBUG if environment == "dev" else logging.INFO

    if use_cloud_logging and project_id and environment != "dev":
        cloud_logging.Client(project=project_id).setup_logging(log_level=log_level)
    else:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(StructuredFormatter(project_id))
        logging.basicConfig(level=log_level, handlers=[handler])

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def set_trace_id(trace_id: str | None) -> None:
    trace_id_var.set(trace_id)


def get_trace_id() -> str | None:
    return trace_id_var.get()


def trace_id_from_header(header: str | None) -> str | None:
    """Trace id from an ``X-Cloud-Trace-Context`` value (``TRACE_ID/SPAN_ID;o=1``)."""
    if not header:
        return None
    return header.split("/", 1)[0].strip() or None


__all__ = [
    "StructuredFormatter",
    "TRACE_FIELD",
    "get_trace_id",
    "set_trace_id",
    "setup_logging",
    "trace_id_from_header",
]
