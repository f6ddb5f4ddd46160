"""Observability helpers."""

from hailview.observability.otel import (
    initialize,
    is_enabled,
    shutdown,
    start_span,
    record_pipeline_run,
    record_session_rejected,
)

__all__ = [
    "initialize",
    "is_enabled",
    "shutdown",
    "start_span",
    "record_pipeline_run",
    "record_session_rejected",
]
