"""Utility functions for tracewire."""

from tracewire.utils.helpers import (
    format_trace_id,
    format_span_id,
    generate_trace_id,
    generate_span_id,
    is_valid_trace_id,
    is_valid_span_id,
    timestamp_in_seconds,
)

__all__ = [
    "format_trace_id",
    "format_span_id",
    "generate_trace_id",
    "generate_span_id",
    "is_valid_trace_id",
    "is_valid_span_id",
    "timestamp_in_seconds",
]
