"""Span processor that logs spans when they end."""

from __future__ import annotations

import logging
from typing import Optional

from tracewire.tracer.provider import SpanProcessor


class LoggingSpanProcessor(SpanProcessor):
    """Logs span summary on end using the standard logging module."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or logging.getLogger("tracewire.traces")

    def on_end(self, span) -> None:
        msg = (
            f"[trace] op={span.op} description={span.description!r} trace_id={span.trace_id} "
            f"span_id={span.span_id} parent_span_id={span.parent_span_id} "
            f"status={span.status.value} duration={span.duration}"
        )
        if span.data:
            msg += f" data={span.data}"
        self.logger.info(msg)

    def shutdown(self) -> None:
        return None

    def force_flush(self, timeout: Optional[float] = None) -> None:
        return None
