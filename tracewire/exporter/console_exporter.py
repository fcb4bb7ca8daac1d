"""Console exporter for developer visibility."""

from __future__ import annotations

import sys
from typing import Sequence

from opentelemetry.sdk.trace import ReadableSpan
from opentelemetry.sdk.trace.export import SpanExporter, SpanExportResult

from tracewire.tracer.span import OP_ATTRIBUTE, STATUS_ATTRIBUTE
from tracewire.utils.helpers import format_span_id, format_trace_id


class ConsoleExporter(SpanExporter):
    """Simple exporter that prints spans to stdout (or provided stream)."""

    def __init__(self, stream=None) -> None:
        self.stream = stream or sys.stdout

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        for span in spans:
            context = span.get_span_context()
            attributes = dict(span.attributes or {})
            duration_ms = None
            if span.end_time is not None and span.start_time is not None:
                duration_ms = (span.end_time - span.start_time) / 1e6
            line = (
                f"[span] op={attributes.pop(OP_ATTRIBUTE, None)} name={span.name!r} "
                f"trace_id={format_trace_id(context.trace_id)} span_id={format_span_id(context.span_id)} "
                f"status={attributes.pop(STATUS_ATTRIBUTE, None)} duration_ms={duration_ms}"
            )
            if attributes:
                line += f" attributes={attributes}"
            print(line, file=self.stream)
        return SpanExportResult.SUCCESS

    def shutdown(self) -> None:
        return None
