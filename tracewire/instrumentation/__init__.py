"""Instrumentation: outgoing request tracing and manual propagation helpers."""

from tracewire.instrumentation.coordinator import (
    RequestInstrumentationOptions,
    TraceCoordinator,
    register_request_instrumentation,
)
from tracewire.instrumentation.correlation import CorrelationRegistry, PendingCorrelation
from tracewire.instrumentation.events import (
    InstrumentationSource,
    OperationEndEvent,
    OperationStartEvent,
    TransportKind,
)
from tracewire.instrumentation.header_sink import (
    AppendableHeaderSink,
    HeaderSink,
    MappingHeaderSink,
    PairListHeaderSink,
    header_sink_for,
    write_header,
)
from tracewire.instrumentation.http_client import inject_headers as inject_http_headers
from tracewire.instrumentation.http_server import extract_parent_context, start_server_transaction
from tracewire.instrumentation.origin_filter import DEFAULT_TRACING_ORIGINS, OriginFilter

__all__ = [
    "RequestInstrumentationOptions",
    "TraceCoordinator",
    "register_request_instrumentation",
    "CorrelationRegistry",
    "PendingCorrelation",
    "InstrumentationSource",
    "OperationStartEvent",
    "OperationEndEvent",
    "TransportKind",
    "HeaderSink",
    "MappingHeaderSink",
    "PairListHeaderSink",
    "AppendableHeaderSink",
    "header_sink_for",
    "write_header",
    "inject_http_headers",
    "extract_parent_context",
    "start_server_transaction",
    "OriginFilter",
    "DEFAULT_TRACING_ORIGINS",
]
