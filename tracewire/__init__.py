"""tracewire: distributed trace context, sampling and outgoing-request tracing."""

from __future__ import annotations

import logging
import threading
from typing import Any, Iterable, Optional

from opentelemetry.sdk.trace.export import SimpleSpanProcessor

from tracewire.config import load_config
from tracewire.context import (
    TRACE_PROPAGATION_HEADER,
    TracePropagationPropagator,
    format_trace_propagation,
    get_active_transaction,
    parse_trace_propagation,
    use_transaction,
)
from tracewire.errors import InitializationError
from tracewire.exporter import ConsoleExporter
from tracewire.instrumentation import (
    InstrumentationSource,
    OperationEndEvent,
    OperationStartEvent,
    TraceCoordinator,
    TransportKind,
    register_request_instrumentation,
)
from tracewire.processors import LoggingSpanProcessor
from tracewire.processors.sampler import TracesSampler
from tracewire.tracer import (
    SamplingDecision,
    Span,
    SpanContext,
    SpanProcessor,
    SpanStatus,
    Tracer,
    TracerProvider,
    Transaction,
)

__version__ = "0.1.0"

logger = logging.getLogger(__name__)

DEFAULT_TRACER_NAME = "tracewire"

_lock = threading.Lock()
_provider: Optional[TracerProvider] = None
_coordinator: Optional[TraceCoordinator] = None


def init(
    config_file: Optional[str] = None,
    source: Optional[InstrumentationSource] = None,
    *,
    traces_sampler: Optional[TracesSampler] = None,
    should_trace_url: Optional[Any] = None,
    processors: Optional[Iterable[Any]] = None,
    **overrides: Any,
) -> TracerProvider:
    """
    Configure tracing for this process.

    Args:
        config_file: Path to a tracewire.toml (searched for when omitted)
        source: Instrumentation source to trace outgoing requests from
        traces_sampler: Per-transaction sampling callback
        should_trace_url: Extra predicate restricting which URLs get spans
        processors: Additional span processors (tracewire enrichment or OTel export)
        **overrides: Flat config keys (sample_rate, tracing_origins, ...)

    Returns:
        The process TracerProvider. Calling init() again returns the same one.
    """
    global _provider, _coordinator
    with _lock:
        if _provider is not None:
            logger.debug("tracewire is already initialized; ignoring init()")
            return _provider

        config = load_config(config_file, **overrides)
        resource = {"service.name": config.tracing.service_name} if config.tracing.service_name else None
        provider = TracerProvider(
            sample_rate=config.tracing.sample_rate,
            traces_sampler=traces_sampler,
            resource=resource,
        )
        if config.exporters.enable_logging:
            provider.add_span_processor(LoggingSpanProcessor())
        if config.exporters.enable_console:
            provider.add_span_processor(SimpleSpanProcessor(ConsoleExporter()))
        for processor in processors or ():
            provider.add_span_processor(processor)

        if source is not None:
            option_overrides = {"should_trace_url": should_trace_url} if should_trace_url else {}
            _coordinator = register_request_instrumentation(
                source, config.to_instrumentation_options(**option_overrides)
            )
        _provider = provider
        return provider


def stop_tracing() -> None:
    """Uninstall request instrumentation and shut the provider down."""
    global _provider, _coordinator
    with _lock:
        if _coordinator is not None:
            _coordinator.close()
            _coordinator = None
        if _provider is not None:
            _provider.shutdown()
            _provider = None


def get_tracer_provider() -> Optional[TracerProvider]:
    return _provider


def get_coordinator() -> Optional[TraceCoordinator]:
    return _coordinator


def get_tracer(name: str = DEFAULT_TRACER_NAME) -> Tracer:
    provider = _provider
    if provider is None:
        raise InitializationError("tracewire is not initialized; call tracewire.init() first")
    return provider.get_tracer(name)


def start_transaction(name: str, **kwargs: Any) -> Transaction:
    """Start a transaction on the default tracer. See Tracer.start_transaction."""
    return get_tracer().start_transaction(name, **kwargs)


__all__ = [
    "__version__",
    "init",
    "stop_tracing",
    "get_tracer_provider",
    "get_coordinator",
    "get_tracer",
    "start_transaction",
    "get_active_transaction",
    "use_transaction",
    "TRACE_PROPAGATION_HEADER",
    "TracePropagationPropagator",
    "format_trace_propagation",
    "parse_trace_propagation",
    "InstrumentationSource",
    "OperationStartEvent",
    "OperationEndEvent",
    "TransportKind",
    "TraceCoordinator",
    "SamplingDecision",
    "Span",
    "SpanContext",
    "SpanStatus",
    "Transaction",
    "Tracer",
    "TracerProvider",
    "SpanProcessor",
]
