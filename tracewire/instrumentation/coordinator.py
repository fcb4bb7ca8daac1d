"""Creates, propagates and finishes spans for outgoing network operations."""

from __future__ import annotations

import logging
import re
import threading
import time
from typing import Any, Callable, List, Optional, Set, Tuple

from opentelemetry.trace import SpanKind
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from tracewire.context.context import ActiveTransactionLookup, get_active_transaction
from tracewire.context.propagators import TRACE_PROPAGATION_HEADER
from tracewire.errors import CorrelationError, ValidationError
from tracewire.instrumentation.correlation import CorrelationRegistry
from tracewire.instrumentation.events import (
    InstrumentationSource,
    OperationEndEvent,
    OperationStartEvent,
    TransportKind,
)
from tracewire.instrumentation.header_sink import write_header
from tracewire.instrumentation.origin_filter import (
    DEFAULT_MAX_CACHE_SIZE,
    DEFAULT_REPORTING_ENDPOINT_PATTERN,
    DEFAULT_TRACING_ORIGINS,
    OriginFilter,
)
from tracewire.tracer.span import Span, SpanStatus

logger = logging.getLogger(__name__)

class RequestInstrumentationOptions(BaseModel):
    """Options controlling which outgoing requests are traced."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    tracing_origins: List[Any] = Field(default_factory=lambda: list(DEFAULT_TRACING_ORIGINS))
    trace_fetch: bool = True
    trace_xhr: bool = True
    should_trace_url: Optional[Callable[[str], bool]] = None
    reporting_endpoint_pattern: Any = DEFAULT_REPORTING_ENDPOINT_PATTERN
    max_cache_size: Optional[int] = Field(default=DEFAULT_MAX_CACHE_SIZE, ge=1)
    pending_timeout: Optional[float] = Field(default=None, gt=0)

    @field_validator("tracing_origins")
    @classmethod
    def _check_origins(cls, origins: List[Any]) -> List[Any]:
        for origin in origins:
            if not isinstance(origin, (str, re.Pattern)) and not callable(origin):
                raise ValueError(f"tracing origin must be a string, a compiled regex or a callable, got {origin!r}")
        return origins

    def enabled_transport_kinds(self) -> Set[TransportKind]:
        kinds = set()
        if self.trace_fetch:
            kinds.add(TransportKind.FETCH)
        if self.trace_xhr:
            kinds.add(TransportKind.XHR)
        return kinds


class TraceCoordinator:
    """
    Turns operation start/end events into child spans of the active transaction.

    Owns the URL decision cache and the pending-span registry; both live and
    die with the coordinator.
    """

    def __init__(
        self,
        options: Optional[RequestInstrumentationOptions] = None,
        *,
        active_transaction: Optional[ActiveTransactionLookup] = None,
        strict: bool = False,
        clock: Callable[[], float] = time.monotonic,
        **option_overrides: Any,
    ) -> None:
        """
        Args:
            options: Instrumentation options; keyword overrides build one when omitted
            active_transaction: Lookup for the current transaction (defaults to the OTel context)
            strict: Raise on duplicate correlation keys instead of logging
            clock: Monotonic clock used to age pending spans
        """
        if options is None or option_overrides:
            values = dict(options) if options is not None else {}
            values.update(option_overrides)
            try:
                options = RequestInstrumentationOptions(**values)
            except PydanticValidationError as e:
                raise ValidationError(
                    "Invalid request instrumentation options", {"errors": e.error_count()}
                ) from e
        self.options = options
        self.origin_filter = OriginFilter(
            tracing_origins=options.tracing_origins,
            should_trace_url=options.should_trace_url,
            reporting_endpoint_pattern=options.reporting_endpoint_pattern,
            max_cache_size=options.max_cache_size,
        )
        self.registry = CorrelationRegistry(strict=strict, clock=clock)
        self._active_transaction = active_transaction or get_active_transaction
        self._installed: List[Tuple[InstrumentationSource, TransportKind]] = []
        self._install_lock = threading.Lock()

    @property
    def enabled_transport_kinds(self) -> Set[TransportKind]:
        return self.options.enabled_transport_kinds()

    def on_operation_start(self, event: OperationStartEvent) -> Optional[str]:
        """
        Start a span for an outgoing operation and attach the propagation header.

        Returns the correlation key the end event must carry, or None when the
        operation is not traced.
        """
        transport = TransportKind(event.transport)
        if transport not in self.enabled_transport_kinds:
            return None
        if not self.origin_filter.should_trace(event.url):
            return None

        self.sweep_pending()

        transaction = self._active_transaction()
        if transaction is None:
            return None

        span = transaction.start_child(
            op=transport.value,
            description=f"{event.method} {event.url}",
            data={**event.data, "type": transport.value, "method": event.method, "url": event.url},
            start_timestamp=event.timestamp,
            kind=SpanKind.CLIENT,
        )
        key = event.correlation_key or span.span_id
        try:
            tracked = self.registry.begin(key, span)
        except CorrelationError:
            transaction._discard(span)
            raise
        if not tracked:
            transaction._discard(span)
            return None
        event.correlation_key = key

        try:
            event.headers = write_header(event.headers, TRACE_PROPAGATION_HEADER, span.to_header())
        except Exception:
            # The request goes out without the header; its span is still tracked
            logger.debug(
                "Could not attach %s header to %s %s",
                TRACE_PROPAGATION_HEADER,
                event.method,
                event.url,
                exc_info=True,
            )
        return key

    def on_operation_end(self, event: OperationEndEvent) -> Optional[Span]:
        """Finish the span started for this operation; unknown keys are ignored."""
        if event.correlation_key is None:
            return None
        span = self.registry.end(event.correlation_key)
        if span is None:
            return None
        span.set_data("url", event.url)
        span.set_data("method", event.method)
        if event.status_code is not None:
            span.set_http_status(event.status_code)
        span.finish(end_timestamp=event.timestamp)
        return span

    def sweep_pending(self) -> List[Span]:
        """Finish spans whose operation outlived ``pending_timeout`` without an end event."""
        if self.options.pending_timeout is None:
            return []
        return self._close_entries(self.registry.evict_stale(self.options.pending_timeout), SpanStatus.DEADLINE_EXCEEDED)

    def install(self, source: InstrumentationSource) -> None:
        """Subscribe to ``source`` for every enabled transport kind."""
        with self._install_lock:
            for transport in sorted(self.enabled_transport_kinds, key=lambda kind: kind.value):
                source.add_handler(transport, self.on_operation_start, self.on_operation_end)
                self._installed.append((source, transport))

    def uninstall(self) -> None:
        with self._install_lock:
            for source, transport in self._installed:
                source.remove_handler(transport, self.on_operation_start, self.on_operation_end)
            self._installed.clear()

    def close(self) -> None:
        """Unsubscribe, cancel every pending span and drop the URL cache."""
        self.uninstall()
        self._close_entries(self.registry.evict_stale(0), SpanStatus.CANCELLED)
        self.origin_filter.clear_cache()

    @staticmethod
    def _close_entries(entries, status: SpanStatus) -> List[Span]:
        spans = []
        for entry in entries:
            entry.span.set_status(status)
            entry.span.finish()
            spans.append(entry.span)
        return spans


def register_request_instrumentation(
    source: InstrumentationSource,
    options: Optional[RequestInstrumentationOptions] = None,
    **kwargs: Any,
) -> TraceCoordinator:
    """Build a coordinator and subscribe it to ``source``."""
    coordinator = TraceCoordinator(options, **kwargs)
    coordinator.install(source)
    return coordinator
