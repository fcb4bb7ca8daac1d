"""TracerProvider using OpenTelemetry SDK."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, List, Optional, TYPE_CHECKING

from opentelemetry.sdk.resources import Resource as OTelResource
from opentelemetry.sdk.trace import SpanProcessor as OTelSpanProcessor
from opentelemetry.sdk.trace import TracerProvider as OTelTracerProvider

from tracewire.utils.helpers import ContinuationIdGenerator

if TYPE_CHECKING:
    from tracewire.processors.sampler import TracesSampler
    from tracewire.tracer.tracer import Tracer

logger = logging.getLogger(__name__)


class SpanProcessor:
    """
    Base span processor interface for tracewire enrichment processors.

    Enrichment processors run BEFORE the OTel span ends (span is mutable) and
    only see spans of sampled transactions. Export processors use OTel's
    SpanProcessor interface and run after the OTel span ends.
    """

    def on_end(self, span) -> None:
        """
        Called when a span finishes.

        Args:
            span: tracewire Span or Transaction (finished, OTel span still open)
        """
        pass

    def shutdown(self) -> None:
        """Shutdown the processor."""
        pass

    def force_flush(self, timeout: Optional[float] = None) -> None:
        """Force flush any pending spans."""
        pass


class TracerProvider:
    """
    Entry point for creating tracers.

    Holds the head-based sampler shared by every tracer it hands out and wraps
    an OTel TracerProvider whose sampler applies that sampler's decisions.
    """

    def __init__(
        self,
        sample_rate: Any = None,
        traces_sampler: Optional[TracesSampler] = None,
        resource: Optional[Dict[str, str]] = None,
        random_func: Optional[Callable[[], float]] = None,
    ) -> None:
        """
        Args:
            sample_rate: Fixed probability (or bool) for new root transactions
            traces_sampler: Callback deciding per transaction; wins over sample_rate
            resource: Resource attributes dictionary (converted to OTel Resource)
            random_func: Source of uniform draws in [0, 1), for tests
        """
        from tracewire.processors.sampler import Sampler, TransactionSampler

        self.resource = resource or {}
        self._otel_provider = OTelTracerProvider(
            sampler=TransactionSampler(),
            resource=OTelResource.create(self.resource),
            id_generator=ContinuationIdGenerator(),
        )

        kwargs = {"random_func": random_func} if random_func is not None else {}
        self.sampler = Sampler(sample_rate=sample_rate, traces_sampler=traces_sampler, **kwargs)

        self._enrichment_processors: List[SpanProcessor] = []
        self._export_processors: List[OTelSpanProcessor] = []
        self._tracers: Dict[str, Any] = {}
        self._lock = threading.Lock()
        self._shutdown = False

    def get_tracer(self, name: str) -> "Tracer":
        """
        Get a tracer by name.

        Args:
            name: Instrumentation scope name

        Returns:
            Tracer instance (wraps an OTel Tracer)
        """
        with self._lock:
            tracer = self._tracers.get(name)
            if tracer is None:
                from tracewire.tracer.tracer import Tracer
                tracer = Tracer(self, name)
                self._tracers[name] = tracer
            return tracer

    def add_span_processor(self, processor: Any) -> None:
        """
        Add an OTel export processor or a tracewire enrichment processor.

        Args:
            processor: OTel SpanProcessor or tracewire SpanProcessor
        """
        with self._lock:
            if isinstance(processor, OTelSpanProcessor):
                self._otel_provider.add_span_processor(processor)
                self._export_processors.append(processor)
            else:
                self._enrichment_processors.append(processor)

    @property
    def span_processors(self) -> List[Any]:
        with self._lock:
            return [*self._enrichment_processors, *self._export_processors]

    def _on_span_end(self, span) -> None:
        if self._shutdown:
            return
        with self._lock:
            processors = list(self._enrichment_processors)
        for processor in processors:
            try:
                processor.on_end(span)
            except Exception:
                # Processors must never break the instrumented operation
                logger.exception("Span processor %r failed in on_end", processor)

    def force_flush(self, timeout: Optional[float] = None) -> bool:
        """Force flush all processors; returns False if OTel export did not complete in time."""
        flushed = self._otel_provider.force_flush(timeout_millis=int(timeout * 1000) if timeout else 30000)
        for processor in list(self._enrichment_processors):
            try:
                processor.force_flush(timeout=timeout)
            except Exception:
                logger.exception("Span processor %r failed to flush", processor)
        return flushed

    def shutdown(self) -> None:
        """Shutdown the provider and all processors."""
        self._shutdown = True
        self._otel_provider.shutdown()
        for processor in list(self._enrichment_processors):
            try:
                processor.shutdown()
            except Exception:
                logger.exception("Span processor %r failed to shut down", processor)
