"""Transaction: the root span of a trace tree and owner of its sampling decision."""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from opentelemetry.trace import Span as OTelSpan

from tracewire.tracer.sampling_context import SamplingContext
from tracewire.tracer.span import Span, SpanStatus
from tracewire.tracer.span_context import SamplingDecision

if TYPE_CHECKING:
    from tracewire.tracer.tracer import Tracer

logger = logging.getLogger(__name__)


class Transaction(Span):
    """
    Root span owning every descendant span created under it.

    The sampling decision is fixed by the tracer before the OTel span is
    started. Unsampled transactions still hand out non-recording spans (so
    headers can be propagated) but nothing reaches a processor.
    """

    def __init__(
        self,
        otel_span: OTelSpan,
        tracer: "Tracer",
        name: str,
        *,
        parent_span_id: Optional[str] = None,
        op: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
        metadata: Optional[Dict[str, Any]] = None,
        sampling_context: Optional[SamplingContext] = None,
        start_timestamp: Optional[float] = None,
    ) -> None:
        super().__init__(
            otel_span,
            tracer,
            None,
            parent_span_id=parent_span_id,
            op=op,
            description=name,
            data=data,
            start_timestamp=start_timestamp,
        )
        self._transaction = self
        self.name = name
        self.metadata: Dict[str, Any] = dict(metadata or {})
        self.sampling_context = sampling_context
        self._spans: List[Span] = []
        self._lock = threading.Lock()
        self._activation_token = None

    @property
    def spans(self) -> List[Span]:
        """Snapshot of the child spans owned by this transaction."""
        with self._lock:
            return list(self._spans)

    def _adopt(self, span: Span) -> None:
        with self._lock:
            self._spans.append(span)

    def _discard(self, span: Span) -> None:
        """Forget a child span that will never be finished."""
        with self._lock:
            if span in self._spans:
                self._spans.remove(span)

    def _on_span_finished(self, span: Span) -> None:
        if self.sampled is not SamplingDecision.SAMPLED:
            logger.debug(
                "Discarding %s span %s: transaction %r is not sampled",
                "root" if span is self else "child",
                span.span_id,
                self.name,
            )
            return
        self.tracer._on_span_end(span)

    def __enter__(self) -> "Transaction":
        from tracewire.context.context import push_transaction

        self._activation_token = push_transaction(self)
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        from tracewire.context.context import pop_transaction

        try:
            if exc is not None and self.status == SpanStatus.UNSET:
                self.set_status(SpanStatus.INTERNAL_ERROR)
            if exc is not None and self.is_recording:
                self.otel_span.record_exception(exc)
            self.finish()
        finally:
            if self._activation_token is not None:
                pop_transaction(self._activation_token)
                self._activation_token = None
        return False

    def __repr__(self) -> str:
        return (
            f"<Transaction name={self.name!r} trace_id={self.trace_id} "
            f"span_id={self.span_id} sampled={self.sampled.value}>"
        )
