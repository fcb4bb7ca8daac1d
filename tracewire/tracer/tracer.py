"""Tracer: fixes a transaction's sampling decision and starts its OTel span."""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, TYPE_CHECKING

from opentelemetry.context import Context
from opentelemetry.trace import NonRecordingSpan, SpanKind, TraceFlags, set_span_in_context
from opentelemetry.trace import SpanContext as OTelSpanContext
from opentelemetry.trace import Tracer as OTelTracer

from tracewire.tracer.sampling_context import RequestSnapshot, SamplingContext, TransactionContext
from tracewire.tracer.span import SAMPLED_ATTRIBUTE, Span, seconds_to_ns, span_attributes
from tracewire.tracer.transaction import Transaction
from tracewire.utils.helpers import (
    continue_trace,
    generate_trace_id,
    is_valid_span_id,
    is_valid_trace_id,
    timestamp_in_seconds,
)

if TYPE_CHECKING:
    from tracewire.tracer.provider import TracerProvider

logger = logging.getLogger(__name__)


class Tracer:
    """Creates transactions on behalf of one instrumentation scope."""

    def __init__(self, provider: "TracerProvider", instrumentation_scope: str):
        """
        Args:
            provider: TracerProvider instance
            instrumentation_scope: Instrumentation scope name
        """
        self._provider = provider
        self.instrumentation_scope = instrumentation_scope
        self._otel_tracer: OTelTracer = provider._otel_provider.get_tracer(instrumentation_scope)

    @property
    def provider(self) -> "TracerProvider":
        return self._provider

    def start_transaction(
        self,
        name: str,
        *,
        op: Optional[str] = None,
        sampled: Optional[bool] = None,
        parent_sampled: Optional[bool] = None,
        trace_id: Optional[str] = None,
        parent_span_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        request: Optional[RequestSnapshot] = None,
        sampling_context: Optional[Mapping[str, Any]] = None,
        start_timestamp: Optional[float] = None,
        kind: SpanKind = SpanKind.INTERNAL,
    ) -> Transaction:
        """
        Start a new transaction with its sampling decision fixed.

        Args:
            name: Transaction name
            op: Operation name of the root span
            sampled: Explicit decision; overrides every configured sampler
            parent_sampled: Decision inherited from an upstream service
            trace_id: Existing trace id to continue (generated when absent)
            parent_span_id: Upstream span id when continuing a trace
            metadata: Arbitrary data visible to a custom sampler
            request: Inbound request snapshot visible to a custom sampler
            sampling_context: Extra keys merged into the sampling context
            start_timestamp: Start time in epoch seconds (now when absent)
            kind: OTel span kind of the root span

        Returns:
            Transaction with a fixed sampling decision
        """
        if trace_id is not None and not is_valid_trace_id(trace_id):
            logger.debug("Ignoring invalid trace id %r; starting a new trace", trace_id)
            trace_id = None
            parent_span_id = None
        if parent_span_id is not None and not is_valid_span_id(parent_span_id):
            logger.debug("Ignoring invalid parent span id %r", parent_span_id)
            parent_span_id = None

        transaction_context = TransactionContext(
            name=name,
            op=op,
            trace_id=trace_id,
            parent_span_id=parent_span_id,
            sampled=sampled,
            parent_sampled=parent_sampled,
            metadata=MappingProxyType(dict(metadata or {})),
        )
        context = SamplingContext(
            transaction_context=transaction_context,
            parent_sampled=parent_sampled,
            request=request,
            extra=MappingProxyType(dict(sampling_context or {})),
        )

        result = self._provider.sampler.should_sample(context, explicit=sampled)
        data: Dict[str, Any] = {"sampling.reason": result.reason}
        if result.rate is not None:
            data["sampling.rate"] = result.rate
        if start_timestamp is None:
            start_timestamp = timestamp_in_seconds()

        attributes = span_attributes(op, data)
        attributes[SAMPLED_ATTRIBUTE] = result.sampled
        with continue_trace(trace_id if parent_span_id is None else None):
            otel_span = self._otel_tracer.start_span(
                name,
                context=self._parent_context(trace_id, parent_span_id, result.sampled),
                kind=kind,
                attributes=attributes,
                start_time=seconds_to_ns(start_timestamp),
            )

        transaction = Transaction(
            otel_span,
            self,
            name,
            parent_span_id=parent_span_id,
            op=op,
            data=data,
            metadata=metadata,
            sampling_context=context,
            start_timestamp=start_timestamp,
        )
        logger.debug("Started %r (%s)", transaction, result.reason)
        return transaction

    def continue_from_header(
        self,
        header_value: Optional[str],
        name: str,
        **kwargs: Any,
    ) -> Transaction:
        """
        Start a transaction continuing the trace described by an inbound header.

        A missing or malformed header starts a fresh trace with no parent.
        """
        from tracewire.context.propagators import parse_trace_propagation

        remote = parse_trace_propagation(header_value)
        if remote is not None:
            kwargs.setdefault("trace_id", remote.trace_id)
            kwargs.setdefault("parent_span_id", remote.span_id)
            kwargs.setdefault("parent_sampled", remote.sampled.to_bool())
        return self.start_transaction(name, **kwargs)

    @staticmethod
    def _parent_context(trace_id: Optional[str], parent_span_id: Optional[str], sampled: bool) -> Context:
        # A fresh Context keeps the caller's active OTel span out of the trace
        if parent_span_id is None:
            return Context()
        remote_parent = OTelSpanContext(
            trace_id=int(trace_id or generate_trace_id(), 16),
            span_id=int(parent_span_id, 16),
            is_remote=True,
            trace_flags=TraceFlags(TraceFlags.SAMPLED if sampled else TraceFlags.DEFAULT),
        )
        return set_span_in_context(NonRecordingSpan(remote_parent), Context())

    def _start_child(
        self,
        parent: Span,
        *,
        op: Optional[str],
        description: Optional[str],
        data: Optional[Dict[str, Any]],
        start_timestamp: Optional[float],
        kind: SpanKind,
    ) -> Span:
        if start_timestamp is None:
            start_timestamp = timestamp_in_seconds()
        otel_span = self._otel_tracer.start_span(
            description or op or "span",
            context=set_span_in_context(parent.otel_span, Context()),
            kind=kind,
            attributes=span_attributes(op, data),
            start_time=seconds_to_ns(start_timestamp),
        )
        return Span(
            otel_span,
            self,
            parent.transaction,
            parent_span_id=parent.span_id,
            op=op,
            description=description,
            data=data,
            start_timestamp=start_timestamp,
        )

    def _on_span_end(self, span) -> None:
        self._provider._on_span_end(span)
