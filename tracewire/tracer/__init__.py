"""Tracer components for tracewire."""

from tracewire.tracer.provider import SpanProcessor, TracerProvider
from tracewire.tracer.sampling_context import RequestSnapshot, SamplingContext, TransactionContext
from tracewire.tracer.span import Span, SpanStatus
from tracewire.tracer.span_context import SamplingDecision, SpanContext
from tracewire.tracer.tracer import Tracer
from tracewire.tracer.transaction import Transaction

__all__ = [
    "Span",
    "SpanStatus",
    "SpanContext",
    "SamplingDecision",
    "SamplingContext",
    "TransactionContext",
    "RequestSnapshot",
    "Transaction",
    "Tracer",
    "TracerProvider",
    "SpanProcessor",
]
