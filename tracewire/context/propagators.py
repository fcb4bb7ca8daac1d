"""Trace propagation header codec.

Wire format of the ``trace-propagation`` header::

    <32 lowercase hex trace id>-<16 lowercase hex span id>[-<1|0>]

The trailing flag is omitted when no sampling decision has been made.
Anything that does not match the grammar exactly is treated as if the header
were absent.
"""

from __future__ import annotations

import re
from typing import Dict, Mapping, MutableMapping, Optional, Set

from opentelemetry import context as context_api
from opentelemetry.context import Context
from opentelemetry.propagators.textmap import (
    CarrierT,
    Getter,
    Setter,
    TextMapPropagator,
    default_getter,
    default_setter,
)

from tracewire.errors import PropagationError
from tracewire.tracer.span_context import SamplingDecision, SpanContext

TRACE_PROPAGATION_HEADER = "trace-propagation"

TRACE_PROPAGATION_RE = re.compile(r"([0-9a-f]{32})-([0-9a-f]{16})(?:-([01]))?")

_FLAG_BY_DECISION = {SamplingDecision.SAMPLED: "1", SamplingDecision.NOT_SAMPLED: "0"}
_DECISION_BY_FLAG = {"1": SamplingDecision.SAMPLED, "0": SamplingDecision.NOT_SAMPLED}

_REMOTE_CONTEXT_KEY = context_api.create_key("tracewire-remote-span-context")


def format_trace_propagation(context: SpanContext) -> str:
    """Serialize a span context into a header value."""
    if not context.is_valid():
        raise PropagationError(
            "Cannot serialize an invalid span context",
            {"trace_id": context.trace_id, "span_id": context.span_id},
        )
    value = f"{context.trace_id}-{context.span_id}"
    flag = _FLAG_BY_DECISION.get(context.sampled)
    if flag is not None:
        value = f"{value}-{flag}"
    return value


def parse_trace_propagation(header_value: Optional[str]) -> Optional[SpanContext]:
    """
    Parse a header value into a SpanContext.

    Returns None for missing or malformed values; the caller should then start
    a fresh trace with no parent.
    """
    if not isinstance(header_value, str):
        return None
    match = TRACE_PROPAGATION_RE.fullmatch(header_value)
    if match is None:
        return None
    trace_id, span_id, flag = match.groups()
    context = SpanContext(
        trace_id=trace_id,
        span_id=span_id,
        sampled=_DECISION_BY_FLAG.get(flag, SamplingDecision.UNSET),
    )
    # all-zero ids match the grammar but are not usable identifiers
    if not context.is_valid():
        return None
    return context


def inject_trace_propagation(headers: MutableMapping[str, str], context: SpanContext) -> None:
    """Write the propagation header into a mutable headers mapping."""
    headers[TRACE_PROPAGATION_HEADER] = format_trace_propagation(context)


def extract_trace_propagation(headers: Mapping[str, str]) -> Optional[SpanContext]:
    """Find the propagation header (case-insensitive) and parse it."""
    for key, value in headers.items():
        if key.lower() == TRACE_PROPAGATION_HEADER:
            return parse_trace_propagation(value)
    return None


def get_remote_context(context: Optional[Context] = None) -> Optional[SpanContext]:
    """Return the span context stored by TracePropagationPropagator.extract(), if any."""
    return context_api.get_value(_REMOTE_CONTEXT_KEY, context=context)


class TracePropagationPropagator(TextMapPropagator):
    """
    OpenTelemetry propagator for the ``trace-propagation`` header.

    ``inject`` writes the header for the transaction active in the given
    context. ``extract`` stores the parsed upstream span context under a
    private key; read it back with :func:`get_remote_context`.
    """

    def extract(
        self,
        carrier: CarrierT,
        context: Optional[Context] = None,
        getter: Getter[CarrierT] = default_getter,
    ) -> Context:
        if context is None:
            context = context_api.get_current()
        values = getter.get(carrier, TRACE_PROPAGATION_HEADER)
        if not values:
            return context
        remote = parse_trace_propagation(values[0])
        if remote is None:
            return context
        return context_api.set_value(_REMOTE_CONTEXT_KEY, remote, context)

    def inject(
        self,
        carrier: CarrierT,
        context: Optional[Context] = None,
        setter: Setter[CarrierT] = default_setter,
    ) -> None:
        from tracewire.context.context import get_active_transaction

        transaction = get_active_transaction(context)
        if transaction is None:
            return
        setter.set(carrier, TRACE_PROPAGATION_HEADER, transaction.to_header())

    @property
    def fields(self) -> Set[str]:
        return {TRACE_PROPAGATION_HEADER}


def headers_from_context(context: SpanContext) -> Dict[str, str]:
    """Build a fresh headers dict carrying only the propagation header."""
    return {TRACE_PROPAGATION_HEADER: format_trace_propagation(context)}
