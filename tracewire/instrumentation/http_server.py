"""HTTP server helpers for continuing an upstream trace."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from opentelemetry.trace import SpanKind

from tracewire.context import extract_trace_propagation
from tracewire.tracer.sampling_context import RequestSnapshot
from tracewire.tracer.span_context import SpanContext
from tracewire.tracer.tracer import Tracer
from tracewire.tracer.transaction import Transaction


def extract_parent_context(headers: Mapping[str, str]) -> Optional[SpanContext]:
    """Parse the propagation header from inbound headers; None if absent or malformed."""
    return extract_trace_propagation(headers)


def start_server_transaction(
    tracer: Tracer,
    name: str,
    headers: Mapping[str, str],
    *,
    method: Optional[str] = None,
    url: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Transaction:
    """
    Start a transaction for an inbound request.

    Continues the caller's trace when the request carries a valid header, so
    the caller's sampling decision is inherited. The request snapshot is
    exposed to a custom sampler.

    Use the returned transaction as a context manager to make it active.
    """
    parent = extract_parent_context(headers)
    request = RequestSnapshot.from_headers(method, url, headers)
    kwargs: Dict[str, Any] = {
        "op": "http.server",
        "kind": SpanKind.SERVER,
        "metadata": metadata,
        "request": request,
    }
    if parent is not None:
        kwargs.update(
            trace_id=parent.trace_id,
            parent_span_id=parent.span_id,
            parent_sampled=parent.sampled.to_bool(),
        )
    return tracer.start_transaction(name, **kwargs)
