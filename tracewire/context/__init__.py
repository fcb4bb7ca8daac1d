"""Context utilities: active transaction and header propagation."""

from tracewire.context.context import (
    ActiveTransactionLookup,
    get_active_transaction,
    pop_transaction,
    push_transaction,
    use_transaction,
)
from tracewire.context.propagators import (
    TRACE_PROPAGATION_HEADER,
    TracePropagationPropagator,
    extract_trace_propagation,
    format_trace_propagation,
    get_remote_context,
    headers_from_context,
    inject_trace_propagation,
    parse_trace_propagation,
)

__all__ = [
    "ActiveTransactionLookup",
    "get_active_transaction",
    "push_transaction",
    "pop_transaction",
    "use_transaction",
    "TRACE_PROPAGATION_HEADER",
    "TracePropagationPropagator",
    "format_trace_propagation",
    "parse_trace_propagation",
    "inject_trace_propagation",
    "extract_trace_propagation",
    "get_remote_context",
    "headers_from_context",
]
