"""HTTP client helpers for manual context propagation."""

from __future__ import annotations

from typing import Any

from tracewire.context import TRACE_PROPAGATION_HEADER, get_active_transaction
from tracewire.instrumentation.header_sink import write_header


def inject_headers(headers: Any = None) -> Any:
    """
    Add the propagation header for the active transaction, if there is one.

    Accepts any container supported by the header sinks and returns the one
    to send (the same object unless it could not be mutated in place).
    """
    transaction = get_active_transaction()
    if transaction is None:
        return headers if headers is not None else {}
    return write_header(headers, TRACE_PROPAGATION_HEADER, transaction.to_header())
