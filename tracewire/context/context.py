"""Active-transaction lookup, stored in the OpenTelemetry context."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, Iterator, Optional, TYPE_CHECKING

from opentelemetry import context as context_api
from opentelemetry.context import Context

if TYPE_CHECKING:
    from tracewire.tracer.transaction import Transaction

# Anything that answers "what is the active transaction right now?"
ActiveTransactionLookup = Callable[[], Optional["Transaction"]]

_ACTIVE_TRANSACTION_KEY = context_api.create_key("tracewire-active-transaction")


def get_active_transaction(context: Optional[Context] = None) -> Optional["Transaction"]:
    """
    Return the currently active transaction, if any.

    Uses OpenTelemetry's context API, so the value follows threads and asyncio
    tasks the same way OTel spans do.
    """
    return context_api.get_value(_ACTIVE_TRANSACTION_KEY, context=context)


def push_transaction(transaction: "Transaction") -> object:
    """
    Make ``transaction`` the active one.

    Returns:
        Token needed to restore the previous state
    """
    ctx = context_api.set_value(_ACTIVE_TRANSACTION_KEY, transaction)
    return context_api.attach(ctx)


def pop_transaction(token: object) -> None:
    """
    Restore the previous active transaction using the provided token.

    Args:
        token: Token returned by push_transaction()
    """
    context_api.detach(token)


@contextmanager
def use_transaction(transaction: "Transaction") -> Iterator["Transaction"]:
    """Activate a transaction for the duration of a ``with`` block without finishing it."""
    token = push_transaction(transaction)
    try:
        yield transaction
    finally:
        pop_transaction(token)
