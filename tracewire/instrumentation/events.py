"""Typed operation lifecycle events and the hub instrumentation publishes them to.

Whatever observes outgoing requests (a client hook, a proxy, a patched
transport) builds an :class:`OperationStartEvent` before the request is sent
and an :class:`OperationEndEvent` once it completes, and emits both through an
:class:`InstrumentationSource`. Handlers registered on the source never see
the underlying transport.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from tracewire.utils.helpers import timestamp_in_seconds

logger = logging.getLogger(__name__)


class TransportKind(str, Enum):
    FETCH = "fetch"
    XHR = "xhr"


@dataclass
class OperationStartEvent:
    """
    An outgoing operation is about to be sent.

    ``headers`` is the request's header container; handlers may replace it,
    so instrumentation must read it back from the event before sending.
    ``correlation_key`` is filled in by the coordinator when the source does
    not supply one and must be carried over to the matching end event.
    """

    transport: TransportKind
    method: str
    url: str
    headers: Any = None
    timestamp: float = field(default_factory=timestamp_in_seconds)
    correlation_key: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class OperationEndEvent:
    transport: TransportKind
    method: str
    url: str
    correlation_key: Optional[str]
    timestamp: float = field(default_factory=timestamp_in_seconds)
    status_code: Optional[int] = None


StartHandler = Callable[[OperationStartEvent], Any]
EndHandler = Callable[[OperationEndEvent], Any]


class InstrumentationSource:
    """Observer registry that instrumentation emits operation events into."""

    def __init__(self) -> None:
        self._handlers: Dict[TransportKind, List[Tuple[StartHandler, EndHandler]]] = {}
        self._lock = threading.Lock()

    def add_handler(self, transport: TransportKind, on_start: StartHandler, on_end: EndHandler) -> None:
        with self._lock:
            self._handlers.setdefault(TransportKind(transport), []).append((on_start, on_end))

    def remove_handler(self, transport: TransportKind, on_start: StartHandler, on_end: EndHandler) -> None:
        with self._lock:
            handlers = self._handlers.get(TransportKind(transport), [])
            if (on_start, on_end) in handlers:
                handlers.remove((on_start, on_end))

    def handler_count(self, transport: TransportKind) -> int:
        with self._lock:
            return len(self._handlers.get(TransportKind(transport), []))

    def emit_start(self, event: OperationStartEvent) -> None:
        for on_start, _ in self._snapshot(event.transport):
            try:
                on_start(event)
            except Exception:
                # Tracing must never fail the instrumented operation
                logger.exception("Start handler failed for %s %s", event.method, event.url)

    def emit_end(self, event: OperationEndEvent) -> None:
        for _, on_end in self._snapshot(event.transport):
            try:
                on_end(event)
            except Exception:
                logger.exception("End handler failed for %s %s", event.method, event.url)

    def _snapshot(self, transport: TransportKind) -> List[Tuple[StartHandler, EndHandler]]:
        with self._lock:
            return list(self._handlers.get(TransportKind(transport), []))
