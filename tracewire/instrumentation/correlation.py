"""Pending-span registry matching operation end events back to their spans."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from tracewire.errors import CorrelationError
from tracewire.tracer.span import Span

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PendingCorrelation:
    key: str
    span: Span
    created_at: float


class CorrelationRegistry:
    """
    Maps a correlation key to the span created for an in-flight operation.

    A key maps to at most one entry. Registering an in-use key again is an
    integration bug: by default it is logged and the new span is not tracked,
    with ``strict=True`` it raises :class:`CorrelationError`. Either way the
    existing entry is left untouched.

    Entries whose end event never arrives stay registered until
    :meth:`evict_stale` is called.
    """

    def __init__(self, strict: bool = False, clock: Callable[[], float] = time.monotonic) -> None:
        self.strict = strict
        self._clock = clock
        self._pending: Dict[str, PendingCorrelation] = {}
        self._lock = threading.Lock()

    def begin(self, key: str, span: Span) -> bool:
        """Track ``span`` under ``key``. Returns False when the key is already in use."""
        with self._lock:
            existing = self._pending.get(key)
            if existing is None:
                self._pending[key] = PendingCorrelation(key=key, span=span, created_at=self._clock())
                return True

        if self.strict:
            raise CorrelationError(
                "Correlation key is already registered",
                {"key": key, "pending_span_id": existing.span.span_id, "new_span_id": span.span_id},
            )
        logger.warning(
            "Correlation key %r is already registered for span %s; span %s will not be tracked",
            key,
            existing.span.span_id,
            span.span_id,
        )
        return False

    def end(self, key: str) -> Optional[Span]:
        """Remove and return the span tracked under ``key``; None if there is none."""
        with self._lock:
            entry = self._pending.pop(key, None)
        return entry.span if entry is not None else None

    def get(self, key: str) -> Optional[Span]:
        with self._lock:
            entry = self._pending.get(key)
        return entry.span if entry is not None else None

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._pending)

    def evict_stale(self, max_age_seconds: float) -> List[PendingCorrelation]:
        """Remove and return every entry registered more than ``max_age_seconds`` ago."""
        cutoff = self._clock() - max_age_seconds
        with self._lock:
            stale = [entry for entry in self._pending.values() if entry.created_at <= cutoff]
            for entry in stale:
                del self._pending[entry.key]
        if stale:
            logger.debug("Evicted %d stale pending span(s)", len(stale))
        return stale

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._pending

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)
