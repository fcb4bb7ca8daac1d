"""Identifier helpers built on OpenTelemetry's id generator."""

from __future__ import annotations

import re
import time
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

from opentelemetry.sdk.trace.id_generator import RandomIdGenerator
from opentelemetry.trace import INVALID_SPAN_ID, INVALID_TRACE_ID

_id_generator = RandomIdGenerator()

_continued_trace_id: ContextVar[Optional[int]] = ContextVar("tracewire_continued_trace_id", default=None)

_TRACE_ID_RE = re.compile(r"[0-9a-f]{32}")
_SPAN_ID_RE = re.compile(r"[0-9a-f]{16}")


def format_trace_id(trace_id: int) -> str:
    """
    Format OTel trace_id (int) to hex string.

    Args:
        trace_id: OTel trace_id as int

    Returns:
        32-character hex string
    """
    return format(trace_id, '032x')


def format_span_id(span_id: int) -> str:
    """
    Format OTel span_id (int) to hex string.

    Args:
        span_id: OTel span_id as int

    Returns:
        16-character hex string
    """
    return format(span_id, '016x')


def generate_trace_id() -> str:
    """Return a fresh 32-character lowercase hex trace id."""
    return format_trace_id(_id_generator.generate_trace_id())


def generate_span_id() -> str:
    """Return a fresh 16-character lowercase hex span id."""
    return format_span_id(_id_generator.generate_span_id())


def is_valid_trace_id(value: Optional[str]) -> bool:
    return (
        isinstance(value, str)
        and _TRACE_ID_RE.fullmatch(value) is not None
        and value != format_trace_id(INVALID_TRACE_ID)
    )


def is_valid_span_id(value: Optional[str]) -> bool:
    return (
        isinstance(value, str)
        and _SPAN_ID_RE.fullmatch(value) is not None
        and value != format_span_id(INVALID_SPAN_ID)
    )


def timestamp_in_seconds() -> float:
    """Wall-clock timestamp used for span start/end times."""
    return time.time()


class ContinuationIdGenerator(RandomIdGenerator):
    """Random ids, except for a trace id pinned with :func:`continue_trace`."""

    def generate_trace_id(self) -> int:
        trace_id = _continued_trace_id.get()
        if trace_id is not None:
            return trace_id
        return super().generate_trace_id()


@contextmanager
def continue_trace(trace_id: Optional[str]) -> Iterator[None]:
    """Make root spans started inside the block reuse ``trace_id``."""
    if trace_id is None:
        yield
        return
    token = _continued_trace_id.set(int(trace_id, 16))
    try:
        yield
    finally:
        _continued_trace_id.reset(token)
