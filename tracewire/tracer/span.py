"""Span model: a wrapper around an OpenTelemetry SDK span."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional, TYPE_CHECKING

from opentelemetry.trace import Span as OTelSpan
from opentelemetry.trace import SpanKind, Status, StatusCode

from tracewire.tracer.span_context import SamplingDecision, SpanContext
from tracewire.utils.helpers import format_span_id, format_trace_id, timestamp_in_seconds

if TYPE_CHECKING:
    from tracewire.tracer.tracer import Tracer
    from tracewire.tracer.transaction import Transaction

OP_ATTRIBUTE = "tracewire.op"
STATUS_ATTRIBUTE = "tracewire.status"
TAG_ATTRIBUTE_PREFIX = "tags."
SAMPLED_ATTRIBUTE = "sampling.sampled"


class SpanStatus(Enum):
    UNSET = "unset"
    OK = "ok"
    CANCELLED = "cancelled"
    UNKNOWN_ERROR = "unknown_error"
    INVALID_ARGUMENT = "invalid_argument"
    DEADLINE_EXCEEDED = "deadline_exceeded"
    NOT_FOUND = "not_found"
    ALREADY_EXISTS = "already_exists"
    PERMISSION_DENIED = "permission_denied"
    RESOURCE_EXHAUSTED = "resource_exhausted"
    FAILED_PRECONDITION = "failed_precondition"
    UNIMPLEMENTED = "unimplemented"
    INTERNAL_ERROR = "internal_error"
    UNAVAILABLE = "unavailable"
    UNAUTHENTICATED = "unauthenticated"

    @classmethod
    def from_http_code(cls, http_status: int) -> "SpanStatus":
        """Map an HTTP response status code onto a span status."""
        if http_status < 400:
            return cls.OK
        if 400 <= http_status < 500:
            return {
                401: cls.UNAUTHENTICATED,
                403: cls.PERMISSION_DENIED,
                404: cls.NOT_FOUND,
                409: cls.ALREADY_EXISTS,
                413: cls.FAILED_PRECONDITION,
                429: cls.RESOURCE_EXHAUSTED,
            }.get(http_status, cls.INVALID_ARGUMENT)
        if 500 <= http_status < 600:
            return {
                501: cls.UNIMPLEMENTED,
                503: cls.UNAVAILABLE,
                504: cls.DEADLINE_EXCEEDED,
            }.get(http_status, cls.INTERNAL_ERROR)
        return cls.UNKNOWN_ERROR

    @property
    def is_error(self) -> bool:
        return self not in (SpanStatus.UNSET, SpanStatus.OK)

    def to_otel(self) -> Status:
        if self is SpanStatus.UNSET:
            return Status(StatusCode.UNSET)
        if self is SpanStatus.OK:
            return Status(StatusCode.OK)
        return Status(StatusCode.ERROR, self.value)


def _attribute_value(value: Any) -> Any:
    if isinstance(value, (str, bool, int, float)):
        return value
    return str(value)


def span_attributes(op: Optional[str], data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """OTel start attributes for a span with the given op and data."""
    attributes = {key: _attribute_value(value) for key, value in (data or {}).items() if value is not None}
    if op is not None:
        attributes[OP_ATTRIBUTE] = op
    return attributes


def seconds_to_ns(timestamp: float) -> int:
    return int(timestamp * 1e9)


class Span:
    """
    A timed operation belonging to a transaction.

    Wraps an OpenTelemetry span. Identifiers and the sampling decision come
    from the OTel span context and never change; spans of unsampled
    transactions are non-recording but still carry ids for propagation.
    """

    def __init__(
        self,
        otel_span: OTelSpan,
        tracer: "Tracer",
        transaction: Optional["Transaction"],
        *,
        parent_span_id: Optional[str] = None,
        op: Optional[str] = None,
        description: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
        start_timestamp: Optional[float] = None,
    ) -> None:
        """
        Args:
            otel_span: Underlying OTel span
            tracer: Tracer that created this span
            transaction: Owning transaction (None only while a transaction builds itself)
            parent_span_id: Parent span id as hex, None for a trace root
        """
        self._otel_span = otel_span
        self.tracer = tracer
        self._transaction = transaction
        otel_context = otel_span.get_span_context()
        self.context = SpanContext(
            trace_id=format_trace_id(otel_context.trace_id),
            span_id=format_span_id(otel_context.span_id),
            parent_span_id=parent_span_id,
            sampled=SamplingDecision.from_bool(otel_context.trace_flags.sampled),
        )
        self.op = op
        self.description = description
        self.data: Dict[str, Any] = dict(data or {})
        self.tags: Dict[str, str] = {}
        self.start_timestamp = start_timestamp if start_timestamp is not None else timestamp_in_seconds()
        self.end_timestamp: Optional[float] = None
        self.status = SpanStatus.UNSET

    @property
    def otel_span(self) -> OTelSpan:
        return self._otel_span

    @property
    def transaction(self) -> Optional["Transaction"]:
        return self._transaction

    @property
    def trace_id(self) -> str:
        return self.context.trace_id

    @property
    def span_id(self) -> str:
        return self.context.span_id

    @property
    def parent_span_id(self) -> Optional[str]:
        return self.context.parent_span_id

    @property
    def sampled(self) -> SamplingDecision:
        return self.context.sampled

    @property
    def is_recording(self) -> bool:
        return self._otel_span.is_recording()

    @property
    def finished(self) -> bool:
        return self.end_timestamp is not None

    @property
    def duration(self) -> Optional[float]:
        """Duration in seconds, None while the span is still open."""
        if self.end_timestamp is None:
            return None
        return self.end_timestamp - self.start_timestamp

    def start_child(
        self,
        op: Optional[str] = None,
        description: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
        start_timestamp: Optional[float] = None,
        kind: SpanKind = SpanKind.INTERNAL,
    ) -> "Span":
        """Create a child span sharing this span's trace and sampling decision."""
        child = self.tracer._start_child(
            self,
            op=op,
            description=description,
            data=data,
            start_timestamp=start_timestamp,
            kind=kind,
        )
        if self._transaction is not None:
            self._transaction._adopt(child)
        return child

    def set_data(self, key: str, value: Any) -> None:
        self.data[key] = value
        if value is not None and not self.finished:
            self._otel_span.set_attribute(key, _attribute_value(value))

    def set_tag(self, key: str, value: Any) -> None:
        self.tags[key] = str(value)
        if not self.finished:
            self._otel_span.set_attribute(TAG_ATTRIBUTE_PREFIX + key, str(value))

    def set_status(self, status: SpanStatus) -> None:
        # Applied to the OTel span on finish
        if self.finished:
            return
        self.status = status

    def set_http_status(self, http_status: int) -> None:
        self.set_tag("http.status_code", http_status)
        self.set_data("http.status_code", http_status)
        self.set_status(SpanStatus.from_http_code(http_status))

    def to_header(self) -> str:
        """Value of the propagation header that continues this span downstream."""
        from tracewire.context.propagators import format_trace_propagation

        return format_trace_propagation(self.context)

    def finish(self, end_timestamp: Optional[float] = None) -> None:
        """
        Close the span: run enrichment processors, then end the OTel span.

        Finishing twice is a no-op.
        """
        if self.finished:
            return
        if self.status == SpanStatus.UNSET:
            self.status = SpanStatus.OK
        self._otel_span.set_attribute(STATUS_ATTRIBUTE, self.status.value)
        self._otel_span.set_status(self.status.to_otel())
        self.end_timestamp = end_timestamp if end_timestamp is not None else timestamp_in_seconds()
        if self._transaction is not None:
            self._transaction._on_span_finished(self)
        self._otel_span.end(end_time=seconds_to_ns(self.end_timestamp))

    # Context manager support
    def __enter__(self) -> "Span":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc is not None and self.status == SpanStatus.UNSET:
            self.set_status(SpanStatus.INTERNAL_ERROR)
        if exc is not None and self.is_recording:
            self._otel_span.record_exception(exc)
        self.finish()
        return False

    def __repr__(self) -> str:
        return (
            f"<{type(self).__name__} op={self.op!r} description={self.description!r} "
            f"trace_id={self.trace_id} span_id={self.span_id} sampled={self.sampled.value}>"
        )
