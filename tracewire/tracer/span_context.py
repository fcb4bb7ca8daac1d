"""Immutable trace metadata."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from tracewire.utils.helpers import is_valid_span_id, is_valid_trace_id


class SamplingDecision(Enum):
    """Tri-state sampling flag; UNSET means no decision has been made yet."""

    UNSET = "unset"
    SAMPLED = "sampled"
    NOT_SAMPLED = "not_sampled"

    @classmethod
    def from_bool(cls, value: Optional[bool]) -> "SamplingDecision":
        if value is None:
            return cls.UNSET
        return cls.SAMPLED if value else cls.NOT_SAMPLED

    def to_bool(self) -> Optional[bool]:
        if self is SamplingDecision.UNSET:
            return None
        return self is SamplingDecision.SAMPLED

    @property
    def is_set(self) -> bool:
        return self is not SamplingDecision.UNSET


@dataclass(frozen=True)
class SpanContext:
    trace_id: str
    span_id: str
    parent_span_id: Optional[str] = None
    sampled: SamplingDecision = SamplingDecision.UNSET

    def is_valid(self) -> bool:
        if not (is_valid_trace_id(self.trace_id) and is_valid_span_id(self.span_id)):
            return False
        return self.parent_span_id is None or is_valid_span_id(self.parent_span_id)
