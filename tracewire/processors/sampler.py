"""Head-based sampling decisions for transactions.

Precedence, first match wins:

1. an explicit ``sampled`` value passed when the transaction is created
2. a configured ``traces_sampler`` callback
3. the parent's sampling decision (inherited from an upstream service)
4. a configured fixed ``sample_rate``
5. nothing configured: tracing is off
"""

from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

from opentelemetry import trace as trace_api
from opentelemetry.context import Context
from opentelemetry.sdk.trace.sampling import Decision
from opentelemetry.sdk.trace.sampling import Sampler as OTelSampler
from opentelemetry.sdk.trace.sampling import SamplingResult as OTelSamplingResult
from opentelemetry.trace import Link, SpanKind, TraceState
from opentelemetry.util.types import Attributes

from tracewire.tracer.sampling_context import SamplingContext
from tracewire.tracer.span import SAMPLED_ATTRIBUTE
from tracewire.tracer.span_context import SamplingDecision

logger = logging.getLogger(__name__)

TracesSampler = Callable[[SamplingContext], Any]


@dataclass(frozen=True)
class SamplingResult:
    decision: SamplingDecision
    reason: str
    rate: Optional[float] = None

    @property
    def sampled(self) -> bool:
        return self.decision is SamplingDecision.SAMPLED


def is_valid_sample_rate(rate: Any) -> bool:
    """
    Check that ``rate`` is a boolean or a finite number in [0, 1].

    Logs a warning describing the problem when it isn't.
    """
    if isinstance(rate, bool):
        return True
    if not isinstance(rate, (int, float)) or math.isnan(rate) or math.isinf(rate):
        logger.warning(
            "[Tracing] Given sample rate is invalid. Sample rate must be a boolean or a number "
            "between 0 and 1. Got %r of type %s.",
            rate,
            type(rate).__name__,
        )
        return False
    if rate < 0 or rate > 1:
        logger.warning(
            "[Tracing] Given sample rate is invalid. Sample rate must be between 0 and 1. Got %r.",
            rate,
        )
        return False
    return True


class Sampler:
    """Computes the sampling decision for a new transaction."""

    def __init__(
        self,
        sample_rate: Any = None,
        traces_sampler: Optional[TracesSampler] = None,
        random_func: Callable[[], float] = random.random,
    ) -> None:
        self.sample_rate = sample_rate
        self._has_sample_rate = sample_rate is not None
        self.traces_sampler = traces_sampler
        self._random = random_func

    @property
    def tracing_enabled(self) -> bool:
        return self._has_sample_rate or self.traces_sampler is not None

    def should_sample(
        self,
        sampling_context: SamplingContext,
        explicit: Optional[bool] = None,
    ) -> SamplingResult:
        if explicit is not None:
            return SamplingResult(SamplingDecision.from_bool(explicit), reason="explicit")

        if self.traces_sampler is not None:
            try:
                rate = self.traces_sampler(sampling_context)
            except Exception:
                logger.exception("[Tracing] traces_sampler raised; discarding transaction %r", sampling_context.name)
                return SamplingResult(SamplingDecision.NOT_SAMPLED, reason="sampler_error")
            return self._decide(rate, reason="sampler")

        if sampling_context.parent_sampled is not None:
            return SamplingResult(
                SamplingDecision.from_bool(sampling_context.parent_sampled), reason="inherited"
            )

        if self._has_sample_rate:
            return self._decide(self.sample_rate, reason="sample_rate")

        return SamplingResult(SamplingDecision.NOT_SAMPLED, reason="disabled")

    def _decide(self, rate: Any, reason: str) -> SamplingResult:
        if not is_valid_sample_rate(rate):
            logger.warning("[Tracing] Discarding transaction because of invalid sample rate.")
            return SamplingResult(SamplingDecision.NOT_SAMPLED, reason="invalid_rate")
        if isinstance(rate, bool):
            return SamplingResult(SamplingDecision.from_bool(rate), reason=reason, rate=float(rate))
        rate = float(rate)
        sampled = self._random() < rate
        if not sampled:
            logger.debug("[Tracing] Discarding transaction because it's not included in the random sample (rate=%s)", rate)
        return SamplingResult(SamplingDecision.from_bool(sampled), reason=reason, rate=rate)


class TransactionSampler(OTelSampler):
    """
    OTel sampler applying the decisions :class:`Sampler` already made.

    A transaction's decision travels in its ``sampling.sampled`` start
    attribute; every other span follows its parent. Dropped spans are
    non-recording but keep valid ids, so they still propagate ``-0``.
    """

    def should_sample(
        self,
        parent_context: Optional[Context],
        trace_id: int,
        name: str,
        kind: Optional[SpanKind] = None,
        attributes: Attributes = None,
        links: Optional[Sequence[Link]] = None,
        trace_state: Optional[TraceState] = None,
    ) -> OTelSamplingResult:
        parent = trace_api.get_current_span(parent_context).get_span_context()
        if attributes and SAMPLED_ATTRIBUTE in attributes:
            sampled = bool(attributes[SAMPLED_ATTRIBUTE])
        else:
            sampled = parent.is_valid and parent.trace_flags.sampled
        parent_state = parent.trace_state if parent.is_valid else None
        if not sampled:
            return OTelSamplingResult(Decision.DROP, trace_state=parent_state)
        return OTelSamplingResult(Decision.RECORD_AND_SAMPLE, attributes, parent_state)

    def get_description(self) -> str:
        return "TransactionSampler"
