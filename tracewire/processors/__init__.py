"""Span processors and the sampling engine."""

from tracewire.processors.logging_processor import LoggingSpanProcessor
from tracewire.processors.sampler import Sampler, SamplingResult, TransactionSampler, is_valid_sample_rate

__all__ = [
    "Sampler",
    "SamplingResult",
    "TransactionSampler",
    "is_valid_sample_rate",
    "LoggingSpanProcessor",
]
