"""Decides which outgoing URLs get spans and propagation headers."""

from __future__ import annotations

import logging
import re
import threading
from collections import OrderedDict
from typing import Callable, Iterable, List, Optional, Pattern, Union

logger = logging.getLogger(__name__)

OriginMatcher = Union[str, Pattern[str], Callable[[str], bool]]

DEFAULT_TRACING_ORIGINS: List[OriginMatcher] = ["localhost", re.compile(r"^/")]

# Requests to our own reporting endpoint carry this marker and are never traced.
DEFAULT_REPORTING_ENDPOINT_PATTERN = "tracewire_key"

DEFAULT_MAX_CACHE_SIZE = 10_000


def is_matching_pattern(value: str, pattern: OriginMatcher) -> bool:
    """Substring match for strings, ``search`` for regexes, call for callables."""
    if isinstance(pattern, str):
        return pattern in value
    if isinstance(pattern, re.Pattern):
        return pattern.search(value) is not None
    if callable(pattern):
        return bool(pattern(value))
    return False


class OriginFilter:
    """
    URL eligibility check, memoized per exact URL string.

    The memoized part covers only the configured matchers and the
    reporting-endpoint exclusion. ``should_trace_url`` is evaluated on every
    call and can only narrow the result.
    """

    def __init__(
        self,
        tracing_origins: Optional[Iterable[OriginMatcher]] = None,
        should_trace_url: Optional[Callable[[str], bool]] = None,
        reporting_endpoint_pattern: OriginMatcher = DEFAULT_REPORTING_ENDPOINT_PATTERN,
        max_cache_size: Optional[int] = DEFAULT_MAX_CACHE_SIZE,
    ) -> None:
        self.tracing_origins: List[OriginMatcher] = list(
            DEFAULT_TRACING_ORIGINS if tracing_origins is None else tracing_origins
        )
        self.should_trace_url = should_trace_url
        self.reporting_endpoint_pattern = reporting_endpoint_pattern
        self.max_cache_size = max_cache_size
        self._cache: "OrderedDict[str, bool]" = OrderedDict()
        self._lock = threading.Lock()

    @property
    def cache_size(self) -> int:
        with self._lock:
            return len(self._cache)

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()

    def matches_origins(self, url: str) -> bool:
        """Memoized check against the configured origins and the self-exclusion."""
        with self._lock:
            cached = self._cache.get(url)
            if cached is not None:
                self._cache.move_to_end(url)
                return cached

        decision = any(is_matching_pattern(url, origin) for origin in self.tracing_origins) and not (
            is_matching_pattern(url, self.reporting_endpoint_pattern)
        )

        with self._lock:
            self._cache[url] = decision
            self._cache.move_to_end(url)
            if self.max_cache_size is not None:
                while len(self._cache) > self.max_cache_size:
                    self._cache.popitem(last=False)
        return decision

    def should_trace(self, url: str) -> bool:
        if not isinstance(url, str):
            return False
        if not self.matches_origins(url):
            return False
        if self.should_trace_url is None:
            return True
        try:
            return bool(self.should_trace_url(url))
        except Exception:
            logger.exception("should_trace_url raised for %s; not tracing it", url)
            return False

    __call__ = should_trace
