"""Tests for URL eligibility and its per-URL memoization."""

import re

import pytest

from tracewire.instrumentation.origin_filter import OriginFilter, is_matching_pattern


class CountingMatcher:
    def __init__(self, result=True):
        self.result = result
        self.calls = 0

    def __call__(self, url):
        self.calls += 1
        return self.result


class TestDefaults:
    @pytest.mark.parametrize("url", ["/fetch-partners", "/", "http://localhost:8000/api"])
    def test_default_origins_match(self, url):
        assert OriginFilter().should_trace(url) is True

    @pytest.mark.parametrize("url", ["https://example.com/api", "fetch-partners", ""])
    def test_default_origins_reject(self, url):
        assert OriginFilter().should_trace(url) is False

    def test_reporting_endpoint_never_traced(self):
        url = "http://localhost:9000/api/1/store/?tracewire_key=abc"
        assert OriginFilter().should_trace(url) is False

    def test_non_string_url(self):
        assert OriginFilter().should_trace(None) is False


class TestMatchers:
    def test_substring_and_regex(self):
        origin_filter = OriginFilter(tracing_origins=["api.internal", re.compile(r"^https://svc\d+\.")])

        assert origin_filter.should_trace("https://api.internal/users")
        assert origin_filter.should_trace("https://svc12.example.com/x")
        assert not origin_filter.should_trace("https://svc.example.com/x")

    def test_empty_origins_trace_nothing(self):
        assert OriginFilter(tracing_origins=[]).should_trace("/anything") is False

    def test_custom_reporting_pattern(self):
        origin_filter = OriginFilter(tracing_origins=["example.com"], reporting_endpoint_pattern=re.compile(r"/ingest$"))

        assert origin_filter.should_trace("https://example.com/users")
        assert not origin_filter.should_trace("https://example.com/ingest")

    def test_is_matching_pattern_unknown_type(self):
        assert is_matching_pattern("/x", 42) is False


class TestMemoization:
    def test_matching_runs_once_per_url(self):
        matcher = CountingMatcher()
        origin_filter = OriginFilter(tracing_origins=[matcher])

        assert origin_filter.should_trace("/a") is True
        assert origin_filter.should_trace("/a") is True
        assert matcher.calls == 1

        origin_filter.should_trace("/b")
        assert matcher.calls == 2

    def test_negative_results_are_cached_too(self):
        matcher = CountingMatcher(result=False)
        origin_filter = OriginFilter(tracing_origins=[matcher])

        assert origin_filter.should_trace("/a") is False
        assert origin_filter.should_trace("/a") is False
        assert matcher.calls == 1

    def test_cache_is_bounded(self):
        matcher = CountingMatcher()
        origin_filter = OriginFilter(tracing_origins=[matcher], max_cache_size=2)

        for url in ("/a", "/b", "/c"):
            origin_filter.should_trace(url)
        assert origin_filter.cache_size == 2

        # "/a" was evicted as least recently used
        origin_filter.should_trace("/a")
        assert matcher.calls == 4

    def test_unbounded_cache(self):
        origin_filter = OriginFilter(max_cache_size=None)
        for i in range(50):
            origin_filter.should_trace(f"/item/{i}")
        assert origin_filter.cache_size == 50

    def test_clear_cache(self):
        matcher = CountingMatcher()
        origin_filter = OriginFilter(tracing_origins=[matcher])
        origin_filter.should_trace("/a")
        origin_filter.clear_cache()
        origin_filter.should_trace("/a")

        assert matcher.calls == 2

    def test_separate_filters_do_not_share_cache(self):
        matcher = CountingMatcher()
        OriginFilter(tracing_origins=[matcher]).should_trace("/a")
        OriginFilter(tracing_origins=[matcher]).should_trace("/a")

        assert matcher.calls == 2


class TestShouldTraceUrl:
    def test_predicate_narrows(self):
        origin_filter = OriginFilter(should_trace_url=lambda url: "health" not in url)

        assert origin_filter.should_trace("/users")
        assert not origin_filter.should_trace("/health")

    def test_predicate_never_widens(self):
        origin_filter = OriginFilter(should_trace_url=lambda url: True)
        assert origin_filter.should_trace("https://example.com/") is False

    def test_predicate_evaluated_on_every_call(self):
        predicate = CountingMatcher()
        origin_filter = OriginFilter(should_trace_url=predicate)
        origin_filter.should_trace("/a")
        origin_filter.should_trace("/a")

        assert predicate.calls == 2

    def test_predicate_not_called_for_ineligible_url(self):
        predicate = CountingMatcher()
        OriginFilter(should_trace_url=predicate).should_trace("https://example.com/")

        assert predicate.calls == 0

    def test_predicate_raising_means_not_traced(self):
        def predicate(url):
            raise ValueError("bad")

        assert OriginFilter(should_trace_url=predicate).should_trace("/a") is False
