"""Tests for the pending-span correlation registry."""

import logging
import threading

import pytest

from tracewire.errors import CorrelationError
from tracewire.instrumentation.correlation import CorrelationRegistry
from tracewire.tracer import TracerProvider


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


@pytest.fixture
def transaction():
    return TracerProvider(sample_rate=1).get_tracer("test").start_transaction("registry")


def test_begin_then_end_returns_span_once(transaction):
    registry = CorrelationRegistry()
    span = transaction.start_child(op="fetch")

    assert registry.begin("k", span) is True
    assert "k" in registry
    assert registry.end("k") is span
    assert registry.end("k") is None
    assert len(registry) == 0


def test_end_unknown_key_is_noop():
    assert CorrelationRegistry().end("never-registered") is None


def test_duplicate_begin_keeps_existing_entry(transaction, caplog):
    registry = CorrelationRegistry()
    first = transaction.start_child(op="first")
    second = transaction.start_child(op="second")
    registry.begin("k", first)

    with caplog.at_level(logging.WARNING):
        assert registry.begin("k", second) is False

    assert "already registered" in caplog.text
    assert registry.get("k") is first
    assert len(registry) == 1
    assert registry.end("k") is first


def test_duplicate_begin_strict_raises(transaction):
    registry = CorrelationRegistry(strict=True)
    first = transaction.start_child(op="first")
    registry.begin("k", first)

    with pytest.raises(CorrelationError) as exc_info:
        registry.begin("k", transaction.start_child(op="second"))

    assert exc_info.value.details["key"] == "k"
    assert registry.get("k") is first


def test_key_can_be_reused_after_end(transaction):
    registry = CorrelationRegistry()
    registry.begin("k", transaction.start_child())
    registry.end("k")

    assert registry.begin("k", transaction.start_child()) is True


def test_evict_stale_only_removes_old_entries(transaction):
    clock = FakeClock()
    registry = CorrelationRegistry(clock=clock)
    old = transaction.start_child(op="old")
    registry.begin("old", old)
    clock.now += 40
    registry.begin("new", transaction.start_child(op="new"))
    clock.now += 30

    evicted = registry.evict_stale(60)

    assert [entry.key for entry in evicted] == ["old"]
    assert evicted[0].span is old
    assert evicted[0].created_at == 100.0
    assert registry.keys() == ["new"]


def test_registry_never_expires_on_its_own(transaction):
    clock = FakeClock()
    registry = CorrelationRegistry(clock=clock)
    registry.begin("k", transaction.start_child())
    clock.now += 10_000

    assert "k" in registry


def test_concurrent_begin_end(transaction):
    registry = CorrelationRegistry()
    spans = [transaction.start_child(op=str(i)) for i in range(200)]
    ended = []

    def worker(chunk):
        for span in chunk:
            registry.begin(span.span_id, span)
        for span in chunk:
            ended.append(registry.end(span.span_id))

    threads = [threading.Thread(target=worker, args=(spans[i::4],)) for i in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(registry) == 0
    assert sorted(span.span_id for span in ended) == sorted(span.span_id for span in spans)
