"""Tests for writing headers into the supported container shapes."""

from types import MappingProxyType

import pytest

from tracewire.errors import InstrumentationError
from tracewire.instrumentation.header_sink import (
    AppendableHeaderSink,
    MappingHeaderSink,
    PairListHeaderSink,
    header_sink_for,
    write_header,
)


class MultiValueHeaders:
    """Minimal append-style header collection."""

    def __init__(self):
        self.items = [("accept", "*/*")]

    def append(self, name, value):
        self.items.append((name, value))


class TestSelection:
    def test_none_becomes_dict(self):
        assert write_header(None, "x", "1") == {"x": "1"}

    def test_shape_detection(self):
        assert isinstance(header_sink_for({}), MappingHeaderSink)
        assert isinstance(header_sink_for(MappingProxyType({})), MappingHeaderSink)
        assert isinstance(header_sink_for([]), PairListHeaderSink)
        assert isinstance(header_sink_for(()), PairListHeaderSink)
        assert isinstance(header_sink_for(MultiValueHeaders()), AppendableHeaderSink)

    def test_unsupported_shape(self):
        with pytest.raises(InstrumentationError):
            header_sink_for("accept: */*")


class TestMapping:
    def test_dict_mutated_in_place(self):
        headers = {"accept": "*/*"}
        result = write_header(headers, "trace-propagation", "v")

        assert result is headers
        assert headers == {"accept": "*/*", "trace-propagation": "v"}

    def test_read_only_mapping_copied(self):
        original = MappingProxyType({"accept": "*/*"})
        result = write_header(original, "trace-propagation", "v")

        assert result == {"accept": "*/*", "trace-propagation": "v"}
        assert "trace-propagation" not in original


class TestPairs:
    def test_list_appended_in_place(self):
        headers = [("accept", "*/*")]
        result = write_header(headers, "trace-propagation", "v")

        assert result is headers
        assert headers == [("accept", "*/*"), ("trace-propagation", "v")]

    def test_list_of_lists_keeps_pair_type(self):
        headers = [["accept", "*/*"]]
        write_header(headers, "trace-propagation", "v")

        assert headers[-1] == ["trace-propagation", "v"]

    def test_tuple_replaced(self):
        result = write_header((("accept", "*/*"),), "trace-propagation", "v")
        assert result == (("accept", "*/*"), ("trace-propagation", "v"))


class TestAppendable:
    def test_append_called_once(self):
        headers = MultiValueHeaders()
        result = write_header(headers, "trace-propagation", "v")

        assert result is headers
        assert headers.items == [("accept", "*/*"), ("trace-propagation", "v")]
