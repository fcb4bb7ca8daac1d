"""Writing a header into whatever container a client uses for request headers.

Three shapes are supported, picked by inspecting the container:

- a mapping of header name to value (``dict``, ``httpx.Headers``, ...)
- a list or tuple of ``(name, value)`` pairs
- any other object with an ``append(name, value)`` method
"""

from __future__ import annotations

from collections.abc import Mapping, MutableMapping
from typing import Any

from tracewire.errors import InstrumentationError


class HeaderSink:
    """Base class; ``headers`` is the container to send after :meth:`write`."""

    def __init__(self, headers: Any) -> None:
        self._headers = headers

    @property
    def headers(self) -> Any:
        return self._headers

    def write(self, name: str, value: str) -> None:
        raise NotImplementedError


class MappingHeaderSink(HeaderSink):
    """Sets the key in place; read-only mappings are copied into a new dict."""

    def write(self, name: str, value: str) -> None:
        if isinstance(self._headers, MutableMapping):
            self._headers[name] = value
        else:
            self._headers = {**self._headers, name: value}


class PairListHeaderSink(HeaderSink):
    """Appends a pair; lists are extended in place, tuples are replaced."""

    def write(self, name: str, value: str) -> None:
        pair_type = list if self._headers and isinstance(self._headers[-1], list) else tuple
        pair = pair_type((name, value))
        if isinstance(self._headers, list):
            self._headers.append(pair)
        else:
            self._headers = tuple(self._headers) + (pair,)


class AppendableHeaderSink(HeaderSink):
    """Delegates to the container's own ``append(name, value)``."""

    def write(self, name: str, value: str) -> None:
        self._headers.append(name, value)


def header_sink_for(headers: Any) -> HeaderSink:
    """Pick the sink variant matching the container's capabilities."""
    if headers is None:
        return MappingHeaderSink({})
    if isinstance(headers, Mapping):
        return MappingHeaderSink(headers)
    if isinstance(headers, (list, tuple)):
        return PairListHeaderSink(headers)
    if callable(getattr(headers, "append", None)):
        return AppendableHeaderSink(headers)
    raise InstrumentationError(
        "Unsupported header container",
        {"type": type(headers).__name__},
    )


def write_header(headers: Any, name: str, value: str) -> Any:
    """Write one header and return the container the request should use."""
    sink = header_sink_for(headers)
    sink.write(name, value)
    return sink.headers
