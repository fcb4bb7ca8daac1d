"""Read-only inputs handed to the sampling engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from http.cookies import CookieError, SimpleCookie
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlsplit


@dataclass(frozen=True)
class RequestSnapshot:
    """Normalized view of the inbound request a transaction was started for."""

    method: Optional[str] = None
    url: Optional[str] = None
    headers: Mapping[str, str] = field(default_factory=dict)
    cookies: Mapping[str, str] = field(default_factory=dict)
    query_string: Optional[str] = None

    @classmethod
    def from_headers(
        cls,
        method: Optional[str],
        url: Optional[str],
        headers: Optional[Mapping[str, str]] = None,
    ) -> "RequestSnapshot":
        headers = dict(headers or {})
        cookie_header = next((v for k, v in headers.items() if k.lower() == "cookie"), None)
        cookies: Dict[str, str] = {}
        if cookie_header:
            jar = SimpleCookie()
            try:
                jar.load(cookie_header)
            except CookieError:
                jar = SimpleCookie()
            cookies = {name: morsel.value for name, morsel in jar.items()}
        query_string = (urlsplit(url).query or None) if url else None
        return cls(
            method=method,
            url=url,
            headers=MappingProxyType(headers),
            cookies=MappingProxyType(cookies),
            query_string=query_string,
        )


@dataclass(frozen=True)
class TransactionContext:
    """Arguments a transaction was created with, as seen by a custom sampler."""

    name: str
    op: Optional[str] = None
    trace_id: Optional[str] = None
    parent_span_id: Optional[str] = None
    sampled: Optional[bool] = None
    parent_sampled: Optional[bool] = None
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SamplingContext:
    transaction_context: TransactionContext
    parent_sampled: Optional[bool] = None
    request: Optional[RequestSnapshot] = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.transaction_context.name

    def get(self, key: str, default: Any = None) -> Any:
        return self.extra.get(key, default)
