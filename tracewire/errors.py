"""Exceptions raised by tracewire; each carries a message and a details dict."""

from __future__ import annotations


class TracewireError(Exception):
    """Base class; ``details`` is rendered after the message, e.g. ``Unknown config key (key=x)``."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class ConfigError(TracewireError):
    """Raised by load_config when a config source cannot be read or does not validate."""
    pass


class ValidationError(TracewireError):
    """Raised by TraceCoordinator when request instrumentation options do not validate."""
    pass


class CorrelationError(TracewireError):
    """Raised by a strict correlation registry when a key is registered twice."""
    pass


class PropagationError(TracewireError):
    """Raised by format_trace_propagation for a span context with malformed ids."""
    pass


class InitializationError(TracewireError):
    """Raised by get_tracer and start_transaction before init() has been called."""
    pass


class InstrumentationError(TracewireError):
    """Raised by write_header when an outgoing request's headers have no supported shape."""
    pass
