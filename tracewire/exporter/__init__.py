"""Span exporters."""

from tracewire.exporter.console_exporter import ConsoleExporter

__all__ = ["ConsoleExporter"]
