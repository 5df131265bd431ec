"""Span processors."""

from relaytrace.processors.logging_processor import LoggingSpanProcessor

__all__ = ["LoggingSpanProcessor"]
