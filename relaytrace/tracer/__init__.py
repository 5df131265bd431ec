"""Tracer components for relaytrace."""

from opentelemetry.trace import SpanKind

from relaytrace.tracer.provider import SpanProcessor, TracerProvider
from relaytrace.tracer.span import Span, SpanStatus
from relaytrace.tracer.span_context import SpanContext
from relaytrace.tracer.tracer import Tracer

__all__ = [
    "Span",
    "SpanKind",
    "SpanStatus",
    "SpanContext",
    "Tracer",
    "TracerProvider",
    "SpanProcessor",
]
