"""Access to the active span, held in the OpenTelemetry (contextvars-backed) context."""

from typing import Optional

from opentelemetry.context import Context
from opentelemetry.trace import get_current_span

from relaytrace.tracer.span_context import SpanContext


def current_span_context(context: Optional[Context] = None) -> Optional[SpanContext]:
    """
    Return the context of the currently active span, if any.

    The active span is task-scoped: concurrent asyncio tasks each see their own.
    """
    otel_context = get_current_span(context).get_span_context()
    if not otel_context.is_valid:
        return None
    return SpanContext.from_otel(otel_context)
