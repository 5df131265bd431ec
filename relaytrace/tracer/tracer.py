"""Tracer using OpenTelemetry SDK with an explicit-parent API."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, TYPE_CHECKING

from opentelemetry.context import Context
from opentelemetry.trace import NonRecordingSpan, NoOpTracer, SpanKind
from opentelemetry.trace import Tracer as OTelTracer
from opentelemetry.trace import get_current_span, set_span_in_context

from relaytrace.tracer.span import Span
from relaytrace.tracer.span_context import SpanContext

if TYPE_CHECKING:
    from relaytrace.tracer.provider import TracerProvider

logger = logging.getLogger(__name__)


class Tracer:
    """
    Tracer wrapper that uses OpenTelemetry Tracer internally.

    The parent of a new span is chosen in this order: an explicit parent
    span, an explicit parent SpanContext, a forced root, the current span.
    """

    def __init__(self, provider: "TracerProvider", instrumentation_scope: str):
        """
        Initialize tracer with OpenTelemetry Tracer.

        Args:
            provider: relaytrace TracerProvider instance
            instrumentation_scope: Instrumentation scope name
        """
        self._provider = provider
        self.instrumentation_scope = instrumentation_scope
        if provider.enabled:
            self._otel_tracer: OTelTracer = provider._otel_provider.get_tracer(instrumentation_scope)
        else:
            self._otel_tracer = NoOpTracer()

    def start_span(
        self,
        name: str,
        kind: SpanKind = SpanKind.INTERNAL,
        attributes: Optional[Dict[str, Any]] = None,
        parent: Optional[Span] = None,
        parent_context: Optional[SpanContext] = None,
        root: bool = False,
    ) -> Span:
        """
        Start a new span.

        Args:
            name: Span name
            kind: Span kind
            attributes: Optional attributes dictionary
            parent: Optional parent span
            parent_context: Optional parent span context (e.g. extracted from a carrier)
            root: Start a root span when no explicit parent is given,
                ignoring the current span

        Returns:
            relaytrace Span instance (wraps OTel Span)
        """
        otel_parent_context: Optional[Context] = None
        parent_span_context: Optional[SpanContext] = None

        if parent is not None:
            otel_parent_context = set_span_in_context(parent._otel_span, Context())
            parent_span_context = parent.context
        elif parent_context is not None and parent_context.is_valid():
            otel_span_context = parent_context.to_otel()
            otel_parent_context = set_span_in_context(NonRecordingSpan(otel_span_context), Context())
            parent_span_context = parent_context
        elif root:
            otel_parent_context = Context()
        else:
            current_span = get_current_span()
            current_context = current_span.get_span_context()
            if current_context.is_valid:
                parent_span_context = SpanContext.from_otel(current_context)

        otel_span = self._otel_tracer.start_span(
            name=name,
            context=otel_parent_context,
            kind=kind,
            attributes=attributes,
        )
        span = Span(
            otel_span,
            self,
            kind=kind,
            parent_context=parent_span_context,
            attributes=attributes,
            name=name,
        )
        logger.debug(
            "started %s span %r trace_id=%s parent=%s",
            kind.name.lower(), name, span.context.trace_id, span.parent_span_id,
        )
        return span

    def start_as_current_span(
        self,
        name: str,
        kind: SpanKind = SpanKind.INTERNAL,
        attributes: Optional[Dict[str, Any]] = None,
        parent: Optional[Span] = None,
        parent_context: Optional[SpanContext] = None,
        root: bool = False,
    ) -> Span:
        """
        Start a span meant to be used as a context manager.

        The span becomes current when the ``with``/``async with`` block is entered.
        """
        return self.start_span(
            name=name,
            kind=kind,
            attributes=attributes,
            parent=parent,
            parent_context=parent_context,
            root=root,
        )

    def _run_enrichment_processors(self, span: Span) -> None:
        """
        Run enrichment processors before span ends.

        Called by Span.end() before the OTel span is ended.
        """
        for processor in self._provider._enrichment_processors:
            try:
                processor.on_end(span)
            except Exception:
                # Processors should not crash tracing
                logger.warning("span processor %r failed", processor, exc_info=True)
