"""Span implementation - minimal wrapper around OpenTelemetry Span."""

from __future__ import annotations

import time
from enum import Enum
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from opentelemetry import context as context_api
from opentelemetry.trace import Span as OTelSpan, SpanKind, Status, StatusCode
from opentelemetry.trace import set_span_in_context

from relaytrace.tracer.span_context import SpanContext
from relaytrace.utils.helpers import to_attribute_value

if TYPE_CHECKING:
    from relaytrace.tracer.tracer import Tracer


class SpanStatus(Enum):
    UNSET = 0
    OK = 1
    ERROR = 2


_OTEL_STATUS_CODES = {
    SpanStatus.UNSET: StatusCode.UNSET,
    SpanStatus.OK: StatusCode.OK,
    SpanStatus.ERROR: StatusCode.ERROR,
}


class Span:
    """
    Minimal wrapper around OpenTelemetry Span.

    Keeps a local mirror of attributes and events so callers can inspect
    what was recorded before the span is handed to the exporter.
    """

    def __init__(
        self,
        otel_span: OTelSpan,
        tracer: "Tracer",
        kind: SpanKind = SpanKind.INTERNAL,
        parent_context: Optional[SpanContext] = None,
        attributes: Optional[Dict[str, Any]] = None,
        name: Optional[str] = None,
    ) -> None:
        """
        Initialize span wrapper.

        Args:
            otel_span: OpenTelemetry Span instance
            tracer: relaytrace Tracer instance
            kind: Span kind (producer, consumer, internal, ...)
            parent_context: Context of the parent span, None for a root span
            attributes: Attributes the span was started with
            name: Span name (unsampled OTel spans do not keep one)
        """
        self._otel_span = otel_span
        self.tracer = tracer
        self.kind = kind
        self.parent_context = parent_context
        self._ended = False
        self._activation_token = None

        self.context = SpanContext.from_otel(otel_span.get_span_context())
        self.name = name or getattr(otel_span, "name", "unknown")
        self.start_time_ns = time.time_ns()
        self.end_time_ns: Optional[int] = None

        self.status = SpanStatus.UNSET
        self.status_description: Optional[str] = None

        self._attributes: Dict[str, Any] = dict(attributes or {})
        self._events: List[Dict[str, Any]] = []

    @property
    def parent_span_id(self) -> Optional[str]:
        if self.parent_context is None:
            return None
        return self.parent_context.span_id

    @property
    def is_root(self) -> bool:
        return self.parent_context is None

    @property
    def attributes(self) -> Dict[str, Any]:
        """Attributes set on this span so far."""
        return self._attributes

    @property
    def events(self) -> List[Dict[str, Any]]:
        """Events recorded on this span, in order."""
        return list(self._events)

    @property
    def ended(self) -> bool:
        return self._ended

    @property
    def duration_ns(self) -> Optional[int]:
        """Get span duration in nanoseconds."""
        if self.end_time_ns is None:
            return None
        return self.end_time_ns - self.start_time_ns

    def set_attribute(self, key: str, value: Any) -> None:
        """Set an attribute on the span."""
        if self._ended:
            return

        value = to_attribute_value(value)
        self._attributes[key] = value
        self._otel_span.set_attribute(key, value)

    def add_event(
        self,
        name: str,
        attributes: Optional[Dict[str, Any]] = None,
        timestamp_ns: Optional[int] = None,
    ) -> None:
        """Add an event to the span."""
        if self._ended:
            return

        timestamp_ns = timestamp_ns or time.time_ns()
        self._events.append({
            "name": name,
            "timestamp_ns": timestamp_ns,
            "attributes": dict(attributes or {}),
        })
        self._otel_span.add_event(name=name, attributes=attributes, timestamp=timestamp_ns)

    def record_exception(self, error: BaseException) -> None:
        """Record an exception event on the span and mark it failed."""
        if self._ended:
            return

        self._events.append({
            "name": "exception",
            "timestamp_ns": time.time_ns(),
            "attributes": {
                "exception.type": type(error).__name__,
                "exception.message": str(error),
            },
        })
        self._otel_span.record_exception(error, escaped=False)
        self.set_status(SpanStatus.ERROR, f"{type(error).__name__}: {error}")

    def set_status(self, status: SpanStatus, description: Optional[str] = None) -> None:
        """Set the span status."""
        if self._ended:
            return

        self.status = status
        self.status_description = description
        # OTel only keeps a description on ERROR statuses
        if status != SpanStatus.ERROR:
            description = None
        self._otel_span.set_status(Status(status_code=_OTEL_STATUS_CODES[status], description=description))

    def end(self) -> None:
        """
        End the span.

        Enrichment processors run BEFORE the OTel span ends (span is still mutable).
        Export processors run AFTER, driven by the OTel SDK.
        """
        if self._ended:
            return

        self.end_time_ns = time.time_ns()
        if self.status == SpanStatus.UNSET:
            self.set_status(SpanStatus.OK)

        if self.context.is_valid():
            self.tracer._run_enrichment_processors(self)

        self._otel_span.end(end_time=self.end_time_ns)
        self._ended = True

    def _activate(self) -> None:
        ctx = set_span_in_context(self._otel_span)
        self._activation_token = context_api.attach(ctx)

    def _deactivate(self, exc: Optional[BaseException]) -> None:
        try:
            if exc is not None:
                self.record_exception(exc)
            self.end()
        finally:
            if self._activation_token is not None:
                context_api.detach(self._activation_token)
                self._activation_token = None

    # Context manager support
    def __enter__(self) -> "Span":
        self._activate()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self._deactivate(exc)
        return False

    async def __aenter__(self) -> "Span":
        self._activate()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        self._deactivate(exc)
        return False
