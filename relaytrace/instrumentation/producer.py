"""Producer-side tracing: wrap a send in a producer span and inject its context."""

from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Union

from opentelemetry.trace import SpanKind

from relaytrace.context.baggage import Baggage, get_current_baggage
from relaytrace.context.propagators import inject
from relaytrace.instrumentation.message import Message
from relaytrace.tracer.span import Span
from relaytrace.tracer.span_context import SpanContext
from relaytrace.tracer.tracer import Tracer

logger = logging.getLogger(__name__)

MESSAGE_SENT_EVENT = "message sent"
OUTCOME_ATTRIBUTE = "messaging.outcome"


def _start_producer_span(
    tracer: Optional[Tracer],
    parent_context: Optional[SpanContext],
    message: Message,
    span_name: Optional[str],
) -> Span:
    tracer = tracer or _get_tracer()
    attributes = message.identifiers()
    attributes["messaging.operation"] = "publish"
    # Parent is explicit: no parent means a new root trace
    return tracer.start_span(
        span_name or f"{message.topic} send",
        kind=SpanKind.PRODUCER,
        attributes=attributes,
        parent_context=parent_context,
        root=True,
    )


def _inject_span(span: Span, message: Message, baggage: Optional[Baggage]) -> None:
    if baggage is None:
        baggage = get_current_baggage()
    inject(span.context, baggage, message.headers)


def _record_sent(span: Span, outcome: Any) -> None:
    span.add_event(MESSAGE_SENT_EVENT)
    span.set_attribute(OUTCOME_ATTRIBUTE, outcome)
    logger.debug("message sent to %s trace_id=%s", span.attributes.get("messaging.destination.name"), span.context.trace_id)


def send_with_tracing(
    parent_context: Optional[SpanContext],
    message: Message,
    send_fn: Callable[[Message], Any],
    *,
    tracer: Optional[Tracer] = None,
    baggage: Optional[Baggage] = None,
    span_name: Optional[str] = None,
) -> Any:
    """
    Send ``message`` inside a producer span.

    The producer span's context (a child of ``parent_context``) and the baggage
    are injected into ``message.headers`` before ``send_fn(message)`` runs.
    Errors from ``send_fn`` are recorded on the span and re-raised unchanged.
    """
    span = _start_producer_span(tracer, parent_context, message, span_name)
    with span:
        _inject_span(span, message, baggage)
        outcome = send_fn(message)
        _record_sent(span, outcome)
        return outcome


async def send_with_tracing_async(
    parent_context: Optional[SpanContext],
    message: Message,
    send_fn: Callable[[Message], Union[Awaitable[Any], Any]],
    *,
    tracer: Optional[Tracer] = None,
    baggage: Optional[Baggage] = None,
    span_name: Optional[str] = None,
) -> Any:
    """Awaitable twin of :func:`send_with_tracing`; awaits ``send_fn`` when it returns an awaitable."""
    span = _start_producer_span(tracer, parent_context, message, span_name)
    async with span:
        _inject_span(span, message, baggage)
        outcome = send_fn(message)
        if inspect.isawaitable(outcome):
            outcome = await outcome
        _record_sent(span, outcome)
        return outcome


def _get_tracer() -> Tracer:
    import relaytrace

    return relaytrace.get_tracer(__name__)
