"""Tests for producer-side spans."""

import asyncio

import pytest
from opentelemetry.trace import SpanKind, StatusCode

from relaytrace.context import Baggage, extract, use_baggage
from relaytrace.instrumentation import MESSAGE_SENT_EVENT, OUTCOME_ATTRIBUTE, Message
from relaytrace.instrumentation import send_with_tracing, send_with_tracing_async
from relaytrace.tracer import SpanContext, TracerProvider
from relaytrace.utils import format_span_id, format_trace_id

from conftest import PARENT_SPAN_ID, PARENT_TRACE_ID, finished, only

PARENT = SpanContext(trace_id=PARENT_TRACE_ID, span_id=PARENT_SPAN_ID, trace_flags=1, is_remote=True)


class BrokerDown(Exception):
    pass


def test_injects_producer_span_context(tracer, span_exporter):
    message = Message(topic="my-topic", value="PostToKafka", key="key")

    outcome = send_with_tracing(PARENT, message, lambda m: "Persisted", tracer=tracer)

    assert outcome == "Persisted"
    span = only(span_exporter, SpanKind.PRODUCER)
    span_id = format_span_id(span.context.span_id)
    assert span.name == "my-topic send"
    assert format_trace_id(span.context.trace_id) == PARENT_TRACE_ID
    assert format_span_id(span.parent.span_id) == PARENT_SPAN_ID
    assert span_id != PARENT_SPAN_ID
    assert message.headers.get("traceparent") == f"00-{PARENT_TRACE_ID}-{span_id}-01".encode()


def test_records_sent_event_and_outcome(tracer, span_exporter):
    send_with_tracing(PARENT, Message(topic="t"), lambda m: "Persisted", tracer=tracer)

    span = only(span_exporter, SpanKind.PRODUCER)
    assert [event.name for event in span.events] == [MESSAGE_SENT_EVENT]
    assert span.attributes[OUTCOME_ATTRIBUTE] == "Persisted"
    assert span.attributes["messaging.destination.name"] == "t"
    assert span.status.status_code == StatusCode.OK


def test_send_fn_sees_injected_headers(tracer):
    seen = {}

    def send(message):
        seen["traceparent"] = message.headers.get("traceparent")
        return "ok"

    send_with_tracing(PARENT, Message(topic="t"), send, tracer=tracer)
    assert seen["traceparent"] is not None


def test_without_parent_starts_root_trace(tracer, span_exporter):
    message = Message(topic="t")
    with tracer.start_as_current_span("ambient"):
        send_with_tracing(None, message, lambda m: "ok", tracer=tracer)

    span = only(span_exporter, SpanKind.PRODUCER)
    assert span.parent is None
    context, _ = extract(message.headers)
    assert context.trace_id == format_trace_id(span.context.trace_id)


def test_disabled_tracing_leaves_carrier_empty(span_exporter):
    provider = TracerProvider(enabled=False)
    message = Message(topic="t")

    outcome = send_with_tracing(None, message, lambda m: "ok", tracer=provider.get_tracer("off"))

    assert outcome == "ok"
    assert len(message.headers) == 0
    assert finished(span_exporter) == []


def test_ambient_baggage_is_injected(tracer):
    message = Message(topic="t")
    with use_baggage(Baggage({"tenant": "acme"})):
        send_with_tracing(PARENT, message, lambda m: "ok", tracer=tracer)

    _, baggage = extract(message.headers)
    assert dict(baggage) == {"tenant": "acme"}


def test_explicit_baggage_wins_over_ambient(tracer):
    message = Message(topic="t")
    with use_baggage(Baggage({"tenant": "acme"})):
        send_with_tracing(PARENT, message, lambda m: "ok", tracer=tracer, baggage=Baggage({"user": "7"}))

    _, baggage = extract(message.headers)
    assert dict(baggage) == {"user": "7"}


def test_send_error_is_recorded_and_reraised(tracer, span_exporter):
    error = BrokerDown("broker unavailable")

    def send(message):
        raise error

    with pytest.raises(BrokerDown) as excinfo:
        send_with_tracing(PARENT, Message(topic="t"), send, tracer=tracer)

    assert excinfo.value is error
    span = only(span_exporter, SpanKind.PRODUCER)
    assert span.end_time is not None
    assert span.status.status_code == StatusCode.ERROR
    event_names = [event.name for event in span.events]
    assert "exception" in event_names
    assert MESSAGE_SENT_EVENT not in event_names
    exception_event = next(event for event in span.events if event.name == "exception")
    assert exception_event.attributes["exception.message"] == "broker unavailable"


def test_async_send_awaits_send_fn(tracer, span_exporter):
    async def send(message):
        await asyncio.sleep(0)
        return "Persisted"

    message = Message(topic="t")
    outcome = asyncio.run(send_with_tracing_async(PARENT, message, send, tracer=tracer))

    assert outcome == "Persisted"
    span = only(span_exporter, SpanKind.PRODUCER)
    assert span.attributes[OUTCOME_ATTRIBUTE] == "Persisted"
    assert message.headers.get("traceparent") is not None


def test_async_send_error_is_reraised(tracer, span_exporter):
    async def send(message):
        raise BrokerDown("timeout")

    with pytest.raises(BrokerDown):
        asyncio.run(send_with_tracing_async(PARENT, Message(topic="t"), send, tracer=tracer))

    assert only(span_exporter, SpanKind.PRODUCER).status.status_code == StatusCode.ERROR
