"""Tests for injecting and extracting trace context and baggage."""

import logging

import pytest

from relaytrace.context import (
    Baggage,
    Headers,
    dict_getter,
    dict_setter,
    extract,
    format_traceparent,
    format_tracestate,
    inject,
    kafka_header_getter,
    kafka_header_setter,
    parse_traceparent,
    parse_tracestate,
)
from relaytrace.context.propagators import MAX_BAGGAGE_ENTRIES, MAX_BAGGAGE_HEADER_LENGTH, limit_baggage
from relaytrace.errors import PropagationError
from relaytrace.tracer import SpanContext

from conftest import PARENT_SPAN_ID, PARENT_TRACE_ID


@pytest.fixture
def context():
    return SpanContext(trace_id=PARENT_TRACE_ID, span_id=PARENT_SPAN_ID, trace_flags=1)


def test_round_trip_recovers_trace_and_baggage(context):
    baggage = Baggage({"user.id": "42", "note": "a b,c=d;e%"})
    headers = Headers()

    inject(context, baggage, headers)
    extracted, extracted_baggage = extract(headers)

    assert extracted.trace_id == context.trace_id
    assert extracted.span_id == context.span_id
    assert extracted.sampled
    assert extracted.is_remote
    assert dict(extracted_baggage) == {"user.id": "42", "note": "a b,c=d;e%"}


def test_traceparent_wire_format(context):
    headers = Headers()
    inject(context, None, headers)

    assert headers.get("traceparent") == f"00-{PARENT_TRACE_ID}-{PARENT_SPAN_ID}-01".encode()
    assert headers.keys() == ["traceparent"]


def test_unsampled_flags_are_preserved():
    context = SpanContext(trace_id=PARENT_TRACE_ID, span_id=PARENT_SPAN_ID, trace_flags=0)
    headers = Headers()
    inject(context, None, headers)

    assert headers.get("traceparent").endswith(b"-00")
    extracted, _ = extract(headers)
    assert not extracted.sampled


def test_baggage_values_are_percent_encoded(context):
    headers = Headers()
    inject(context, Baggage({"note": "a b,c"}), headers)

    raw = headers.get("baggage")
    assert b"," not in raw
    assert raw.startswith(b"note=")


def test_tracestate_round_trip():
    context = SpanContext(
        trace_id=PARENT_TRACE_ID,
        span_id=PARENT_SPAN_ID,
        trace_state=(("vendor", "abc"), ("other", "x1")),
    )
    headers = Headers()
    inject(context, None, headers)

    assert headers.get("tracestate") == b"vendor=abc,other=x1"
    extracted, _ = extract(headers)
    assert extracted.trace_state == (("vendor", "abc"), ("other", "x1"))


def test_inject_without_context_writes_nothing():
    headers = Headers()
    inject(None, Baggage({"tenant": "acme"}), headers)
    assert len(headers) == 0


def test_inject_with_invalid_context_writes_nothing():
    headers = Headers()
    inject(SpanContext(trace_id="0" * 32, span_id="0" * 16), Baggage({"k": "v"}), headers)
    assert len(headers) == 0


def test_inject_is_deterministic(context):
    baggage = Baggage({"a": "1", "b": "2"})
    first, second = Headers(), Headers()
    inject(context, baggage, first)
    inject(context, baggage, second)
    assert first == second


def test_extract_empty_carrier():
    context, baggage = extract(Headers())
    assert context is None
    assert len(baggage) == 0


@pytest.mark.parametrize("value", [
    b"garbage",
    b"00-xyz-00f067aa0ba902b7-01",
    b"00-" + b"0" * 32 + b"-00f067aa0ba902b7-01",
    b"00-" + PARENT_TRACE_ID.encode() + b"-" + b"0" * 16 + b"-01",
    b"ff-" + PARENT_TRACE_ID.encode() + b"-00f067aa0ba902b7-01",
    b"\xff\xfe\xfd",
])
def test_malformed_traceparent_keeps_baggage(value):
    headers = Headers([("traceparent", value), ("baggage", b"tenant=acme,user=7")])

    context, baggage = extract(headers)

    assert context is None
    assert dict(baggage) == {"tenant": "acme", "user": "7"}


def test_malformed_baggage_entries_are_skipped(context):
    headers = Headers([("baggage", b"good=1,novalue,=x,also=2")])

    _, baggage = extract(headers)

    assert dict(baggage) == {"good": "1", "also": "2"}


def test_dict_carrier_with_text_values(context):
    carrier = {}
    inject(context, Baggage({"k": "v"}), carrier, dict_setter)
    assert isinstance(carrier["traceparent"], bytes)

    text_carrier = {key: value.decode() for key, value in carrier.items()}
    extracted, baggage = extract(text_carrier, dict_getter)
    assert extracted.trace_id == PARENT_TRACE_ID
    assert baggage["k"] == "v"


def test_kafka_header_list_carrier(context):
    carrier = [("content_type", b"application/json")]
    inject(context, None, carrier, kafka_header_setter)
    inject(context, None, carrier, kafka_header_setter)

    assert [key for key, _ in carrier] == ["content_type", "traceparent"]
    extracted, _ = extract(carrier, kafka_header_getter)
    assert extracted.span_id == PARENT_SPAN_ID


def test_format_and_parse_traceparent(context):
    value = format_traceparent(context)
    assert value == f"00-{PARENT_TRACE_ID}-{PARENT_SPAN_ID}-01"
    assert parse_traceparent(value).trace_id == PARENT_TRACE_ID


def test_parse_traceparent_rejects_garbage():
    with pytest.raises(PropagationError):
        parse_traceparent("not-a-traceparent")


def test_tracestate_helpers():
    assert parse_tracestate("Vendor=abc, bad, other=x=y") == {"vendor": "abc", "other": "x=y"}
    assert format_tracestate({"Vendor": "a,b", "empty": ""}) == "vendor=a_b"


def test_padded_baggage_value_round_trips(context):
    headers = Headers()
    baggage = Baggage({"k": " padded "})

    inject(context, baggage, headers)
    _, extracted = extract(headers)

    assert extracted == baggage
    assert dict(extracted) == {"k": "padded"}


def test_oversized_baggage_entry_is_dropped_at_inject(context, caplog):
    headers = Headers()
    baggage = Baggage({"small": "1", "big": "v" * 5000})

    with caplog.at_level(logging.WARNING, logger="relaytrace.context.propagators"):
        inject(context, baggage, headers)
    _, extracted = extract(headers)

    assert dict(extracted) == {"small": "1"}
    assert any("'big'" in record.getMessage() for record in caplog.records)


def test_baggage_entry_count_is_capped(context, caplog):
    headers = Headers()
    baggage = Baggage({f"k{i}": "v" for i in range(MAX_BAGGAGE_ENTRIES + 20)})

    with caplog.at_level(logging.WARNING, logger="relaytrace.context.propagators"):
        inject(context, baggage, headers)
    _, extracted = extract(headers)

    assert list(extracted) == [f"k{i}" for i in range(MAX_BAGGAGE_ENTRIES)]
    assert dict(extracted) == dict(limit_baggage(baggage))
    assert len([r for r in caplog.records if "limits reached" in r.getMessage()]) == 20


def test_baggage_header_length_is_capped(context):
    headers = Headers()
    baggage = Baggage({"a": "x" * 3000, "b": "y" * 3000, "c": "z" * 3000, "d": "1"})

    inject(context, baggage, headers)
    _, extracted = extract(headers)

    assert len(headers.get("baggage")) <= MAX_BAGGAGE_HEADER_LENGTH
    assert list(extracted) == ["a", "b", "d"]
    assert extracted == limit_baggage(baggage)


def test_limit_baggage_keeps_fitting_baggage_as_is():
    baggage = Baggage({"tenant": "acme"})
    assert limit_baggage(baggage) is baggage


def test_uppercase_ids_are_normalized():
    context = SpanContext(trace_id=PARENT_TRACE_ID.upper(), span_id=PARENT_SPAN_ID.upper())
    headers = Headers()

    inject(context, None, headers)
    extracted, _ = extract(headers)

    assert context.trace_id == PARENT_TRACE_ID
    assert extracted.trace_id == context.trace_id
    assert extracted.span_id == context.span_id


@pytest.mark.parametrize("trace_id, span_id", [
    ("abc123_" + "0" * 25, PARENT_SPAN_ID),
    (PARENT_TRACE_ID, "00f0_67aa0ba902b"),
    (PARENT_TRACE_ID[:-1], PARENT_SPAN_ID),
    (PARENT_TRACE_ID, PARENT_SPAN_ID + "0"),
    ("g" * 32, PARENT_SPAN_ID),
])
def test_malformed_ids_are_rejected(trace_id, span_id):
    with pytest.raises(PropagationError):
        SpanContext(trace_id=trace_id, span_id=span_id)
