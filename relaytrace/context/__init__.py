"""Context utilities for relaytrace."""

from relaytrace.context.baggage import EMPTY_BAGGAGE, Baggage, get_current_baggage, use_baggage
from relaytrace.context.carrier import (
    Carrier,
    Headers,
    carrier_getter,
    carrier_setter,
    dict_getter,
    dict_setter,
    kafka_header_getter,
    kafka_header_setter,
)
from relaytrace.context.context import current_span_context
from relaytrace.context.propagators import (
    BAGGAGE_HEADER,
    TRACEPARENT_HEADER,
    TRACESTATE_HEADER,
    extract,
    format_traceparent,
    format_tracestate,
    inject,
    inject_headers,
    parse_traceparent,
    parse_tracestate,
)

__all__ = [
    "Baggage",
    "EMPTY_BAGGAGE",
    "get_current_baggage",
    "use_baggage",
    "Carrier",
    "Headers",
    "carrier_getter",
    "carrier_setter",
    "dict_getter",
    "dict_setter",
    "kafka_header_getter",
    "kafka_header_setter",
    "current_span_context",
    "TRACEPARENT_HEADER",
    "TRACESTATE_HEADER",
    "BAGGAGE_HEADER",
    "inject",
    "extract",
    "inject_headers",
    "format_traceparent",
    "parse_traceparent",
    "format_tracestate",
    "parse_tracestate",
]
