"""W3C trace context and baggage propagation using OpenTelemetry's standard propagators."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from opentelemetry import baggage as baggage_api
from opentelemetry.baggage.propagation import W3CBaggagePropagator
from opentelemetry.context import Context
from opentelemetry.propagators.textmap import Getter, Setter
from opentelemetry.trace import NonRecordingSpan, get_current_span, set_span_in_context
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

from relaytrace.context.baggage import EMPTY_BAGGAGE, Baggage
from relaytrace.context.carrier import carrier_getter, carrier_setter, dict_getter, dict_setter
from relaytrace.errors import PropagationError
from relaytrace.tracer.span_context import SpanContext
from relaytrace.utils.helpers import decode_header_value

logger = logging.getLogger(__name__)

TRACEPARENT_HEADER = "traceparent"
TRACESTATE_HEADER = "tracestate"
BAGGAGE_HEADER = "baggage"

# W3C baggage limits, matched by the extracting side
MAX_BAGGAGE_ENTRIES = 180
MAX_BAGGAGE_ENTRY_LENGTH = 4096
MAX_BAGGAGE_HEADER_LENGTH = 8192

HeaderGetter = Callable[[Any, str], Any]
HeaderSetter = Callable[[Any, str, bytes], None]

_trace_propagator = TraceContextTextMapPropagator()
_baggage_propagator = W3CBaggagePropagator()


class _BytesSetter(Setter):
    """Adapts a ``setter(carrier, key, bytes)`` callable to OTel's Setter."""

    def __init__(self, setter: HeaderSetter) -> None:
        self._setter = setter

    def set(self, carrier: Any, key: str, value: str) -> None:
        self._setter(carrier, key, value.encode("utf-8"))


class _BytesGetter(Getter):
    """Adapts a ``getter(carrier, key) -> bytes | None`` callable to OTel's Getter."""

    def __init__(self, getter: HeaderGetter) -> None:
        self._getter = getter

    def get(self, carrier: Any, key: str) -> Optional[List[str]]:
        value = decode_header_value(self._getter(carrier, key))
        if value is None:
            return None
        return [value]

    def keys(self, carrier: Any) -> List[str]:
        keys = getattr(carrier, "keys", None)
        return list(keys()) if callable(keys) else []


def _encode_baggage_entry(key: str, value: str) -> Optional[str]:
    """Encode one entry, or return None if it would not extract back unchanged."""
    encoded: Dict[str, str] = {}
    _baggage_propagator.inject(encoded, context=baggage_api.set_baggage(key, value, Context()))
    entry = encoded.get(BAGGAGE_HEADER)
    if not entry or len(entry) > MAX_BAGGAGE_ENTRY_LENGTH:
        return None
    restored = baggage_api.get_all(_baggage_propagator.extract(encoded, context=Context()))
    if dict(restored) != {key: value}:
        return None
    return entry


def limit_baggage(baggage: Baggage) -> Baggage:
    """
    Keep the entries that fit the W3C baggage limits, in order.

    An entry is dropped (with a warning) when its encoded form exceeds
    ``MAX_BAGGAGE_ENTRY_LENGTH``, when it would not extract back unchanged,
    once ``MAX_BAGGAGE_ENTRIES`` entries are kept, or when it would push the
    header past ``MAX_BAGGAGE_HEADER_LENGTH``.
    """
    kept: Dict[str, str] = {}
    header_length = 0
    for key, value in baggage.items():
        entry = _encode_baggage_entry(key, value)
        if entry is None:
            logger.warning("dropping baggage entry %r: it cannot be propagated unchanged", key)
            continue
        added = len(entry) + (1 if kept else 0)
        if len(kept) >= MAX_BAGGAGE_ENTRIES or header_length + added > MAX_BAGGAGE_HEADER_LENGTH:
            logger.warning("dropping baggage entry %r: baggage header limits reached", key)
            continue
        kept[key] = value
        header_length += added
    if len(kept) == len(baggage):
        return baggage
    return Baggage(kept)


def inject(
    context: Optional[SpanContext],
    baggage: Optional[Baggage],
    carrier: Any,
    setter: HeaderSetter = carrier_setter,
) -> None:
    """
    Write traceparent, tracestate and baggage headers into ``carrier``.

    Nothing is written when ``context`` is unset or invalid, baggage included.
    Baggage is first cut down with :func:`limit_baggage`, so whatever is
    written extracts back identically.
    """
    if context is None or not context.is_valid():
        logger.debug("no trace context to inject; carrier left untouched")
        return

    otel_context = set_span_in_context(NonRecordingSpan(context.to_otel()), Context())
    otel_setter = _BytesSetter(setter)
    _trace_propagator.inject(carrier, context=otel_context, setter=otel_setter)

    if baggage:
        baggage = limit_baggage(baggage)
    if baggage:
        _baggage_propagator.inject(carrier, context=baggage.to_context(Context()), setter=otel_setter)


def extract(carrier: Any, getter: HeaderGetter = carrier_getter) -> Tuple[Optional[SpanContext], Baggage]:
    """
    Read the trace context and baggage back out of ``carrier``.

    Returns ``(None, baggage)`` when the traceparent header is absent or
    malformed; baggage is parsed independently and malformed entries are
    skipped. Never raises for bad header content.
    """
    otel_getter = _BytesGetter(getter)
    return _extract_span_context(carrier, otel_getter), _extract_baggage(carrier, otel_getter)


def _extract_span_context(carrier: Any, getter: _BytesGetter) -> Optional[SpanContext]:
    otel_context = _trace_propagator.extract(carrier, context=Context(), getter=getter)
    span_context = get_current_span(otel_context).get_span_context()
    if span_context.is_valid:
        return SpanContext.from_otel(span_context)

    if getter.get(carrier, TRACEPARENT_HEADER):
        logger.debug("ignoring malformed %s header; starting a new trace", TRACEPARENT_HEADER)
    return None


def _extract_baggage(carrier: Any, getter: _BytesGetter) -> Baggage:
    otel_context = _baggage_propagator.extract(carrier, context=Context(), getter=getter)
    baggage = Baggage.from_context(otel_context)
    return baggage if baggage else EMPTY_BAGGAGE


def format_traceparent(context: SpanContext) -> str:
    """Format a traceparent header value (W3C Trace Context)."""
    headers: Dict[str, Any] = {}
    inject(context, None, headers, dict_setter)
    return decode_header_value(headers.get(TRACEPARENT_HEADER)) or ""


def parse_traceparent(header_value: str) -> SpanContext:
    """
    Parse a traceparent header value.

    Raises:
        PropagationError: if the value is not a valid traceparent
    """
    context, _ = extract({TRACEPARENT_HEADER: header_value}, dict_getter)
    if context is None:
        raise PropagationError("malformed traceparent header", {"value": header_value})
    return context


def format_tracestate(state: Dict[str, str]) -> str:
    """
    Format a tracestate header value from a dict.

    Formats according to W3C Trace Context: key1=value1,key2=value2
    """
    items = []
    for k, v in state.items():
        key = str(k).strip().lower()[:256]
        value = str(v).strip().replace(",", "_").replace("=", "_")[:256]
        if key and value:
            items.append(f"{key}={value}")
    return ",".join(items)


def parse_tracestate(header_value: str) -> Dict[str, str]:
    """Parse a tracestate header value into an ordered dict; bad entries are skipped."""
    result: Dict[str, str] = {}
    for item in (header_value or "").split(","):
        key, sep, value = item.strip().partition("=")
        key = key.strip().lower()
        value = value.strip()
        if sep and key and value:
            result[key] = value
    return result


def inject_headers(headers: Dict[str, Any], context: Optional[SpanContext], baggage: Optional[Baggage] = None) -> Dict[str, Any]:
    """
    Inject propagation headers as text into an HTTP-style header dict.

    Returns the same headers mapping for convenience.
    """
    def text_setter(carrier: Dict[str, Any], key: str, value: bytes) -> None:
        carrier[key] = value.decode("utf-8")

    inject(context, baggage, headers, text_setter)
    return headers
