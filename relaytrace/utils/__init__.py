"""Utility functions for relaytrace."""

from relaytrace.utils.helpers import (
    decode_header_value,
    format_trace_id,
    format_span_id,
    parse_trace_id,
    parse_span_id,
    to_attribute_value,
)

__all__ = [
    "decode_header_value",
    "format_trace_id",
    "format_span_id",
    "parse_trace_id",
    "parse_span_id",
    "to_attribute_value",
]
