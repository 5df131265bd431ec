"""Helper functions for OpenTelemetry compatibility."""

from __future__ import annotations

import json
from typing import Any, Optional

from relaytrace import runtime_config
from relaytrace.errors import PropagationError

_ATTRIBUTE_SCALARS = (bool, str, bytes, int, float)


def format_trace_id(trace_id: int) -> str:
    """
    Format OTel trace_id (int) to hex string.

    Args:
        trace_id: OTel trace_id as 128-bit int

    Returns:
        32-character hex string
    """
    return format(trace_id, '032x')


def format_span_id(span_id: int) -> str:
    """
    Format OTel span_id (int) to hex string.

    Args:
        span_id: OTel span_id as 64-bit int

    Returns:
        16-character hex string
    """
    return format(span_id, '016x')


def parse_trace_id(hex_string: str) -> int:
    """
    Parse a 32-character hex trace_id to an OTel int.

    Raises:
        PropagationError: if the value is not 32 hex characters
    """
    return _parse_hex_id(hex_string, 32, "trace_id")


def parse_span_id(hex_string: str) -> int:
    """
    Parse a 16-character hex span_id to an OTel int.

    Raises:
        PropagationError: if the value is not 16 hex characters
    """
    return _parse_hex_id(hex_string, 16, "span_id")


def _parse_hex_id(hex_string: str, width: int, field: str) -> int:
    if not hex_string or len(hex_string) != width:
        raise PropagationError(f"invalid {field}", {"value": hex_string})
    try:
        return int(hex_string, 16)
    except ValueError as exc:
        raise PropagationError(f"invalid {field}", {"value": hex_string}) from exc


def decode_header_value(value: Any) -> Optional[str]:
    """Decode a raw header value to text; undecodable bytes count as absent."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        try:
            return bytes(value).decode("utf-8")
        except UnicodeDecodeError:
            return None
    return None


def to_attribute_value(value: Any, limit: Optional[int] = None) -> Any:
    """
    Convert a value to an OpenTelemetry-compatible attribute value.

    OTel attributes must be: bool, str, bytes, int, float, or sequences of those.
    Strings are truncated to the configured attribute limit.
    """
    if limit is None:
        limit = runtime_config.get_attr_truncation_limit()

    if value is None:
        return ""
    if isinstance(value, str):
        return value[:limit]
    if isinstance(value, _ATTRIBUTE_SCALARS):
        return value

    if isinstance(value, (list, tuple)):
        converted = []
        for item in value[:100]:
            if isinstance(item, _ATTRIBUTE_SCALARS):
                converted.append(item)
            else:
                converted.append(str(item)[:limit])
        return converted

    if isinstance(value, dict):
        try:
            return json.dumps(value, default=str)[:limit]
        except (TypeError, ValueError):
            return str(value)[:limit]

    return str(value)[:limit]
