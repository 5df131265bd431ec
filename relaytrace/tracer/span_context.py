"""Immutable trace metadata."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Tuple

from opentelemetry.trace import SpanContext as OTelSpanContext, TraceFlags, TraceState

from relaytrace.errors import PropagationError
from relaytrace.utils.helpers import format_span_id, format_trace_id, parse_span_id, parse_trace_id

TraceStateItems = Tuple[Tuple[str, str], ...]

_TRACE_ID_PATTERN = re.compile(r"[0-9a-f]{32}")
_SPAN_ID_PATTERN = re.compile(r"[0-9a-f]{16}")


@dataclass(frozen=True)
class SpanContext:
    trace_id: str
    span_id: str
    trace_flags: int = 1  # 1 = sampled, 0 = not sampled
    trace_state: TraceStateItems = ()
    is_remote: bool = False

    def __post_init__(self) -> None:
        # Stored lowercase so ids survive a round trip unchanged
        trace_id = str(self.trace_id).lower()
        span_id = str(self.span_id).lower()
        if not _TRACE_ID_PATTERN.fullmatch(trace_id):
            raise PropagationError("invalid trace_id", {"value": self.trace_id})
        if not _SPAN_ID_PATTERN.fullmatch(span_id):
            raise PropagationError("invalid span_id", {"value": self.span_id})
        object.__setattr__(self, "trace_id", trace_id)
        object.__setattr__(self, "span_id", span_id)

    def is_valid(self) -> bool:
        return int(self.trace_id, 16) != 0 and int(self.span_id, 16) != 0

    @property
    def sampled(self) -> bool:
        return bool(self.trace_flags & 0x01)

    def format_trace_state(self) -> Optional[str]:
        """Format vendor entries as a W3C tracestate value."""
        if not self.trace_state:
            return None
        return ",".join(f"{key}={value}" for key, value in self.trace_state)

    def to_otel(self) -> OTelSpanContext:
        """Convert to an OpenTelemetry SpanContext."""
        return OTelSpanContext(
            trace_id=parse_trace_id(self.trace_id),
            span_id=parse_span_id(self.span_id),
            is_remote=self.is_remote,
            trace_flags=TraceFlags(self.trace_flags & 0xFF),
            trace_state=TraceState(list(self.trace_state)),
        )

    @classmethod
    def from_otel(cls, otel_context: OTelSpanContext) -> "SpanContext":
        """Build from an OpenTelemetry SpanContext."""
        trace_state: TraceStateItems = ()
        if otel_context.trace_state:
            trace_state = tuple((key, value) for key, value in otel_context.trace_state.items())
        return cls(
            trace_id=format_trace_id(otel_context.trace_id),
            span_id=format_span_id(otel_context.span_id),
            trace_flags=int(otel_context.trace_flags),
            trace_state=trace_state,
            is_remote=otel_context.is_remote,
        )
