"""Console exporter for developer visibility."""

from __future__ import annotations

import sys
from typing import Sequence

from opentelemetry.sdk.trace import ReadableSpan
from opentelemetry.sdk.trace.export import SpanExporter, SpanExportResult

from relaytrace.utils.helpers import format_span_id, format_trace_id


class ConsoleExporter(SpanExporter):
    """Simple exporter that prints spans to stdout (or provided stream)."""

    def __init__(self, stream=None) -> None:
        self.stream = stream or sys.stdout

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        for span in spans:
            parent = format_span_id(span.parent.span_id) if span.parent else None
            duration = span.end_time - span.start_time if span.end_time and span.start_time else None
            line = (
                f"[span] name={span.name} kind={span.kind.name.lower()} "
                f"trace_id={format_trace_id(span.context.trace_id)} "
                f"span_id={format_span_id(span.context.span_id)} parent_span_id={parent} "
                f"status={span.status.status_code.name} duration_ns={duration}"
            )
            if span.attributes:
                line += f" attrs={dict(span.attributes)}"
            if span.events:
                line += f" events={[event.name for event in span.events]}"
            print(line, file=self.stream)
        return SpanExportResult.SUCCESS

    def shutdown(self) -> None:
        return None
