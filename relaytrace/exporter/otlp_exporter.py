"""OTLP exporter using OpenTelemetry OTLP HTTP exporter."""

from __future__ import annotations

from typing import Dict, Optional

from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter


class OTLPExporter(OTLPSpanExporter):
    """
    OTLP/HTTP span exporter with optional bearer-token authentication.

    Endpoint defaults to the OTel default (or ``OTEL_EXPORTER_OTLP_*`` env vars).
    """

    def __init__(
        self,
        endpoint: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: float = 10.0,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        export_headers = dict(headers) if headers else {}
        if api_key:
            export_headers["Authorization"] = f"Bearer {api_key}"

        super().__init__(
            endpoint=endpoint,
            timeout=timeout,
            headers=export_headers or None,
        )
        self.api_key = api_key
