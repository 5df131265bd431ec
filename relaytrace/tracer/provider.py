"""TracerProvider using OpenTelemetry SDK."""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Optional

from opentelemetry.sdk.resources import Resource as OTelResource
from opentelemetry.sdk.trace import SpanProcessor as OTelSpanProcessor
from opentelemetry.sdk.trace import TracerProvider as OTelTracerProvider
from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased

from relaytrace.tracer.tracer import Tracer

logger = logging.getLogger(__name__)


class SpanProcessor:
    """
    Base span processor interface for relaytrace enrichment processors.

    Enrichment processors run BEFORE span.end() (span is mutable).
    Export processors use OTel's SpanProcessor interface (run AFTER span.end()).
    """

    def on_end(self, span) -> None:
        """
        Called when a span ends.

        Note: This is called BEFORE the OTel span ends, so the span is still mutable.
        """
        pass

    def shutdown(self) -> None:
        """Shutdown the processor."""
        pass

    def force_flush(self, timeout: Optional[float] = None) -> None:
        """Force flush any pending spans."""
        pass


class TracerProvider:
    """
    TracerProvider using OpenTelemetry SDK.

    Separates enrichment processors (relaytrace) from export processors (OTel).
    The provider is never installed as the OTel global provider; spans are
    linked through the OTel context API only.
    """

    def __init__(
        self,
        resource: Optional[Dict[str, str]] = None,
        sample_rate: float = 1.0,
        enabled: bool = True,
    ) -> None:
        """
        Initialize TracerProvider with OpenTelemetry.

        Args:
            resource: Resource attributes dictionary (converted to OTel Resource)
            sample_rate: Probability of sampling a new root trace. Child spans
                follow the sampling decision carried by their parent.
            enabled: When False, tracers hand out invalid no-op spans, so
                nothing is recorded and nothing is injected into carriers.
        """
        if not 0.0 <= sample_rate <= 1.0:
            raise ValueError("sample_rate must be between 0.0 and 1.0")

        self.resource = resource or {}
        self.sample_rate = sample_rate
        self.enabled = enabled
        self._otel_provider = OTelTracerProvider(
            resource=OTelResource.create(self.resource),
            sampler=ParentBased(TraceIdRatioBased(sample_rate)),
        )

        self._enrichment_processors: List[SpanProcessor] = []
        self._export_processors: List[OTelSpanProcessor] = []

        self._tracers: Dict[str, Tracer] = {}
        self._lock = threading.Lock()

    def get_tracer(self, name: str) -> Tracer:
        """
        Get a tracer by name.

        Args:
            name: Instrumentation scope name
        """
        with self._lock:
            tracer = self._tracers.get(name)
            if tracer is None:
                tracer = Tracer(self, name)
                self._tracers[name] = tracer
            return tracer

    def add_span_processor(self, processor: Any) -> None:
        """
        Add a span processor.

        OTel-compatible processors go to the SDK provider; anything else is
        treated as a relaytrace enrichment processor.
        """
        if isinstance(processor, OTelSpanProcessor):
            self._otel_provider.add_span_processor(processor)
            self._export_processors.append(processor)
        else:
            self._enrichment_processors.append(processor)

    def force_flush(self, timeout: Optional[float] = None) -> None:
        """Force flush all processors."""
        self._otel_provider.force_flush(timeout_millis=int(timeout * 1000) if timeout else 30000)

        for processor in self._enrichment_processors:
            try:
                processor.force_flush(timeout=timeout)
            except Exception:
                logger.warning("failed to flush span processor %r", processor, exc_info=True)

    def shutdown(self) -> None:
        """Shutdown the provider and all processors."""
        self._otel_provider.shutdown()

        for processor in self._enrichment_processors:
            try:
                processor.shutdown()
            except Exception:
                logger.warning("failed to shut down span processor %r", processor, exc_info=True)
