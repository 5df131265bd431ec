"""relaytrace: trace context propagation across HTTP -> message broker -> HTTP hops."""

from __future__ import annotations

import logging
import threading
from typing import Any, Optional

from opentelemetry.sdk.trace.export import BatchSpanProcessor, SimpleSpanProcessor

from relaytrace import runtime_config
from relaytrace.config import RelaytraceConfig, load_config
from relaytrace.context import (
    Baggage,
    Headers,
    current_span_context,
    extract,
    get_current_baggage,
    inject,
    use_baggage,
)
from relaytrace.errors import InitializationError
from relaytrace.instrumentation import (
    ConsumerState,
    Message,
    ReceiveOutcome,
    TracingConsumerLoop,
    observe,
    receive_with_tracing,
    receive_with_tracing_async,
    send_with_tracing,
    send_with_tracing_async,
)
from relaytrace.tracer import Span, SpanContext, SpanKind, Tracer, TracerProvider

__version__ = "0.1.0"

logger = logging.getLogger(__name__)

_tracer_provider: Optional[TracerProvider] = None
_config: Optional[RelaytraceConfig] = None
_init_lock = threading.Lock()


def init(config_file: Optional[str] = None, **overrides: Any) -> TracerProvider:
    """
    Initialize tracing from config file, environment and keyword overrides.

    Idempotent: a second call returns the existing provider. Call
    :func:`stop_tracing` first to re-initialize.
    """
    global _tracer_provider, _config

    with _init_lock:
        if _tracer_provider is not None:
            logger.debug("tracing already initialized; returning existing provider")
            return _tracer_provider

        config = load_config(config_file, **overrides)
        _apply_runtime_config(config)
        try:
            provider = _build_provider(config)
        except Exception as exc:
            raise InitializationError("failed to initialize tracing", {"error": exc}) from exc

        _tracer_provider = provider
        _config = config
        logger.info(
            "tracing initialized for service %s (sample_rate=%s)",
            config.tracing.service_name, config.tracing.sample_rate,
        )
        return provider


def _apply_runtime_config(config: RelaytraceConfig) -> None:
    runtime_config.set_attr_truncation_limit(config.tracing.attr_truncation_limit)
    runtime_config.set_capture_message_body(config.tracing.capture_message_body)
    if config.tracing.debug:
        logging.getLogger("relaytrace").setLevel(logging.DEBUG)


def _build_provider(config: RelaytraceConfig) -> TracerProvider:
    provider = TracerProvider(
        resource={"service.name": config.tracing.service_name},
        sample_rate=config.tracing.sample_rate,
        enabled=config.tracing.enabled,
    )
    exporters = config.exporters
    if exporters.enable_logging:
        from relaytrace.processors import LoggingSpanProcessor

        provider.add_span_processor(LoggingSpanProcessor())
    if exporters.enable_console:
        from relaytrace.exporter import ConsoleExporter

        provider.add_span_processor(SimpleSpanProcessor(ConsoleExporter()))
    if exporters.enable_otlp:
        from relaytrace.exporter import OTLPExporter

        exporter = OTLPExporter(
            endpoint=exporters.otlp_endpoint,
            api_key=exporters.api_key,
            headers=exporters.otlp_headers,
        )
        provider.add_span_processor(BatchSpanProcessor(exporter))
    return provider


def get_tracer_provider() -> TracerProvider:
    """Return the initialized provider, initializing with defaults if needed."""
    if _tracer_provider is None:
        return init()
    return _tracer_provider


def get_config() -> RelaytraceConfig:
    """Return the configuration tracing was initialized with."""
    get_tracer_provider()
    return _config


def get_tracer(name: str) -> Tracer:
    return get_tracer_provider().get_tracer(name)


def stop_tracing() -> None:
    """Flush and shut down the provider; tracing can be initialized again afterwards."""
    global _tracer_provider, _config

    with _init_lock:
        provider = _tracer_provider
        _tracer_provider = None
        _config = None
    if provider is not None:
        provider.force_flush()
        provider.shutdown()


__all__ = [
    "__version__",
    "init",
    "stop_tracing",
    "get_tracer",
    "get_tracer_provider",
    "get_config",
    "Tracer",
    "TracerProvider",
    "Span",
    "SpanKind",
    "SpanContext",
    "Baggage",
    "Headers",
    "Message",
    "inject",
    "extract",
    "current_span_context",
    "get_current_baggage",
    "use_baggage",
    "send_with_tracing",
    "send_with_tracing_async",
    "receive_with_tracing",
    "receive_with_tracing_async",
    "ReceiveOutcome",
    "ConsumerState",
    "TracingConsumerLoop",
    "observe",
]
