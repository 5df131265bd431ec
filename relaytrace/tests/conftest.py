"""Shared fixtures: an isolated provider whose finished spans land in memory."""

import pytest
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import SpanKind

import relaytrace
from relaytrace.tracer import TracerProvider

PARENT_TRACE_ID = "abc123" + "0" * 25 + "1"
PARENT_SPAN_ID = "00f067aa0ba902b7"


@pytest.fixture
def span_exporter():
    return InMemorySpanExporter()


@pytest.fixture
def provider(span_exporter):
    provider = TracerProvider(resource={"service.name": "relaytrace-tests"})
    provider.add_span_processor(SimpleSpanProcessor(span_exporter))
    yield provider
    provider.shutdown()


@pytest.fixture
def tracer(provider):
    return provider.get_tracer("tests")


@pytest.fixture
def global_provider(span_exporter, monkeypatch, tmp_path):
    """Initialize the package-level provider (used by get_tracer) with an in-memory exporter."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    relaytrace.stop_tracing()
    provider = relaytrace.init()
    provider.add_span_processor(SimpleSpanProcessor(span_exporter))
    yield provider
    relaytrace.stop_tracing()


def finished(exporter, kind=None):
    spans = exporter.get_finished_spans()
    if kind is None:
        return list(spans)
    return [span for span in spans if span.kind == kind]


def only(exporter, kind: SpanKind):
    spans = finished(exporter, kind)
    assert len(spans) == 1, spans
    return spans[0]
