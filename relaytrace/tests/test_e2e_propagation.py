"""End to end: HTTP request -> producer -> broker -> consumer -> backend call, one trace."""

import asyncio
from types import SimpleNamespace

import httpx
from opentelemetry.trace import SpanKind

from relaytrace.context import Baggage, use_baggage
from relaytrace.instrumentation import TracingConsumerLoop
from relaytrace.instrumentation.http_client import BackendClient
from relaytrace.instrumentation.kafka import KafkaMessageReceiver, KafkaMessageSender
from relaytrace.utils import format_trace_id
from relaytrace.worker import process_message

from conftest import only


class QueueBroker:
    """Single-partition in-memory topic shared by a fake producer and consumer."""

    def __init__(self):
        self.queue = asyncio.Queue()
        self.offset = 0

    async def send_and_wait(self, topic, value=None, key=None, headers=None):
        record = SimpleNamespace(
            topic=topic, partition=0, offset=self.offset, key=key, value=value, headers=list(headers or []),
        )
        self.offset += 1
        await self.queue.put(record)
        return record

    async def getone(self):
        return await self.queue.get()

    async def stop(self):
        pass


def test_single_trace_across_all_hops(tracer, span_exporter):
    requests = []

    def backend(request):
        requests.append(request)
        return httpx.Response(200, text="Hello from backend")

    async def main():
        broker = QueueBroker()
        sender = KafkaMessageSender(broker, "my-topic", tracer=tracer)
        receiver = KafkaMessageReceiver(broker)
        client = BackendClient("http://backend.test", tracer=tracer, transport=httpx.MockTransport(backend))
        stop = asyncio.Event()
        responses = []

        async def process(message):
            responses.append(await process_message(message, client, "backend"))
            stop.set()

        loop = TracingConsumerLoop(receiver.receive, process, tracer=tracer)

        with use_baggage(Baggage({"user.id": "42"})):
            async with tracer.start_as_current_span("GET /kafka", kind=SpanKind.SERVER):
                outcome = await sender.send_message("PostToKafka")

        await loop.run(stop)
        await client.aclose()
        return outcome, responses

    outcome, responses = asyncio.run(main())

    assert outcome == "Persisted partition=0 offset=0"
    assert responses == ["Hello from backend"]

    server = only(span_exporter, SpanKind.SERVER)
    producer = only(span_exporter, SpanKind.PRODUCER)
    consumer = only(span_exporter, SpanKind.CONSUMER)
    client_span = only(span_exporter, SpanKind.CLIENT)

    trace_id = server.context.trace_id
    assert {span.context.trace_id for span in (producer, consumer, client_span)} == {trace_id}
    assert producer.parent.span_id == server.context.span_id
    assert consumer.parent.span_id == producer.context.span_id
    assert consumer.parent.is_remote
    assert client_span.parent.span_id == consumer.context.span_id

    backend_request = requests[0]
    assert backend_request.headers["traceparent"].split("-")[1] == format_trace_id(trace_id)
    assert backend_request.headers["baggage"] == "user.id=42"


def test_independent_requests_do_not_share_traces(tracer, span_exporter):
    async def main():
        broker = QueueBroker()
        sender = KafkaMessageSender(broker, "my-topic", tracer=tracer)

        async def request(n):
            async with tracer.start_as_current_span(f"request {n}", kind=SpanKind.SERVER):
                await sender.send_message(f"payload {n}")

        await asyncio.gather(request(1), request(2))

    asyncio.run(main())

    servers = {span.name: span for span in span_exporter.get_finished_spans() if span.kind == SpanKind.SERVER}
    producers = [span for span in span_exporter.get_finished_spans() if span.kind == SpanKind.PRODUCER]
    assert len(producers) == 2
    for producer in producers:
        parent = next(s for s in servers.values() if s.context.span_id == producer.parent.span_id)
        assert producer.context.trace_id == parent.context.trace_id
    assert servers["request 1"].context.trace_id != servers["request 2"].context.trace_id
