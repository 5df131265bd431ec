"""Background consumer: reads the topic and calls the backend inside the resumed trace.

Run with ``python -m relaytrace.worker``.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from typing import Optional

from aiokafka import AIOKafkaConsumer

import relaytrace
from relaytrace.config import RelaytraceConfig
from relaytrace.instrumentation.consumer import TracingConsumerLoop
from relaytrace.instrumentation.http_client import BackendClient
from relaytrace.instrumentation.kafka import KafkaMessageReceiver
from relaytrace.instrumentation.message import Message

logger = logging.getLogger(__name__)


async def process_message(message: Message, backend: BackendClient, path: str) -> str:
    """Call the backend for one consumed message; runs inside the consumer span."""
    response = await backend.get_text(path)
    logger.info("backend answered %d bytes for message at offset %s", len(response), message.offset)
    return response


async def run_consumer(config: RelaytraceConfig, stop_event: Optional[asyncio.Event] = None) -> None:
    """Consume ``config.messaging.topic`` until ``stop_event`` is set."""
    messaging = config.messaging
    consumer = AIOKafkaConsumer(
        messaging.topic,
        bootstrap_servers=messaging.bootstrap_servers,
        group_id=messaging.group_id,
        auto_offset_reset=messaging.auto_offset_reset,
    )
    backend = BackendClient(config.backend.base_url, timeout=config.backend.timeout)
    receiver = KafkaMessageReceiver(consumer)
    tracer = relaytrace.get_tracer("relaytrace.worker")

    async def process(message: Message) -> str:
        return await process_message(message, backend, config.backend.path)

    loop = TracingConsumerLoop(receiver.receive, process, tracer=tracer)

    await consumer.start()
    logger.info("subscribed to %s at %s as %s", messaging.topic, messaging.bootstrap_servers, messaging.group_id)
    try:
        await loop.run(stop_event)
    finally:
        await receiver.close()
        await backend.aclose()


async def _main() -> None:
    relaytrace.init()
    config = relaytrace.get_config()
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)
    try:
        await run_consumer(config, stop_event)
    finally:
        relaytrace.stop_tracing()


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    asyncio.run(_main())


if __name__ == "__main__":
    main()
