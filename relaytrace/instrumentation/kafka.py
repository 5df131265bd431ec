"""Kafka transport adapters (aiokafka) wired to producer/consumer tracing."""

from __future__ import annotations

import logging
from typing import Any, Optional

from aiokafka import AIOKafkaConsumer, AIOKafkaProducer

from relaytrace.context.carrier import Headers
from relaytrace.context.context import current_span_context
from relaytrace.instrumentation.message import Message
from relaytrace.instrumentation.producer import send_with_tracing_async
from relaytrace.tracer.tracer import Tracer

logger = logging.getLogger(__name__)


def _encode(value: Any) -> Optional[bytes]:
    if value is None or isinstance(value, bytes):
        return value
    return str(value).encode("utf-8")


def _decode(value: Optional[bytes]) -> Any:
    if isinstance(value, bytes):
        try:
            return value.decode("utf-8")
        except UnicodeDecodeError:
            return value
    return value


def message_from_record(record: Any) -> Message:
    """Convert an aiokafka ConsumerRecord to a Message with read-only headers."""
    return Message(
        topic=record.topic,
        value=_decode(record.value),
        key=_decode(record.key),
        headers=Headers.from_list(record.headers, read_only=True),
        partition=record.partition,
        offset=record.offset,
    )


class KafkaMessageSender:
    """Sends traced messages to one topic through an ``AIOKafkaProducer``."""

    def __init__(self, producer: AIOKafkaProducer, topic: str, *, tracer: Optional[Tracer] = None) -> None:
        self._producer = producer
        self.topic = topic
        self.tracer = tracer

    async def send_message(self, value: Any, key: Any = "key") -> str:
        """
        Send ``value`` in a producer span parented to the caller's current span.

        Returns the delivery outcome. Broker errors propagate unchanged.
        """
        message = Message(topic=self.topic, value=value, key=key)
        metadata = await send_with_tracing_async(
            current_span_context(), message, self._send, tracer=self.tracer,
        )
        return f"Persisted partition={metadata.partition} offset={metadata.offset}"

    async def _send(self, message: Message) -> Any:
        return await self._producer.send_and_wait(
            message.topic,
            value=_encode(message.value),
            key=_encode(message.key),
            headers=message.headers.to_list(),
        )

    async def close(self) -> None:
        await self._producer.stop()


class KafkaMessageReceiver:
    """Pulls messages one at a time from an ``AIOKafkaConsumer``."""

    def __init__(self, consumer: AIOKafkaConsumer) -> None:
        self._consumer = consumer

    async def receive(self) -> Message:
        record = await self._consumer.getone()
        logger.debug("received record %s[%s]@%s", record.topic, record.partition, record.offset)
        return message_from_record(record)

    async def close(self) -> None:
        await self._consumer.stop()
