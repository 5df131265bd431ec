"""Consumer-side tracing: resume the producer's trace around message processing."""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

from opentelemetry.trace import SpanKind

from relaytrace import runtime_config
from relaytrace.context.baggage import use_baggage
from relaytrace.context.propagators import extract
from relaytrace.instrumentation.message import Message
from relaytrace.tracer.span import Span
from relaytrace.tracer.span_context import SpanContext
from relaytrace.tracer.tracer import Tracer

logger = logging.getLogger(__name__)

MESSAGE_CONSUMED_EVENT = "message consumed"


@dataclass(frozen=True)
class ReceiveOutcome:
    succeeded: bool
    result: Any = None
    error: Optional[BaseException] = None
    span_context: Optional[SpanContext] = None


class ConsumerState(Enum):
    WAITING_FOR_MESSAGE = "waiting_for_message"
    SPAN_ACTIVE = "span_active"
    PROCESSING_OK = "processing_ok"
    PROCESSING_FAILED = "processing_failed"
    STOPPED = "stopped"


def _start_consumer_span(
    tracer: Optional[Tracer],
    parent_context: Optional[SpanContext],
    message: Message,
    span_name: Optional[str],
) -> Span:
    tracer = tracer or _get_tracer()
    attributes = message.identifiers()
    attributes["messaging.operation"] = "receive"
    span = tracer.start_span(
        span_name or f"{message.topic} receive",
        kind=SpanKind.CONSUMER,
        attributes=attributes,
        parent_context=parent_context,
        root=True,
    )
    if runtime_config.get_capture_message_body():
        span.set_attribute("message", message.value)
    span.add_event(MESSAGE_CONSUMED_EVENT)
    return span


def _record_failure(span: Span, message: Message, exc: Exception) -> ReceiveOutcome:
    span.record_exception(exc)
    logger.exception(
        "Error while processing message from %s (offset=%s, trace_id=%s)",
        message.topic, message.offset, span.context.trace_id,
    )
    return ReceiveOutcome(succeeded=False, error=exc, span_context=span.context)


def receive_with_tracing(
    message: Message,
    process_fn: Callable[[Message], Any],
    *,
    tracer: Optional[Tracer] = None,
    span_name: Optional[str] = None,
) -> ReceiveOutcome:
    """
    Process ``message`` inside a consumer span continuing the producer's trace.

    The extracted baggage is current while ``process_fn`` runs, and so is the
    consumer span, so nested spans and outbound calls are parented to it.
    Processing errors are recorded, logged and reported in the outcome; they
    are not re-raised.
    """
    parent_context, baggage = extract(message.headers)
    with use_baggage(baggage):
        span = _start_consumer_span(tracer, parent_context, message, span_name)
        with span:
            try:
                result = process_fn(message)
            except Exception as exc:
                return _record_failure(span, message, exc)
            return ReceiveOutcome(succeeded=True, result=result, span_context=span.context)


async def receive_with_tracing_async(
    message: Message,
    process_fn: Callable[[Message], Union[Awaitable[Any], Any]],
    *,
    tracer: Optional[Tracer] = None,
    span_name: Optional[str] = None,
) -> ReceiveOutcome:
    """Awaitable twin of :func:`receive_with_tracing`."""
    parent_context, baggage = extract(message.headers)
    with use_baggage(baggage):
        span = _start_consumer_span(tracer, parent_context, message, span_name)
        async with span:
            try:
                result = process_fn(message)
                if inspect.isawaitable(result):
                    result = await result
            except Exception as exc:
                return _record_failure(span, message, exc)
            return ReceiveOutcome(succeeded=True, result=result, span_context=span.context)


class TracingConsumerLoop:
    """
    Long-lived loop pulling one message at a time and processing it traced.

    Messages are handled strictly in sequence, each in its own consumer span.
    The stop event is checked before each receive and while waiting for a
    message; a message already being processed is allowed to finish. Errors
    raised by ``receive_fn`` are transport errors and end the loop.
    """

    def __init__(
        self,
        receive_fn: Callable[[], Awaitable[Message]],
        process_fn: Callable[[Message], Union[Awaitable[Any], Any]],
        *,
        tracer: Optional[Tracer] = None,
        span_name: Optional[str] = None,
    ) -> None:
        self.receive_fn = receive_fn
        self.process_fn = process_fn
        self.tracer = tracer
        self.span_name = span_name
        self.state = ConsumerState.STOPPED
        self.processed = 0
        self.failed = 0

    async def run(self, stop_event: Optional[asyncio.Event] = None) -> None:
        stop_event = stop_event or asyncio.Event()
        logger.info("consumer loop started")
        try:
            while not stop_event.is_set():
                self.state = ConsumerState.WAITING_FOR_MESSAGE
                message = await self._next_message(stop_event)
                if message is None:
                    break
                await self.handle(message)
        finally:
            self.state = ConsumerState.STOPPED
            logger.info("consumer loop stopped (processed=%d, failed=%d)", self.processed, self.failed)

    async def handle(self, message: Message) -> ReceiveOutcome:
        self.state = ConsumerState.SPAN_ACTIVE
        outcome = await receive_with_tracing_async(
            message, self.process_fn, tracer=self.tracer, span_name=self.span_name,
        )
        self.processed += 1
        if outcome.succeeded:
            self.state = ConsumerState.PROCESSING_OK
        else:
            self.failed += 1
            self.state = ConsumerState.PROCESSING_FAILED
        return outcome

    async def _next_message(self, stop_event: asyncio.Event) -> Optional[Message]:
        receive_task = asyncio.ensure_future(self.receive_fn())
        stop_task = asyncio.ensure_future(stop_event.wait())
        try:
            done, _ = await asyncio.wait({receive_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            receive_task.cancel()
            stop_task.cancel()
            raise

        if receive_task in done:
            stop_task.cancel()
            return receive_task.result()

        receive_task.cancel()
        try:
            await receive_task
        except asyncio.CancelledError:
            # Propagate when this task is being cancelled as well
            if asyncio.current_task().cancelling():
                raise
        return None


def _get_tracer() -> Tracer:
    import relaytrace

    return relaytrace.get_tracer(__name__)
