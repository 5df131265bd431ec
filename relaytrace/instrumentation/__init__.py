"""Instrumentation for traced messaging and downstream HTTP calls."""

from relaytrace.instrumentation.consumer import (
    MESSAGE_CONSUMED_EVENT,
    ConsumerState,
    ReceiveOutcome,
    TracingConsumerLoop,
    receive_with_tracing,
    receive_with_tracing_async,
)
from relaytrace.instrumentation.decorator import observe
from relaytrace.instrumentation.http_client import BackendClient, inject_headers
from relaytrace.instrumentation.message import Message
from relaytrace.instrumentation.producer import (
    MESSAGE_SENT_EVENT,
    OUTCOME_ATTRIBUTE,
    send_with_tracing,
    send_with_tracing_async,
)

__all__ = [
    "Message",
    "MESSAGE_SENT_EVENT",
    "MESSAGE_CONSUMED_EVENT",
    "OUTCOME_ATTRIBUTE",
    "send_with_tracing",
    "send_with_tracing_async",
    "receive_with_tracing",
    "receive_with_tracing_async",
    "ReceiveOutcome",
    "ConsumerState",
    "TracingConsumerLoop",
    "BackendClient",
    "inject_headers",
    "observe",
]
