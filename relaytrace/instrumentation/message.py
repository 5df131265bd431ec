"""Transport-neutral message envelope carrying propagation headers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from relaytrace.context.carrier import Headers


@dataclass
class Message:
    topic: str
    value: Any = None
    key: Any = None
    headers: Headers = field(default_factory=Headers)
    partition: Optional[int] = None
    offset: Optional[int] = None

    def identifiers(self) -> Dict[str, Any]:
        """Messaging attributes identifying this message on a span."""
        attrs: Dict[str, Any] = {
            "messaging.system": "kafka",
            "messaging.destination.name": self.topic,
        }
        if self.key is not None:
            key = self.key.decode("utf-8", "replace") if isinstance(self.key, bytes) else str(self.key)
            attrs["messaging.kafka.message.key"] = key
        if self.partition is not None:
            attrs["messaging.kafka.destination.partition"] = self.partition
        if self.offset is not None:
            attrs["messaging.kafka.offset"] = self.offset
        return attrs
