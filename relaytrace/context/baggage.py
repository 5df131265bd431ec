"""Immutable baggage snapshots backed by the OpenTelemetry context."""

from __future__ import annotations

from contextlib import contextmanager
from types import MappingProxyType
from typing import Iterator, Mapping, Optional

from opentelemetry import baggage as baggage_api
from opentelemetry import context as context_api
from opentelemetry.context import Context


class Baggage(Mapping[str, str]):
    """
    String key/value data that travels alongside the trace context.

    Instances never change; ``set`` and ``remove`` return a new snapshot.
    Keys and values are stored with surrounding whitespace stripped, the
    form the W3C baggage header carries them in.
    """

    __slots__ = ("_entries",)

    def __init__(self, entries: Optional[Mapping[str, str]] = None) -> None:
        self._entries = MappingProxyType({_clean(k): _clean(v) for k, v in (entries or {}).items()})

    def set(self, key: str, value: str) -> "Baggage":
        entries = dict(self._entries)
        entries[_clean(key)] = _clean(value)
        return Baggage(entries)

    def remove(self, key: str) -> "Baggage":
        key = _clean(key)
        if key not in self._entries:
            return self
        return Baggage({k: v for k, v in self._entries.items() if k != key})

    def __getitem__(self, key: str) -> str:
        return self._entries[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __hash__(self) -> int:
        return hash(frozenset(self._entries.items()))

    def __repr__(self) -> str:
        return f"Baggage({dict(self._entries)!r})"

    @classmethod
    def from_context(cls, context: Optional[Context] = None) -> "Baggage":
        """Snapshot the baggage held by an OTel context (current one by default)."""
        return cls({key: str(value) for key, value in baggage_api.get_all(context).items()})

    def to_context(self, context: Optional[Context] = None) -> Context:
        """Return a copy of ``context`` whose baggage is exactly this snapshot."""
        ctx = baggage_api.clear(context)
        for key, value in self._entries.items():
            ctx = baggage_api.set_baggage(key, value, ctx)
        return ctx


def _clean(text: object) -> str:
    return str(text).strip()


EMPTY_BAGGAGE = Baggage()


def get_current_baggage() -> Baggage:
    """Return the baggage of the current task/thread context."""
    return Baggage.from_context()


@contextmanager
def use_baggage(baggage: Baggage) -> Iterator[Baggage]:
    """Make ``baggage`` current for the duration of the block."""
    token = context_api.attach(baggage.to_context(context_api.get_current()))
    try:
        yield baggage
    finally:
        context_api.detach(token)
