"""Header carriers used as the propagation medium on messages."""

from __future__ import annotations

from typing import Any, Dict, Iterable, Iterator, List, Optional, Protocol, Tuple, Union, runtime_checkable

from relaytrace.errors import CarrierError

HeaderValue = Union[bytes, str]
HeaderList = List[Tuple[str, bytes]]


@runtime_checkable
class Carrier(Protocol):
    """Narrow key -> bytes header bag understood by the propagator."""

    def get(self, key: str) -> Optional[bytes]:
        ...

    def set(self, key: str, value: bytes) -> None:
        ...

    def keys(self) -> List[str]:
        ...


class Headers:
    """
    Ordered ``(name, bytes)`` header list, the shape Kafka clients use.

    ``get`` returns the first value for a name; ``set`` replaces every value
    for that name. A read-only copy rejects ``set`` so a received message's
    headers cannot be altered while they are being extracted.
    """

    __slots__ = ("_items", "_read_only")

    def __init__(self, items: Optional[Iterable[Tuple[str, HeaderValue]]] = None, *, read_only: bool = False) -> None:
        self._items: HeaderList = [(str(key), _to_bytes(value)) for key, value in (items or ())]
        self._read_only = read_only

    @classmethod
    def from_list(cls, items: Optional[Iterable[Tuple[str, Any]]], *, read_only: bool = False) -> "Headers":
        """Build from a transport's native header list (None values are dropped)."""
        return cls(((key, value) for key, value in (items or ()) if value is not None), read_only=read_only)

    def to_list(self) -> HeaderList:
        return list(self._items)

    def read_only(self) -> "Headers":
        return Headers(self._items, read_only=True)

    @property
    def is_read_only(self) -> bool:
        return self._read_only

    def get(self, key: str) -> Optional[bytes]:
        for name, value in self._items:
            if name == key:
                return value
        return None

    def set(self, key: str, value: HeaderValue) -> None:
        if self._read_only:
            raise CarrierError("headers are read-only", {"key": key})
        encoded = _to_bytes(value)
        self._items = [(name, item) for name, item in self._items if name != key]
        self._items.append((key, encoded))

    def keys(self) -> List[str]:
        seen: List[str] = []
        for name, _ in self._items:
            if name not in seen:
                seen.append(name)
        return seen

    def __contains__(self, key: object) -> bool:
        return any(name == key for name, _ in self._items)

    def __iter__(self) -> Iterator[Tuple[str, bytes]]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Headers):
            return NotImplemented
        return self._items == other._items

    def __repr__(self) -> str:
        return f"Headers({self._items!r}, read_only={self._read_only})"


def _to_bytes(value: HeaderValue) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    raise CarrierError("header values must be bytes or str", {"type": type(value).__name__})


# Accessors. Getters return bytes (or str) or None; setters receive bytes.

def carrier_getter(carrier: Carrier, key: str) -> Optional[bytes]:
    return carrier.get(key)


def carrier_setter(carrier: Carrier, key: str, value: bytes) -> None:
    carrier.set(key, value)


def dict_getter(carrier: Dict[str, Any], key: str) -> Optional[HeaderValue]:
    return carrier.get(key)


def dict_setter(carrier: Dict[str, Any], key: str, value: bytes) -> None:
    carrier[key] = value


def kafka_header_getter(carrier: Iterable[Tuple[str, Any]], key: str) -> Optional[HeaderValue]:
    for name, value in carrier:
        if name == key:
            return value
    return None


def kafka_header_setter(carrier: HeaderList, key: str, value: bytes) -> None:
    carrier[:] = [(name, item) for name, item in carrier if name != key]
    carrier.append((key, value))
