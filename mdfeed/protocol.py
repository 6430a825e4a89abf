"""Binary wire format of the market data feed.

All integers are little-endian and structures are packed without padding.
Every market data message ends with a 4-byte checksum that holds the XOR of
all preceding bytes.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum
from functools import reduce
from operator import xor
from typing import ClassVar, Iterable, Union

_HEADER = struct.Struct("<HIQH")
_TRADE_PAYLOAD = struct.Struct("<dI")
_QUOTE_PAYLOAD = struct.Struct("<dIdI")
_CHECKSUM = struct.Struct("<I")
_SUBSCRIPTION_HEADER = struct.Struct("<BH")

SUBSCRIBE_COMMAND = 0xFF
MAX_SUBSCRIPTION_COUNT = 0xFFFF


class MessageType(IntEnum):
    """Message type codes carried in the header."""

    TRADE = 0x01
    QUOTE = 0x02
    HEARTBEAT = 0x03
    SUBSCRIBE = 0xFF


def calculate_checksum(data: bytes) -> int:
    """Return the XOR of every byte in ``data``."""
    return reduce(xor, bytes(data), 0)


def validate_checksum(data: bytes) -> bool:
    """Check that the trailing 4-byte checksum matches the bytes before it."""
    raw = bytes(data)
    if len(raw) < _CHECKSUM.size:
        return False
    (stored,) = _CHECKSUM.unpack_from(raw, len(raw) - _CHECKSUM.size)
    return calculate_checksum(raw[: -_CHECKSUM.size]) == stored


def _require_length(data: bytes, size: int, what: str) -> None:
    if len(data) < size:
        raise ValueError(f"{what} needs {size} bytes, got {len(data)}")


def _seal(body: bytes, checksum: int | None) -> bytes:
    if checksum is None:
        checksum = calculate_checksum(body)
    return body + _CHECKSUM.pack(checksum)


def _read_checksum(data: bytes, size: int) -> int:
    (checksum,) = _CHECKSUM.unpack_from(data, size - _CHECKSUM.size)
    return checksum


@dataclass(frozen=True)
class MessageHeader:
    """Common 16-byte header of every market data message."""

    msg_type: int
    seq_num: int
    timestamp: int
    symbol_id: int

    SIZE: ClassVar[int] = _HEADER.size

    def pack(self) -> bytes:
        return _HEADER.pack(int(self.msg_type), self.seq_num, self.timestamp, self.symbol_id)

    @classmethod
    def from_bytes(cls, data: bytes) -> MessageHeader:
        raw = bytes(data)
        _require_length(raw, cls.SIZE, "message header")
        return cls(*_HEADER.unpack_from(raw))


@dataclass(frozen=True)
class TradeMessage:
    """A trade: header, price, quantity and checksum (32 bytes).

    When ``checksum`` is ``None`` the correct value is computed on packing.
    """

    header: MessageHeader
    price: float
    quantity: int
    checksum: int | None = None

    SIZE: ClassVar[int] = _HEADER.size + _TRADE_PAYLOAD.size + _CHECKSUM.size

    def pack(self) -> bytes:
        body = self.header.pack() + _TRADE_PAYLOAD.pack(self.price, self.quantity)
        return _seal(body, self.checksum)

    @classmethod
    def from_bytes(cls, data: bytes) -> TradeMessage:
        raw = bytes(data)
        _require_length(raw, cls.SIZE, "trade message")
        price, quantity = _TRADE_PAYLOAD.unpack_from(raw, _HEADER.size)
        return cls(MessageHeader.from_bytes(raw), price, quantity, _read_checksum(raw, cls.SIZE))


@dataclass(frozen=True)
class QuoteMessage:
    """A two-sided quote (44 bytes).

    When ``checksum`` is ``None`` the correct value is computed on packing.
    """

    header: MessageHeader
    bid_price: float
    bid_qty: int
    ask_price: float
    ask_qty: int
    checksum: int | None = None

    SIZE: ClassVar[int] = _HEADER.size + _QUOTE_PAYLOAD.size + _CHECKSUM.size

    def pack(self) -> bytes:
        body = self.header.pack() + _QUOTE_PAYLOAD.pack(
            self.bid_price, self.bid_qty, self.ask_price, self.ask_qty
        )
        return _seal(body, self.checksum)

    @classmethod
    def from_bytes(cls, data: bytes) -> QuoteMessage:
        raw = bytes(data)
        _require_length(raw, cls.SIZE, "quote message")
        bid_price, bid_qty, ask_price, ask_qty = _QUOTE_PAYLOAD.unpack_from(raw, _HEADER.size)
        return cls(
            MessageHeader.from_bytes(raw),
            bid_price,
            bid_qty,
            ask_price,
            ask_qty,
            _read_checksum(raw, cls.SIZE),
        )


@dataclass(frozen=True)
class HeartbeatMessage:
    """A heartbeat: header and checksum only (20 bytes)."""

    header: MessageHeader
    checksum: int | None = None

    SIZE: ClassVar[int] = _HEADER.size + _CHECKSUM.size

    def pack(self) -> bytes:
        return _seal(self.header.pack(), self.checksum)

    @classmethod
    def from_bytes(cls, data: bytes) -> HeartbeatMessage:
        raw = bytes(data)
        _require_length(raw, cls.SIZE, "heartbeat message")
        return cls(MessageHeader.from_bytes(raw), _read_checksum(raw, cls.SIZE))


Message = Union[TradeMessage, QuoteMessage, HeartbeatMessage]

_MESSAGE_CLASSES = {
    MessageType.TRADE: TradeMessage,
    MessageType.QUOTE: QuoteMessage,
    MessageType.HEARTBEAT: HeartbeatMessage,
}


def get_message_size(msg_type: int) -> int:
    """Return the wire size of a message type, or 0 for types without a body."""
    try:
        kind = MessageType(msg_type)
    except ValueError:
        return 0
    message_class = _MESSAGE_CLASSES.get(kind)
    return message_class.SIZE if message_class else 0


def decode_message(data: bytes) -> Message:
    """Decode one complete message from the start of ``data``.

    Raises ``ValueError`` for an unknown type, a truncated message or a
    checksum mismatch.
    """
    raw = bytes(data)
    header = MessageHeader.from_bytes(raw)
    size = get_message_size(header.msg_type)
    if size == 0:
        raise ValueError(f"unknown message type {header.msg_type:#x}")
    _require_length(raw, size, "message")
    frame = raw[:size]
    if not validate_checksum(frame):
        raise ValueError("checksum mismatch")
    return _MESSAGE_CLASSES[MessageType(header.msg_type)].from_bytes(frame)


def encode_subscription(symbol_ids: Iterable[int]) -> bytes:
    """Build a subscription request: command byte, count, then symbol ids."""
    ids = list(symbol_ids)
    if len(ids) > MAX_SUBSCRIPTION_COUNT:
        raise ValueError(f"too many symbols in one subscription: {len(ids)}")
    if any(not 0 <= symbol_id <= 0xFFFF for symbol_id in ids):
        raise ValueError("symbol ids must fit in 16 bits")
    return _SUBSCRIPTION_HEADER.pack(SUBSCRIBE_COMMAND, len(ids)) + struct.pack(
        f"<{len(ids)}H", *ids
    )


def parse_subscription(data: bytes) -> list[int]:
    """Return the symbol ids of a subscription request, in wire order."""
    raw = bytes(data)
    if len(raw) < _SUBSCRIPTION_HEADER.size:
        raise ValueError("subscription message too short")
    command, count = _SUBSCRIPTION_HEADER.unpack_from(raw)
    if command != SUBSCRIBE_COMMAND:
        raise ValueError(f"invalid subscription command: {command}")
    expected = _SUBSCRIPTION_HEADER.size + 2 * count
    if len(raw) < expected:
        raise ValueError(f"subscription message: expected {expected} bytes, got {len(raw)}")
    return list(struct.unpack_from(f"<{count}H", raw, _SUBSCRIPTION_HEADER.size))