"""Wire codec for DAO advertisements.

Payload layout (ASCII text, colon separated):

    DAO:<seq>:<seconds>:<nanoseconds>

seq         : u32, sender-assigned sequence number
seconds     : u64, claimed generation time, whole seconds
nanoseconds : u64, claimed generation time, nanosecond component

The origin time is what the sender *claims*; arrival time is stamped by the
collector and never travels on the wire.
"""

from __future__ import annotations

import functools
from dataclasses import dataclass
from typing import Any, Final, Hashable

TAG: Final[bytes] = b"DAO"
SEPARATOR: Final[bytes] = b":"

U32_MAX: Final[int] = 2**32 - 1
U64_MAX: Final[int] = 2**64 - 1

NS_PER_SECOND: Final[int] = 1_000_000_000


class FrameError(Exception):
    """Base for payload problems."""


class DecodeError(FrameError):
    """Raised when a payload cannot be decoded into an advertisement."""


class SignatureError(DecodeError):
    """Raised when a payload's authentication tag is missing or invalid."""


@functools.total_ordering
@dataclass(frozen=True, eq=False)
class OriginTime:
    """Claimed generation instant as a (seconds, nanoseconds) pair.

    Comparison is over the combined instant, so ``(1, 0)`` and
    ``(0, 1_000_000_000)`` are the same moment. The fields are kept as sent.
    """

    seconds: int
    nanoseconds: int

    @property
    def total_ns(self) -> int:
        return self.seconds * NS_PER_SECOND + self.nanoseconds

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, OriginTime):
            return NotImplemented
        return self.total_ns == other.total_ns

    def __lt__(self, other: "OriginTime") -> bool:
        if not isinstance(other, OriginTime):
            return NotImplemented
        return self.total_ns < other.total_ns

    def __hash__(self) -> int:
        return hash(self.total_ns)

    def as_tuple(self) -> tuple[int, int]:
        return self.seconds, self.nanoseconds


@dataclass(frozen=True)
class Advertisement:
    """A decoded DAO. ``sender_id`` comes from the delivery, not the payload."""

    seq: int
    origin_time: OriginTime
    sender_id: Hashable = None


def _check_range(name: str, value: int, upper: int) -> None:
    if not 0 <= value <= upper:
        raise ValueError(f"{name} out of range: {value}")


def encode(seq: int, origin_time: OriginTime | tuple[int, int]) -> bytes:
    """Serialize *seq* and *origin_time* into the tagged wire form."""
    if not isinstance(origin_time, OriginTime):
        origin_time = OriginTime(*origin_time)
    _check_range("seq", seq, U32_MAX)
    _check_range("seconds", origin_time.seconds, U64_MAX)
    _check_range("nanoseconds", origin_time.nanoseconds, U64_MAX)
    return b"%b:%d:%d:%d" % (TAG, seq, origin_time.seconds, origin_time.nanoseconds)


def _parse_unsigned(name: str, raw: bytes, upper: int) -> int:
    # int() would also accept signs, whitespace and underscores
    if not raw or not raw.isdigit():
        raise DecodeError(f"{name} is not an unsigned integer: {raw!r}")
    value = int(raw)
    if value > upper:
        raise DecodeError(f"{name} overflows: {value}")
    return value


def decode(data: bytes, sender_id: Hashable = None) -> Advertisement:
    """Parse one wire payload; raise DecodeError on any malformation."""
    if not isinstance(data, (bytes, bytearray)):
        raise DecodeError(f"payload must be bytes, got {type(data).__name__}")
    if not data.isascii():
        raise DecodeError("payload is not ASCII text")
    fields = bytes(data).split(SEPARATOR)
    if fields[0] != TAG:
        raise DecodeError(f"missing or mismatched tag: {fields[0][:16]!r}")
    if len(fields) != 4:
        raise DecodeError(f"expected 4 fields, got {len(fields)}")
    seq = _parse_unsigned("seq", fields[1], U32_MAX)
    seconds = _parse_unsigned("seconds", fields[2], U64_MAX)
    nanoseconds = _parse_unsigned("nanoseconds", fields[3], U64_MAX)
    return Advertisement(seq=seq, origin_time=OriginTime(seconds, nanoseconds), sender_id=sender_id)


__all__ = [
    "FrameError",
    "DecodeError",
    "SignatureError",
    "OriginTime",
    "Advertisement",
    "encode",
    "decode",
]
