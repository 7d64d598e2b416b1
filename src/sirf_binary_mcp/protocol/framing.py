"""Frame encoder, resynchronizing stream decoder, and payload validation.

Frame layout::

    +--------+--------+-----------------+----------+--------+
    | Start  | Length |     Payload     | Checksum |  End   |
    | 2 bytes| 2 bytes| 0-1023 bytes    | 2 bytes  | 2 bytes|
    +--------+--------+-----------------+----------+--------+
    | A0 A2  |        |                 |          | B0 B3  |
    +--------+--------+-----------------+----------+--------+

- Length: big-endian byte count of the payload only
- Checksum: 15-bit additive checksum over the payload, big-endian
- The first payload byte is the message ID

Start and end markers are not escaped. A payload that happens to contain
``B0 B3`` will split its frame and fail validation downstream.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterator

from ..utils.checksum import CHECKSUM_SIZE, checksum

logger = logging.getLogger(__name__)

START_SEQUENCE = b"\xA0\xA2"
END_SEQUENCE = b"\xB0\xB3"
LENGTH_SIZE = 2
MAX_PAYLOAD_SIZE = 0x3FF  # 10-bit length field
MIN_BODY_SIZE = LENGTH_SIZE + CHECKSUM_SIZE


@dataclass(frozen=True)
class Message:
    """A validated payload: one message ID byte followed by the body."""

    payload: bytes

    @property
    def id(self) -> int | None:
        return self.payload[0] if self.payload else None

    @property
    def body(self) -> bytes:
        return self.payload[1:]

    def __repr__(self) -> str:
        if self.id is None:
            return "Message(empty)"
        return (
            f"Message(id=0x{self.id:02X}, "
            f"body={self.body.hex(' ') if self.body else '(empty)'})"
        )


# ─── ENCODING ────────────────────────────────────────────────────────

def build_frame(payload: bytes) -> bytes:
    """Build a complete wire frame around a payload.

    Args:
        payload: Message ID byte followed by the message body.

    Returns:
        ``start + length + payload + checksum + end`` ready to write to the port.

    Raises:
        ValueError: If the payload does not fit the 10-bit length field.
    """
    if len(payload) > MAX_PAYLOAD_SIZE:
        raise ValueError(
            f"Payload must be at most {MAX_PAYLOAD_SIZE} bytes, got {len(payload)}"
        )
    length = len(payload).to_bytes(LENGTH_SIZE, "big")
    check = checksum(payload).to_bytes(CHECKSUM_SIZE, "big")
    return START_SEQUENCE + length + payload + check + END_SEQUENCE


# ─── VALIDATION ──────────────────────────────────────────────────────

class FrameValidationError(ValueError):
    """A frame body was found between markers but its content did not verify."""

    def __init__(
        self,
        body: bytes,
        declared_length: int | None = None,
        actual_length: int | None = None,
        declared_checksum: int | None = None,
        computed_checksum: int | None = None,
    ) -> None:
        self.body = body
        self.declared_length = declared_length
        self.actual_length = actual_length
        self.declared_checksum = declared_checksum
        self.computed_checksum = computed_checksum
        super().__init__(self._describe())

    @property
    def length_ok(self) -> bool:
        return (
            self.declared_length is not None
            and self.declared_length == self.actual_length
        )

    @property
    def checksum_ok(self) -> bool:
        return (
            self.declared_checksum is not None
            and self.declared_checksum == self.computed_checksum
        )

    def _describe(self) -> str:
        def fmt(value: int | None, spec: str) -> str:
            return "?" if value is None else format(value, spec)

        return (
            f"{type(self).__name__}: "
            f"length declared={fmt(self.declared_length, 'd')} "
            f"actual={fmt(self.actual_length, 'd')}, "
            f"checksum declared=0x{fmt(self.declared_checksum, '04X')} "
            f"computed=0x{fmt(self.computed_checksum, '04X')}"
        )


class TruncatedFrame(FrameValidationError):
    """Body too short to hold the length and checksum fields."""


class LengthMismatch(FrameValidationError):
    """Declared length differs from the payload byte count."""


class ChecksumMismatch(FrameValidationError):
    """Declared checksum differs from the computed checksum."""


class LengthAndChecksumMismatch(LengthMismatch, ChecksumMismatch):
    """Both the length and the checksum failed to verify."""


def validate_frame_body(body: bytes) -> Message:
    """Split a frame body into length, payload and checksum and verify both.

    Both checks always run so the raised error carries the declared and
    computed values for each field.

    Args:
        body: Bytes strictly between the start and end markers.

    Returns:
        The validated ``Message``.

    Raises:
        TruncatedFrame: If the body is shorter than 4 bytes.
        LengthMismatch: If only the length field is wrong.
        ChecksumMismatch: If only the checksum field is wrong.
        LengthAndChecksumMismatch: If both are wrong.
    """
    if len(body) < MIN_BODY_SIZE:
        raise TruncatedFrame(body)

    declared_length = int.from_bytes(body[:LENGTH_SIZE], "big")
    payload = body[LENGTH_SIZE:-CHECKSUM_SIZE]
    declared_checksum = int.from_bytes(body[-CHECKSUM_SIZE:], "big")
    computed_checksum = checksum(payload)

    length_ok = declared_length == len(payload)
    checksum_ok = declared_checksum == computed_checksum
    if length_ok and checksum_ok:
        return Message(payload=payload)

    if not length_ok and not checksum_ok:
        error_cls = LengthAndChecksumMismatch
    elif not length_ok:
        error_cls = LengthMismatch
    else:
        error_cls = ChecksumMismatch
    raise error_cls(
        body,
        declared_length=declared_length,
        actual_length=len(payload),
        declared_checksum=declared_checksum,
        computed_checksum=computed_checksum,
    )


# ─── DECODING ────────────────────────────────────────────────────────

class FrameDecoder:
    """Incremental scanner that extracts frame bodies from a byte stream.

    One instance owns the accumulation buffer for one transport connection.
    Bodies are the bytes strictly between a start marker and the next end
    marker. Misaligned bytes are dropped silently:

    - end marker before start marker: everything ahead of the start marker
      is discarded and the buffer is rescanned;
    - start marker before end marker: the bytes between them are emitted and
      everything through the end marker is consumed;
    - either marker missing: wait for more input.

    Usage::

        decoder = FrameDecoder(read=connection.read)
        async for body in decoder:
            message = validate_frame_body(body)

    Args:
        read: Coroutine function returning the next chunk of transport bytes,
            or ``b""`` once the transport is closed. Only needed for async
            iteration; ``feed()`` and ``frames()`` work without it.
    """

    def __init__(self, read: Callable[[], Awaitable[bytes]] | None = None) -> None:
        self._read = read
        self._buffer = bytearray()
        self.frames_decoded = 0
        self.bytes_discarded = 0

    @property
    def buffered(self) -> int:
        """Number of bytes currently held awaiting a complete frame."""
        return len(self._buffer)

    def feed(self, data: bytes) -> None:
        """Append freshly read transport bytes to the buffer."""
        self._buffer.extend(data)

    def frames(self) -> Iterator[bytes]:
        """Yield every frame body that can be extracted from buffered bytes."""
        while True:
            body = self._extract()
            if body is None:
                return
            yield body

    def __aiter__(self) -> FrameDecoder:
        return self

    async def __anext__(self) -> bytes:
        if self._read is None:
            raise TypeError("FrameDecoder needs a read callable for async iteration")
        while True:
            body = self._extract()
            if body is not None:
                return body
            data = await self._read()
            if not data:
                raise StopAsyncIteration
            self.feed(data)

    def _discard(self, count: int) -> None:
        if count <= 0:
            return
        logger.debug("Resync: dropping %d byte(s): %s", count, self._buffer[:count].hex(" "))
        del self._buffer[:count]
        self.bytes_discarded += count

    def _extract(self) -> bytes | None:
        """Apply the resync rules until a body is found or more input is needed."""
        while True:
            start = self._buffer.find(START_SEQUENCE)
            end = self._buffer.find(END_SEQUENCE)

            if start == -1:
                # Only the last byte can still begin a start marker
                self._discard(len(self._buffer) - (len(START_SEQUENCE) - 1))
                return None
            if end == -1:
                self._discard(start)
                return None

            if start > end:
                self._discard(start)
                continue

            body = bytes(self._buffer[start + len(START_SEQUENCE) : end])
            self._discard(start)
            del self._buffer[: end - start + len(END_SEQUENCE)]
            self.frames_decoded += 1
            return body
