"""Receiver link: serial transport, frame decoder and message router in one place.

A background pump task reads the port, validates every frame body and
dispatches the resulting messages. Frames that fail validation are logged
and skipped; the pump keeps running until the port closes. If reading the
port fails, pending requests fail with ``ConnectionError`` and the port is
closed.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass

from .protocol.commands import MessageId, message_name, poll_payload
from .protocol.framing import (
    FrameDecoder,
    FrameValidationError,
    Message,
    build_frame,
    validate_frame_body,
)
from .protocol.router import MessageRouter, MessageTimeout
from .transport.serial_connection import SerialConnection

logger = logging.getLogger(__name__)

DEFAULT_RESPONSE_TIMEOUT = 3.0


@dataclass
class LinkStats:
    """Counters kept by the pump."""

    frames: int = 0
    messages: int = 0
    validation_failures: int = 0
    timeouts: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


class SirfLink:
    """Owns one connection and the decoding state attached to it.

    Usage::

        link = SirfLink(SerialConnection("/dev/ttyUSB0"))
        await link.start()
        version = await link.poll_software_version()
        await link.stop()
    """

    def __init__(
        self,
        connection: SerialConnection,
        router: MessageRouter | None = None,
    ) -> None:
        self.connection = connection
        self.router = router or MessageRouter()
        self.decoder = FrameDecoder(read=connection.read)
        self.stats = LinkStats()
        self.latest: dict[int, Message] = {}
        self.error: Exception | None = None
        self._pump_task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._pump_task is not None and not self._pump_task.done()

    async def start(self) -> None:
        """Open the connection and start the pump task."""
        await self.connection.open()
        if not self.running:
            self._pump_task = asyncio.create_task(self._pump())

    async def stop(self) -> None:
        """Stop the pump and close the connection."""
        task = self._pump_task
        self._pump_task = None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self.connection.close()

    def status(self) -> dict:
        """Counters plus the decoder's live resync figures."""
        return {
            **self.stats.to_dict(),
            "bytes_discarded": self.decoder.bytes_discarded,
            "buffered_bytes": self.decoder.buffered,
            "error": str(self.error) if self.error else None,
        }

    def _check_alive(self) -> None:
        if self.error is not None:
            raise ConnectionError(f"Receiver stream failed: {self.error}")

    def handle_body(self, body: bytes) -> Message | None:
        """Validate one frame body and dispatch it.

        Returns:
            The dispatched message, or None when validation failed.
        """
        self.stats.frames += 1
        try:
            message = validate_frame_body(body)
        except FrameValidationError as e:
            self.stats.validation_failures += 1
            logger.warning(
                "Frame verification failed (length %s, checksum %s): %s body=%s",
                "ok" if e.length_ok else "bad",
                "ok" if e.checksum_ok else "bad",
                e,
                body.hex(" "),
            )
            return None

        self.stats.messages += 1
        if message.id is not None:
            self.latest[message.id] = message
        logger.debug("[%s] %s: %r", message.id, message_name(message.id), message)
        self.router.dispatch(message)
        return message

    async def _pump(self) -> None:
        try:
            async for body in self.decoder:
                self.handle_body(body)
        except Exception as e:
            logger.exception("Receiver stream failed")
            self.error = e
            failed = self.router.fail_pending(
                ConnectionError(f"Receiver stream failed: {e}")
            )
            if failed:
                logger.warning("Failed %d pending request(s)", failed)
            await self.connection.close()
            return
        logger.info("Receiver stream closed")

    async def send(self, payload: bytes) -> int:
        """Frame a payload and write it to the port."""
        return await self.connection.write(build_frame(payload))

    async def request(
        self,
        payload: bytes,
        response_id: int,
        timeout: float = DEFAULT_RESPONSE_TIMEOUT,
    ) -> Message:
        """Send a payload and wait for the next message with ``response_id``.

        The waiter is registered before the frame is written so a fast reply
        cannot be missed.

        Raises:
            MessageTimeout: If no reply arrives within ``timeout`` seconds.
            ConnectionError: If the receiver stream has failed.
            ValueError: If the payload is too large to frame.
        """
        self._check_alive()
        frame = build_frame(payload)
        reply = self.router.await_once(response_id, timeout)
        try:
            await self.connection.write(frame)
        except BaseException:
            reply.cancel()
            raise
        try:
            return await reply
        except MessageTimeout:
            self.stats.timeouts += 1
            raise

    async def wait_for(
        self, message_id: int, timeout: float = DEFAULT_RESPONSE_TIMEOUT
    ) -> Message:
        """Wait for the next unsolicited message with ``message_id``."""
        self._check_alive()
        try:
            return await self.router.await_once(message_id, timeout)
        except MessageTimeout:
            self.stats.timeouts += 1
            raise

    async def poll(
        self, command_id: int, timeout: float = DEFAULT_RESPONSE_TIMEOUT
    ) -> Message:
        """Send a poll command and await the reply it triggers.

        Raises:
            ValueError: If ``command_id`` is not a known poll command.
            MessageTimeout: If no reply arrives within ``timeout`` seconds.
        """
        payload, response_id = poll_payload(command_id)
        return await self.request(payload, response_id, timeout)

    async def poll_software_version(
        self, timeout: float = DEFAULT_RESPONSE_TIMEOUT
    ) -> Message:
        """Send Poll Software Version (0x84) and await the 0x06 reply."""
        return await self.poll(MessageId.POLL_SOFTWARE_VERSION, timeout)
