"""Asynchronous serial connection to a SiRF binary GPS receiver.

Uses ``pyserial-asyncio`` to obtain an ``asyncio`` stream pair for the port.
The connection only moves bytes: framing and validation live in
:mod:`sirf_binary_mcp.protocol`.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

import serial
import serial_asyncio

logger = logging.getLogger(__name__)

DEFAULT_PORT = "/dev/ttyUSB0"
DEFAULT_BAUDRATE = 4800
READ_CHUNK_SIZE = 1024


@dataclass
class PortInfo:
    """Settings of the open serial port."""

    port: str = DEFAULT_PORT
    baudrate: int = DEFAULT_BAUDRATE


class SerialConnection:
    """Manages the serial link to the receiver.

    Usage::

        conn = SerialConnection("/dev/ttyUSB0", 4800)
        await conn.open()
        await conn.write(frame_bytes)
        chunk = await conn.read()
        await conn.close()
    """

    def __init__(
        self,
        port: str = DEFAULT_PORT,
        baudrate: int = DEFAULT_BAUDRATE,
    ) -> None:
        self._info = PortInfo(port=port, baudrate=baudrate)
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None

    @property
    def connected(self) -> bool:
        return self._writer is not None

    @property
    def port_info(self) -> PortInfo:
        return self._info

    async def open(self) -> PortInfo:
        """Open the serial port.

        Raises:
            ConnectionError: If the port cannot be opened.
        """
        if self.connected:
            return self._info
        try:
            self._reader, self._writer = await serial_asyncio.open_serial_connection(
                url=self._info.port, baudrate=self._info.baudrate
            )
        except (serial.SerialException, OSError) as e:
            raise ConnectionError(
                f"Could not open serial port {self._info.port} "
                f"@ {self._info.baudrate} baud: {e}"
            ) from e
        logger.info("Serial opened on %s @ %d", self._info.port, self._info.baudrate)
        return self._info

    async def close(self) -> None:
        """Close the serial port."""
        if self._writer is None:
            return
        writer = self._writer
        self._reader = None
        self._writer = None
        writer.close()
        try:
            await writer.wait_closed()
        except (serial.SerialException, OSError) as e:
            logger.warning("Error closing serial port: %s", e)
        logger.info("Disconnected from %s", self._info.port)

    async def write(self, data: bytes) -> int:
        """Write a complete frame to the port.

        Returns:
            Number of bytes written.

        Raises:
            ConnectionError: If not connected.
        """
        if self._writer is None:
            raise ConnectionError("Not connected to receiver")
        self._writer.write(data)
        await self._writer.drain()
        logger.debug("TX %s", data.hex(" "))
        return len(data)

    async def read(self, size: int = READ_CHUNK_SIZE) -> bytes:
        """Read whatever bytes are available, waiting for at least one.

        Returns:
            Up to ``size`` bytes, or ``b""`` once the port is closed.

        Raises:
            ConnectionError: If not connected.
        """
        if self._reader is None:
            raise ConnectionError("Not connected to receiver")
        data = await self._reader.read(size)
        if data:
            logger.debug("RX %s", data.hex(" "))
        return data
