"""MCP server entry point for SiRF binary GPS receivers.

Exposes tools and resources via the Model Context Protocol using the official
Python MCP SDK with stdio transport. The serial pump runs as a task on the
server's event loop once ``connect`` has been called.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from .link import DEFAULT_RESPONSE_TIMEOUT, SirfLink
from .protocol.commands import MESSAGE_NAMES, POLL_RESPONSES, MessageId, message_name
from .protocol.framing import MAX_PAYLOAD_SIZE, Message
from .protocol.parser import parse_navigation, parse_response, parse_software_version
from .protocol.router import MessageTimeout
from .transport.serial_connection import (
    DEFAULT_BAUDRATE,
    DEFAULT_PORT,
    SerialConnection,
)

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "sirf-binary",
    instructions="MCP server for GPS receivers speaking the SiRF binary protocol",
)

# Global link state
_link: SirfLink | None = None


def _get_link() -> SirfLink:
    """Get the active link, raising if not connected."""
    if _link is None or not _link.connection.connected:
        raise RuntimeError(
            "Not connected to receiver. Use the 'connect' tool first."
        )
    return _link


def _message_to_dict(message: Message) -> dict[str, Any]:
    result: dict[str, Any] = {
        "id": message.id,
        "name": message_name(message.id),
        "payload_hex": message.payload.hex(),
    }
    parsed = parse_response(message)
    if parsed is not message:
        result["data"] = parsed.to_dict()
    return result


def _parse_hex(payload_hex: str) -> bytes:
    try:
        return bytes.fromhex(payload_hex)
    except ValueError as e:
        raise ValueError(f"Payload must be a hex string, got {payload_hex!r}") from e


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
async def connect(
    port: str = DEFAULT_PORT,
    baudrate: int = DEFAULT_BAUDRATE,
) -> dict[str, Any]:
    """Open the serial port to the GPS receiver and start decoding messages.

    Args:
        port: Serial device, e.g. '/dev/ttyUSB0' or 'COM3'.
        baudrate: Line speed; SiRF receivers default to 4800 in binary mode.
    """
    global _link
    if _link is not None and _link.connection.connected:
        return {
            "connected": True,
            "message": "Already connected",
            "port": _link.connection.port_info.port,
        }

    _link = SirfLink(SerialConnection(port, baudrate))
    await _link.start()
    return {"connected": True, "port": port, "baudrate": baudrate}


@mcp.tool()
async def disconnect() -> dict[str, bool]:
    """Stop decoding and close the serial port."""
    global _link
    if _link is None:
        return {"disconnected": True}
    await _link.stop()
    _link = None
    return {"disconnected": True}


@mcp.tool()
def link_status() -> dict[str, Any]:
    """Report decoder counters: frames, messages, verification failures, resync discards.

    Still answers after the port has failed, so the error can be inspected.
    """
    if _link is None:
        raise RuntimeError(
            "Not connected to receiver. Use the 'connect' tool first."
        )
    link = _link
    return {
        "connected": link.connection.connected,
        "running": link.running,
        "port": link.connection.port_info.port,
        "baudrate": link.connection.port_info.baudrate,
        "stats": link.status(),
        "seen_ids": sorted(link.latest),
    }


# ─── RECEIVER TOOLS ──────────────────────────────────────────────────

@mcp.tool()
async def poll_software_version(
    timeout: float = DEFAULT_RESPONSE_TIMEOUT,
) -> dict[str, Any]:
    """Ask the receiver for its firmware version string.

    Sends Poll Software Version (0x84) and waits for the 0x06 reply.

    Args:
        timeout: Seconds to wait for the reply (default 3).
    """
    link = _get_link()
    try:
        message = await link.poll_software_version(timeout)
    except MessageTimeout as e:
        return {"error": str(e)}

    version = parse_software_version(message)
    return {"version": version.version if version else "", "raw_hex": message.body.hex()}


@mcp.tool()
async def poll(
    command_id: int,
    timeout: float = DEFAULT_RESPONSE_TIMEOUT,
) -> dict[str, Any]:
    """Send a poll command and return the reply it triggers.

    Args:
        command_id: Poll command ID, e.g. 0x84 (software version),
                    0x90 (clock status), 0x98 (receiver parameters).
        timeout: Seconds to wait for the reply (default 3).
    """
    if command_id not in POLL_RESPONSES:
        return {
            "error": f"Unknown poll command {command_id}. "
                     f"Valid: {[int(c) for c in POLL_RESPONSES]}"
        }

    link = _get_link()
    try:
        message = await link.poll(command_id, timeout)
    except MessageTimeout as e:
        return {"error": str(e)}
    return _message_to_dict(message)


@mcp.tool()
async def wait_for_message(
    message_id: int,
    timeout: float = DEFAULT_RESPONSE_TIMEOUT,
) -> dict[str, Any]:
    """Wait for the next message with the given ID (0-255) and return it.

    Args:
        message_id: Message ID, e.g. 2 for Measured Navigation Data.
        timeout: Seconds to wait (default 3).
    """
    link = _get_link()
    try:
        message = await link.wait_for(message_id, timeout)
    except MessageTimeout as e:
        return {"error": str(e)}
    return _message_to_dict(message)


@mcp.tool()
async def get_navigation(
    timeout: float = DEFAULT_RESPONSE_TIMEOUT,
) -> dict[str, Any]:
    """Return the next Measured Navigation Data (0x02) position and velocity fix.

    Args:
        timeout: Seconds to wait (default 3). The receiver emits one per second.
    """
    link = _get_link()
    try:
        message = await link.wait_for(MessageId.MEASURED_NAVIGATION, timeout)
    except MessageTimeout as e:
        return {"error": str(e)}

    navigation = parse_navigation(message)
    if navigation is None:
        return {"error": "Navigation message too short", "payload_hex": message.payload.hex()}
    return navigation.to_dict()


@mcp.tool()
async def send_payload(
    payload_hex: str,
    response_id: int | None = None,
    timeout: float = DEFAULT_RESPONSE_TIMEOUT,
) -> dict[str, Any]:
    """Frame and send a raw payload, optionally waiting for a reply.

    Args:
        payload_hex: Message ID byte followed by the body, as hex (e.g. '8400').
        response_id: If given, wait for the next message with this ID.
        timeout: Seconds to wait for the reply (default 3).
    """
    payload = _parse_hex(payload_hex)
    if len(payload) > MAX_PAYLOAD_SIZE:
        return {"error": f"Payload must be at most {MAX_PAYLOAD_SIZE} bytes"}

    link = _get_link()
    if response_id is None:
        written = await link.send(payload)
        return {"sent": True, "bytes": written}

    try:
        message = await link.request(payload, response_id, timeout)
    except MessageTimeout as e:
        return {"sent": True, "error": str(e)}
    return {"sent": True, "response": _message_to_dict(message)}


# ─── MCP RESOURCES ───────────────────────────────────────────────────

@mcp.resource("sirf://messages/catalog")
def resource_message_catalog() -> str:
    """Known message IDs and their names."""
    return json.dumps({
        "messages": [
            {"id": int(message_id), "hex": f"0x{message_id:02X}", "name": name}
            for message_id, name in sorted(MESSAGE_NAMES.items())
        ]
    })


@mcp.resource("sirf://messages/latest")
def resource_latest_messages() -> str:
    """Most recent message received for each ID."""
    if _link is None:
        return json.dumps({"messages": []})
    return json.dumps({
        "messages": [_message_to_dict(_link.latest[i]) for i in sorted(_link.latest)]
    })


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
