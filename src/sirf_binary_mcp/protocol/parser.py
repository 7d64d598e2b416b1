"""Response parsing for receiver output messages."""

from __future__ import annotations

from dataclasses import dataclass

from ..models.navigation import MeasuredNavigationData
from .commands import MessageId
from .framing import Message


@dataclass
class SoftwareVersionResponse:
    """Parsed Software Version String (0x06) response."""

    version: str
    raw: bytes

    def __repr__(self) -> str:
        return f"SoftwareVersionResponse(version={self.version!r})"

    def to_dict(self) -> dict:
        return {"version": self.version, "raw_hex": self.raw.hex()}


@dataclass
class CommandAckResponse:
    """Parsed Command Acknowledgment (0x0B) or Negative Acknowledgment (0x0C)."""

    acknowledged: bool
    command_id: int

    def to_dict(self) -> dict:
        return {"acknowledged": self.acknowledged, "command_id": self.command_id}


def parse_software_version(message: Message) -> SoftwareVersionResponse | None:
    """Parse a Software Version String response.

    The body is a NUL-padded ASCII string.
    """
    if message.id != MessageId.SOFTWARE_VERSION:
        return None
    text = message.body.split(b"\x00")[0].decode("ascii", errors="replace")
    return SoftwareVersionResponse(version=text.strip(), raw=message.body)


def parse_navigation(message: Message) -> MeasuredNavigationData | None:
    """Parse a Measured Navigation Data message, or None if it is too short."""
    if message.id != MessageId.MEASURED_NAVIGATION:
        return None
    try:
        return MeasuredNavigationData.from_bytes(message.payload)
    except ValueError:
        return None


def parse_command_ack(message: Message) -> CommandAckResponse | None:
    """Parse an ACK/NACK; the body starts with the acknowledged command ID."""
    if message.id not in (MessageId.COMMAND_ACK, MessageId.COMMAND_NACK):
        return None
    if len(message.body) < 1:
        return None
    return CommandAckResponse(
        acknowledged=message.id == MessageId.COMMAND_ACK,
        command_id=message.body[0],
    )


def parse_response(message: Message):
    """Auto-dispatch a message to the appropriate response parser.

    Returns the parsed response object, or the raw Message if no specific
    parser matches.
    """
    parsers = {
        MessageId.SOFTWARE_VERSION: parse_software_version,
        MessageId.MEASURED_NAVIGATION: parse_navigation,
        MessageId.COMMAND_ACK: parse_command_ack,
        MessageId.COMMAND_NACK: parse_command_ack,
    }
    parser = parsers.get(message.id)
    if parser:
        result = parser(message)
        if result is not None:
            return result
    return message
