"""Message ID constants and command builders.

Input messages (host to receiver) use IDs 0x80 and up; output messages
(receiver to host) use IDs below 0x80.
"""

from __future__ import annotations

from enum import IntEnum

from .framing import build_frame


class MessageId(IntEnum):
    """SiRF binary message identifiers."""

    # Receiver output
    MEASURED_NAVIGATION = 0x02
    MEASURED_TRACKER = 0x04
    RAW_TRACKER = 0x05
    SOFTWARE_VERSION = 0x06
    CLOCK_STATUS = 0x07
    SUBFRAME_50BPS = 0x08
    CPU_THROUGHPUT = 0x09
    ERROR_ID = 0x0A
    COMMAND_ACK = 0x0B
    COMMAND_NACK = 0x0C
    VISIBLE_LIST = 0x0D
    ALMANAC = 0x0E
    EPHEMERIS = 0x0F
    OK_TO_SEND = 0x12
    NAVIGATION_PARAMETERS = 0x13
    NAVIGATION_LIBRARY = 0x1C
    GEODETIC_NAVIGATION = 0x29
    DEVELOPMENT_DATA = 0xFF

    # Host input
    INITIALIZE_DATA_SOURCE = 0x80
    SWITCH_TO_NMEA = 0x81
    SET_ALMANAC = 0x82
    POLL_SOFTWARE_VERSION = 0x84
    SET_MAIN_SERIAL_PORT = 0x86
    MODE_CONTROL = 0x88
    DOP_MASK_CONTROL = 0x89
    POLL_RECEIVER_PARAMETERS = 0x98
    POLL_CLOCK_STATUS = 0x90
    POLL_ALMANAC = 0x92
    POLL_EPHEMERIS = 0x93


# Reply expected for each poll command
POLL_RESPONSES: dict[MessageId, MessageId] = {
    MessageId.POLL_SOFTWARE_VERSION: MessageId.SOFTWARE_VERSION,
    MessageId.POLL_CLOCK_STATUS: MessageId.CLOCK_STATUS,
    MessageId.POLL_ALMANAC: MessageId.ALMANAC,
    MessageId.POLL_EPHEMERIS: MessageId.EPHEMERIS,
    MessageId.POLL_RECEIVER_PARAMETERS: MessageId.NAVIGATION_PARAMETERS,
}

MESSAGE_NAMES: dict[int, str] = {
    MessageId.MEASURED_NAVIGATION: "Measured Navigation Data",
    MessageId.MEASURED_TRACKER: "Measured Tracker Data",
    MessageId.RAW_TRACKER: "Raw Tracker Data",
    MessageId.SOFTWARE_VERSION: "Software Version String",
    MessageId.CLOCK_STATUS: "Clock Status Data",
    MessageId.SUBFRAME_50BPS: "50 BPS Data",
    MessageId.CPU_THROUGHPUT: "CPU Throughput",
    MessageId.ERROR_ID: "Error ID Data",
    MessageId.COMMAND_ACK: "Command Acknowledgment",
    MessageId.COMMAND_NACK: "Command Negative Acknowledgment",
    MessageId.VISIBLE_LIST: "Visible List",
    MessageId.ALMANAC: "Almanac Data",
    MessageId.EPHEMERIS: "Ephemeris Data",
    MessageId.OK_TO_SEND: "OkToSend",
    MessageId.NAVIGATION_PARAMETERS: "Navigation Parameters",
    MessageId.NAVIGATION_LIBRARY: "Navigation Library Measurement Data",
    MessageId.GEODETIC_NAVIGATION: "Geodetic Navigation Data",
    MessageId.DEVELOPMENT_DATA: "Development Data",
    MessageId.INITIALIZE_DATA_SOURCE: "Initialize Data Source",
    MessageId.SWITCH_TO_NMEA: "Switch to NMEA Protocol",
    MessageId.SET_ALMANAC: "Set Almanac",
    MessageId.POLL_SOFTWARE_VERSION: "Poll Software Version",
    MessageId.SET_MAIN_SERIAL_PORT: "Set Main Serial Port",
    MessageId.MODE_CONTROL: "Mode Control",
    MessageId.DOP_MASK_CONTROL: "DOP Mask Control",
    MessageId.POLL_RECEIVER_PARAMETERS: "Poll Receiver Parameters",
    MessageId.POLL_CLOCK_STATUS: "Poll Clock Status",
    MessageId.POLL_ALMANAC: "Poll Almanac",
    MessageId.POLL_EPHEMERIS: "Poll Ephemeris",
}


def message_name(message_id: int | None) -> str:
    """Human-readable name for log lines."""
    if message_id is None:
        return "(empty)"
    return MESSAGE_NAMES.get(message_id, f"Unknown 0x{message_id:02X}")


def command_payload(message_id: int, body: bytes = b"") -> bytes:
    """Prefix a message body with its ID byte."""
    if not 0 <= message_id <= 0xFF:
        raise ValueError(f"Message ID must be 0-255, got {message_id}")
    return bytes([message_id]) + body


def build_command(message_id: int, payload: bytes = b"") -> bytes:
    """Build a complete frame for a message ID and its body."""
    return build_frame(command_payload(message_id, payload))


def poll_payload(command_id: int) -> tuple[bytes, int]:
    """Payload for a poll command and the ID of the reply it triggers.

    The body of every poll command is a single control byte, always 0.

    Raises:
        ValueError: If ``command_id`` is not a known poll command.
    """
    if command_id not in POLL_RESPONSES:
        known = ", ".join(f"0x{c:02X}" for c in POLL_RESPONSES)
        raise ValueError(f"Unknown poll command 0x{command_id:02X}. Valid: {known}")
    return command_payload(command_id, b"\x00"), POLL_RESPONSES[command_id]
