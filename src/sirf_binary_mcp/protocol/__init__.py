"""Protocol layer: framing, checksum validation, routing, commands, and parsing."""

from .framing import (
    FrameDecoder,
    FrameValidationError,
    Message,
    build_frame,
    validate_frame_body,
)
from .router import MessageRouter, MessageTimeout
from .commands import MessageId, build_command
