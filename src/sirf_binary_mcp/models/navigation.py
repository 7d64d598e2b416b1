"""Measured Navigation Data (message 0x02) model.

Only the leading position/velocity block is decoded::

    +----+-------+-------+-------+--------+--------+--------+
    | ID |   X   |   Y   |   Z   |   VX   |   VY   |   VZ   |
    | u8 |  i32  |  i32  |  i32  |  i16   |  i16   |  i16   |
    +----+-------+-------+-------+--------+--------+--------+

Positions are ECEF metres, velocities ECEF m/s scaled by 8. Fields are read
little-endian, matching the host tooling this server replaces.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field

NAVIGATION_STRUCT = struct.Struct("<Biiihhh")
VELOCITY_SCALE = 8.0


@dataclass
class MeasuredNavigationData:
    """ECEF position and velocity from a Measured Navigation Data message."""

    x: int = 0
    y: int = 0
    z: int = 0
    vx: int = 0
    vy: int = 0
    vz: int = 0
    extra: bytes = field(default=b"", repr=False)

    @property
    def velocity_ms(self) -> tuple[float, float, float]:
        return (
            self.vx / VELOCITY_SCALE,
            self.vy / VELOCITY_SCALE,
            self.vz / VELOCITY_SCALE,
        )

    def to_dict(self) -> dict:
        vx, vy, vz = self.velocity_ms
        return {
            "x_m": self.x,
            "y_m": self.y,
            "z_m": self.z,
            "vx_ms": vx,
            "vy_ms": vy,
            "vz_ms": vz,
            "extra_hex": self.extra.hex(" ") if self.extra else "",
        }

    @classmethod
    def from_bytes(cls, payload: bytes) -> MeasuredNavigationData:
        """Decode a full payload, including the leading ID byte.

        Raises:
            ValueError: If the payload is shorter than the position/velocity block.
        """
        if len(payload) < NAVIGATION_STRUCT.size:
            raise ValueError(
                f"Navigation payload must be at least {NAVIGATION_STRUCT.size} "
                f"bytes, got {len(payload)}"
            )
        _, x, y, z, vx, vy, vz = NAVIGATION_STRUCT.unpack_from(payload)
        return cls(
            x=x, y=y, z=z, vx=vx, vy=vy, vz=vz,
            extra=payload[NAVIGATION_STRUCT.size:],
        )
