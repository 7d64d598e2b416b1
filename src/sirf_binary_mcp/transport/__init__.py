"""Byte-level transports."""

from .serial_connection import SerialConnection
