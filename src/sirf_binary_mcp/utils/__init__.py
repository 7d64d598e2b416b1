"""Shared helpers."""

from .checksum import checksum, checksum_hex
