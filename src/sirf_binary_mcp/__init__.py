"""MCP server and protocol stack for SiRF binary GPS receivers."""

__version__ = "0.1.0"
