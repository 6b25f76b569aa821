"""Exception hierarchy for mcp-doctor.

All exceptions inherit from McpDoctorError (single catch point).
Messages are written to be shown as-is -- clear, actionable, no stack traces.
"""

from __future__ import annotations


class McpDoctorError(Exception):
    """Base exception for all mcp-doctor errors."""


class ConfigReadError(McpDoctorError):
    """Error reading or validating a server config file or doctor options."""


class ServerNotFoundError(McpDoctorError):
    """Server name not found in config file."""


class ConnectionFailedError(McpDoctorError):
    """Could not open or initialize a session with the target server."""


class ToolCallError(McpDoctorError):
    """The target server reported an error result for a tool call."""


class RegistryError(McpDoctorError):
    """Invalid diagnostic test registration."""
