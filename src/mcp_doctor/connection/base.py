"""Ports: the client capability surface consumed by diagnostic tests."""

from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from typing import Any, Protocol

from mcp_doctor.models import Capability, InstalledServer, ReachabilityResult, ServerInfo


class McpClientPort(Protocol):
    """A connected, initialized session with the target server.

    Every request method raises on transport or protocol errors and returns
    the server's payload otherwise.
    """

    @property
    def server_info(self) -> ServerInfo:
        """Identity and negotiated protocol version from the initialize result."""
        ...

    @property
    def declared_capabilities(self) -> frozenset[Capability] | None:
        """Capabilities the server declared at initialization, or None if unknown."""
        ...

    @property
    def raw_capabilities(self) -> dict[str, Any]:
        """The declared capabilities object as a plain dict (empty if unknown)."""
        ...

    async def ping(self) -> object: ...

    async def list_tools(self) -> Any: ...

    async def list_resources(self) -> Any: ...

    async def list_prompts(self) -> Any: ...

    async def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> Any: ...

    async def read_resource(self, uri: str) -> Any: ...

    async def get_prompt(self, name: str, arguments: dict[str, str] | None = None) -> Any: ...


class ServerConnectorPort(Protocol):
    """Port for opening a session with a configured server."""

    def connect(
        self,
        server: InstalledServer,
        *,
        timeout_ms: int,
    ) -> AbstractAsyncContextManager[McpClientPort]:
        """Spawn or dial the server, run the initialize handshake, yield a client.

        Raises ConnectionFailedError on entry when the session cannot be opened.
        The session is closed when the context exits.
        """
        ...


class HttpReachabilityPort(Protocol):
    """Port for checking HTTP MCP server reachability without opening a session."""

    async def check_reachability(
        self,
        url: str,
        *,
        timeout_seconds: float = 10,
    ) -> ReachabilityResult: ...
