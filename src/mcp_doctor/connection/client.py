"""Open MCP sessions with target servers and expose them as McpClientPort."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, AsyncExitStack, asynccontextmanager
from typing import Any

import httpx
from mcp.client.session import ClientSession
from mcp.client.sse import sse_client
from mcp.client.stdio import StdioServerParameters, stdio_client
from mcp.client.streamable_http import streamablehttp_client
from mcp.types import InitializeResult

from mcp_doctor.connection.base import HttpReachabilityPort
from mcp_doctor.errors import ConnectionFailedError, ToolCallError
from mcp_doctor.models import (
    Capability,
    HttpServerConfig,
    InstalledServer,
    ReachabilityResult,
    ServerConfig,
    ServerInfo,
    Transport,
)

logger = logging.getLogger(__name__)


class SessionClient:
    """McpClientPort adapter over an initialized ``mcp.ClientSession``."""

    def __init__(
        self,
        session: ClientSession,
        init_result: InitializeResult,
        transport: Transport,
    ) -> None:
        self._session = session
        self._init = init_result
        self._transport = transport

    @property
    def server_info(self) -> ServerInfo:
        return ServerInfo(
            name=self._init.serverInfo.name,
            version=self._init.serverInfo.version,
            transport=self._transport,
            protocol_version=str(self._init.protocolVersion),
        )

    @property
    def declared_capabilities(self) -> frozenset[Capability] | None:
        caps = self._init.capabilities
        return frozenset(c for c in Capability if getattr(caps, c.value, None) is not None)

    @property
    def raw_capabilities(self) -> dict[str, Any]:
        return self._init.capabilities.model_dump(exclude_none=True)

    async def ping(self) -> object:
        return await self._session.send_ping()

    async def list_tools(self) -> Any:
        return await self._session.list_tools()

    async def list_resources(self) -> Any:
        return await self._session.list_resources()

    async def list_prompts(self) -> Any:
        return await self._session.list_prompts()

    async def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> Any:
        """Call a tool; a result flagged ``isError`` is raised as ToolCallError."""
        result = await self._session.call_tool(name, arguments or {})
        if result.isError:
            text = " ".join(
                getattr(block, "text", "") for block in result.content if hasattr(block, "text")
            ).strip()
            raise ToolCallError(text or f"Tool '{name}' returned an error result")
        return result

    async def read_resource(self, uri: str) -> Any:
        return await self._session.read_resource(uri)  # type: ignore[arg-type]

    async def get_prompt(self, name: str, arguments: dict[str, str] | None = None) -> Any:
        return await self._session.get_prompt(name, arguments or {})


class HttpReachabilityChecker:
    """Validates HTTP MCP server reachability via HEAD -- no session.

    401/403 are treated as reachable (OAuth-gated servers).
    5xx and connection errors are failures.
    Always returns a result -- never raises.
    """

    def __init__(self, http_client: httpx.AsyncClient) -> None:
        self._http = http_client

    async def check_reachability(
        self,
        url: str,
        *,
        timeout_seconds: float = 10,
    ) -> ReachabilityResult:
        try:
            resp = await self._http.head(url, timeout=float(timeout_seconds))
            if resp.status_code < 500:
                return ReachabilityResult(success=True, url=url, status_code=resp.status_code)
            return ReachabilityResult(
                success=False,
                url=url,
                status_code=resp.status_code,
                error=(
                    f"Server responded with HTTP {resp.status_code}. "
                    "May be temporarily unavailable."
                ),
            )
        except httpx.ConnectError:
            return ReachabilityResult(
                success=False,
                url=url,
                error=f"Cannot reach {url}. Server may be down or require VPN.",
            )
        except httpx.TimeoutException:
            return ReachabilityResult(
                success=False,
                url=url,
                error=f"Timeout connecting to {url} after {timeout_seconds:g}s.",
            )
        except Exception as exc:
            return ReachabilityResult(
                success=False,
                url=url,
                error=f"Unexpected error checking {url}: {type(exc).__name__}",
            )


class DefaultServerConnector:
    """Adapter for ServerConnectorPort backed by the ``mcp`` SDK transports."""

    def __init__(self, reachability: HttpReachabilityPort | None = None) -> None:
        self._reachability = reachability

    def connect(
        self,
        server: InstalledServer,
        *,
        timeout_ms: int,
    ) -> AbstractAsyncContextManager[SessionClient]:
        return self._connect(server, timeout_ms)

    @asynccontextmanager
    async def _connect(
        self, server: InstalledServer, timeout_ms: int
    ) -> AsyncIterator[SessionClient]:
        stack = AsyncExitStack()
        try:
            client = await self._open(stack, server, timeout_ms)
        except BaseException:
            await _close_quietly(stack, server.name)
            raise

        try:
            yield client
        finally:
            await _close_quietly(stack, server.name)

    async def _open(
        self,
        stack: AsyncExitStack,
        server: InstalledServer,
        timeout_ms: int,
    ) -> SessionClient:
        config = server.config
        if isinstance(config, HttpServerConfig):
            await self._preflight(config.url, timeout_ms)

        try:
            streams = await stack.enter_async_context(_open_streams(config))
            session = await stack.enter_async_context(ClientSession(streams[0], streams[1]))
            init_result = await asyncio.wait_for(session.initialize(), timeout=timeout_ms / 1000)
        except TimeoutError as exc:
            raise ConnectionFailedError(
                f"Server '{server.name}' did not complete initialization within {timeout_ms}ms. "
                "Check that the command exists and the server speaks MCP on this transport."
            ) from exc
        except FileNotFoundError as exc:
            raise ConnectionFailedError(
                f"Command not found: {exc.filename}. Is the server installed?"
            ) from exc
        except Exception as exc:
            raise ConnectionFailedError(f"{type(exc).__name__}: {exc}") from exc

        logger.debug(
            "Connected to '%s' (%s, protocol %s)",
            server.name,
            config.transport,
            init_result.protocolVersion,
        )
        return SessionClient(session, init_result, config.transport)

    async def _preflight(self, url: str, timeout_ms: int) -> None:
        timeout_seconds = timeout_ms / 1000
        if self._reachability is not None:
            result = await self._reachability.check_reachability(
                url, timeout_seconds=timeout_seconds
            )
        else:
            async with httpx.AsyncClient(follow_redirects=True) as http_client:
                result = await HttpReachabilityChecker(http_client).check_reachability(
                    url, timeout_seconds=timeout_seconds
                )
        if not result.success:
            raise ConnectionFailedError(result.error)


def _open_streams(config: ServerConfig | HttpServerConfig) -> AbstractAsyncContextManager[Any]:
    if isinstance(config, HttpServerConfig):
        headers = config.headers or None
        if config.transport_type == "sse":
            return sse_client(config.url, headers=headers)
        return streamablehttp_client(config.url, headers=headers)

    params = StdioServerParameters(
        command=config.command,
        args=config.args,
        env=config.env or None,
    )
    return stdio_client(params)


async def _close_quietly(stack: AsyncExitStack, server_name: str) -> None:
    """Release the session; teardown errors are logged, never raised."""
    try:
        await stack.aclose()
    except Exception:
        logger.warning("Error while disconnecting from '%s'", server_name, exc_info=True)
