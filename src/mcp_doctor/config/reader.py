"""Read MCP server config files.

All config files follow: { "mcpServers": { "<name>": { ... } } }
Only "mcpServers" is read; everything else in the file is ignored.
"""

from __future__ import annotations

import json
from pathlib import Path

from mcp_doctor.errors import ConfigReadError, ServerNotFoundError
from mcp_doctor.models import HttpServerConfig, InstalledServer, ServerConfig

_HTTP_TYPES = ("http", "sse", "streamable-http")


def read_config(config_path: Path | str) -> dict[str, object]:
    """Read a full server config file and return the raw dict.

    Unlike an MCP client config, a doctor run needs the file to exist, so a
    missing file is an error rather than an empty config.
    """
    path = Path(config_path).expanduser()
    if not path.exists():
        raise ConfigReadError(f"Configuration file not found: {path}")

    try:
        text = path.read_text(encoding="utf-8")
        if not text.strip():
            return {"mcpServers": {}}
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigReadError(f"Invalid JSON in server config {path}: {exc}") from exc
    except PermissionError as exc:
        raise ConfigReadError(f"Permission denied reading {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigReadError(f"Server config {path} must be a JSON object.")
    if "mcpServers" not in data:
        data["mcpServers"] = {}
    return data


def parse_servers(
    raw_config: dict[str, object],
    source_file: str = "",
) -> list[InstalledServer]:
    """Extract server entries from a raw config dict."""
    servers_dict = raw_config.get("mcpServers", {})
    if not isinstance(servers_dict, dict):
        return []

    result: list[InstalledServer] = []
    for name, entry in servers_dict.items():
        if not isinstance(entry, dict):
            continue

        entry_type = str(entry.get("type", "stdio"))
        if "url" in entry and entry_type in _HTTP_TYPES:
            config: ServerConfig | HttpServerConfig = HttpServerConfig(
                url=str(entry["url"]),
                transport_type="sse" if entry_type == "sse" else "http",
                headers={str(k): str(v) for k, v in dict(entry.get("headers", {})).items()},
                env=dict(entry.get("env", {})),
            )
        else:
            config = ServerConfig(
                command=str(entry.get("command", "")),
                args=[str(a) for a in entry.get("args", [])],
                env=dict(entry.get("env", {})),
            )
        result.append(InstalledServer(name=name, config=config, source_file=source_file))

    return result


def load_server_config(config_path: Path | str, server_name: str = "") -> InstalledServer:
    """Load one server entry from a config file.

    With ``server_name`` the named entry is returned. Without it the file must
    contain exactly one server.

    Raises:
        ConfigReadError: If the file is missing, invalid, empty, or ambiguous.
        ServerNotFoundError: If ``server_name`` is not in the file.
    """
    raw = read_config(config_path)
    servers = parse_servers(raw, source_file=str(config_path))

    if server_name:
        target = next((s for s in servers if s.name == server_name), None)
        if target is None:
            available = ", ".join(s.name for s in servers) or "none"
            raise ServerNotFoundError(
                f"Server '{server_name}' not found in config. Available servers: {available}"
            )
        return target

    if not servers:
        raise ConfigReadError("No servers found in configuration")
    if len(servers) > 1:
        names = ", ".join(s.name for s in servers)
        raise ConfigReadError(
            f"Multiple servers found in config: {names}. Please specify a server name."
        )
    return servers[0]
