"""Tests for server config reading and server selection."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from mcp_doctor.config.reader import load_server_config, parse_servers, read_config
from mcp_doctor.errors import ConfigReadError, ServerNotFoundError
from mcp_doctor.models import HttpServerConfig, ServerConfig, Transport


class TestReadConfig:
    def test_missing_file_raises(self, tmp_path: Path):
        with pytest.raises(ConfigReadError, match="not found"):
            read_config(tmp_path / "nonexistent.json")

    def test_empty_file_returns_empty(self, tmp_path: Path):
        f = tmp_path / "config.json"
        f.write_text("")
        assert read_config(f) == {"mcpServers": {}}

    def test_invalid_json_raises(self, tmp_path: Path):
        f = tmp_path / "config.json"
        f.write_text("{broken json")
        with pytest.raises(ConfigReadError, match="Invalid JSON"):
            read_config(f)

    def test_non_object_raises(self, tmp_path: Path):
        f = tmp_path / "config.json"
        f.write_text("[1, 2, 3]")
        with pytest.raises(ConfigReadError, match="JSON object"):
            read_config(f)

    def test_other_keys_preserved(self, tmp_path: Path):
        f = tmp_path / "config.json"
        f.write_text(json.dumps({"mcpServers": {}, "otherKey": 1}))
        assert read_config(f)["otherKey"] == 1


class TestParseServers:
    def test_parses_stdio_entries(self):
        raw = {
            "mcpServers": {
                "pg": {"command": "npx", "args": ["-y", "pg-mcp"], "env": {"DB": "url"}},
            }
        }
        servers = parse_servers(raw, source_file="/path/config.json")

        assert len(servers) == 1
        assert servers[0].name == "pg"
        assert servers[0].config == ServerConfig(
            command="npx", args=["-y", "pg-mcp"], env={"DB": "url"}
        )
        assert servers[0].source_file == "/path/config.json"

    def test_parses_http_and_sse_entries(self):
        raw = {
            "mcpServers": {
                "remote": {"type": "http", "url": "https://x.example/mcp"},
                "legacy": {"type": "sse", "url": "https://y.example/sse", "headers": {"A": 1}},
            }
        }
        servers = {s.name: s for s in parse_servers(raw)}

        assert isinstance(servers["remote"].config, HttpServerConfig)
        assert servers["remote"].config.transport == Transport.STREAMABLE_HTTP
        assert servers["legacy"].config.transport == Transport.SSE
        assert servers["legacy"].config.headers == {"A": "1"}

    def test_skips_non_dict_entries(self):
        assert parse_servers({"mcpServers": {"bad": "not-a-dict"}}) == []

    def test_non_dict_servers_returns_empty(self):
        assert parse_servers({"mcpServers": ["a"]}) == []


class TestLoadServerConfig:
    def test_single_server_without_name(self, write_config):
        path = write_config({"only": {"command": "node", "args": ["server.js"]}})
        server = load_server_config(path)
        assert server.name == "only"
        assert server.config.command == "node"

    def test_named_server(self, write_config):
        path = write_config({"a": {"command": "a"}, "b": {"command": "b"}})
        assert load_server_config(path, "b").config.command == "b"

    def test_unknown_name_lists_available(self, write_config):
        path = write_config({"a": {"command": "a"}, "b": {"command": "b"}})
        with pytest.raises(ServerNotFoundError, match="Available servers: a, b"):
            load_server_config(path, "c")

    def test_multiple_servers_without_name_raises(self, write_config):
        path = write_config({"a": {"command": "a"}, "b": {"command": "b"}})
        with pytest.raises(ConfigReadError, match="specify a server name"):
            load_server_config(path)

    def test_no_servers_raises(self, write_config):
        path = write_config({})
        with pytest.raises(ConfigReadError, match="No servers found"):
            load_server_config(path)
