"""Pytest configuration and shared fixtures."""

import copy
import json
from collections.abc import Iterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, patch

import pytest
from mcp.types import CallToolResult, ListToolsResult, TextContent, Tool

from market_mcp.config.loader import load_config_from_dict
from market_mcp.config.schema import IntegrationConfig
from market_mcp.connectors.base import ConnectorSpec
from market_mcp.connectors.registry import ConnectorRegistry


SAMPLE_CONFIG: dict[str, Any] = {
    "mcpServers": {
        "github": {
            "type": "github",
            "config": {
                "repository": "market-analysis/research-reports",
                "branch": "main",
                "features": ["version_control", "report_history"],
                "permissions": ["read", "write"],
            },
        },
        "memory": {
            "type": "memory",
            "config": {
                "features": ["market_data_cache"],
                "maxSize": "512MB",
                "ttl": 3600,
                "permissions": ["read", "write"],
            },
        },
        "filesystem": {
            "type": "filesystem",
            "config": {
                "basePath": "./data",
                "features": ["report_storage"],
                "maxFileSize": "100MB",
                "permissions": ["read", "write"],
            },
        },
    },
    "integrations": {
        "marketAnalysis": {
            "features": ["real_time_analysis", "trend_detection"],
            "storage": {"primary": "memory", "persistent": "filesystem", "versioned": "github"},
        },
        "riskManagement": {
            "features": ["portfolio_risk"],
            "storage": {"primary": "memory", "persistent": "filesystem"},
        },
        "reporting": {
            "features": ["daily_reports"],
            "formats": ["markdown", "json"],
            "storage": {"persistent": "filesystem", "versioned": "github"},
        },
    },
    "security": {
        "encryption": {"enabled": True, "algorithm": "AES-256-GCM", "keyRotation": "30d"},
        "authentication": {"method": "token"},
        "auditLogging": True,
    },
    "performance": {
        "caching": {"strategy": "write-through", "defaultTtl": 3600},
        "monitoring": {
            "enabled": True,
            "alertThresholds": {"responseTimeMs": 5000, "errorRate": 0.05, "memoryUsage": 0.85},
            "notify": ["ops@example.com"],
        },
        "connection": {"timeout": 5, "maxRetries": 1},
    },
}


@pytest.fixture
def sample_config_data(tmp_path: Path) -> dict[str, Any]:
    """サンプル設定の辞書を作成 (filesystem は tmp_path を使用).

    Returns:
        設定データの辞書
    """
    data = copy.deepcopy(SAMPLE_CONFIG)
    data["mcpServers"]["filesystem"]["config"]["basePath"] = str(tmp_path / "data")
    return data


@pytest.fixture
def sample_config(sample_config_data: dict[str, Any]) -> IntegrationConfig:
    """サンプル統合設定を作成.

    Returns:
        IntegrationConfig インスタンス
    """
    return load_config_from_dict(sample_config_data)


@pytest.fixture
def config_file(tmp_path: Path, sample_config_data: dict[str, Any]) -> Path:
    """サンプル設定を JSON ファイルに書き出す.

    Returns:
        設定ファイルパス
    """
    path = tmp_path / "market_mcp.json"
    path.write_text(json.dumps(sample_config_data), "utf-8")
    return path


@pytest.fixture
def sample_specs(sample_config: IntegrationConfig) -> dict[str, ConnectorSpec]:
    """サンプル設定のコネクター仕様を作成."""
    return ConnectorRegistry().build_all(sample_config)


class FakeSession:
    """テスト用 MCP セッション."""

    def __init__(self, tool_names: list[str]) -> None:
        self.initialize = AsyncMock()
        self.list_tools = AsyncMock(
            return_value=ListToolsResult(
                tools=[
                    Tool(name=name, description=f"{name} tool", inputSchema={"type": "object"})
                    for name in tool_names
                ]
            )
        )
        self.call_tool = AsyncMock(
            return_value=CallToolResult(content=[TextContent(type="text", text="ok")], isError=False)
        )
        self.send_ping = AsyncMock()

    async def __aenter__(self) -> "FakeSession":
        return self

    async def __aexit__(self, *args: Any) -> bool:
        return False


class FakeServers(dict):
    """起動コマンド名 -> FakeSession."""

    def add(self, command: str, tool_names: list[str]) -> FakeSession:
        self[command] = FakeSession(tool_names)
        return self[command]


@pytest.fixture
def fake_servers() -> Iterator[FakeServers]:
    """stdio_client / ClientSession をフェイクに差し替える.

    起動コマンド名 -> FakeSession の辞書を返します。
    辞書にないコマンドは起動失敗 (FileNotFoundError) になります。
    """
    sessions = FakeServers()

    @asynccontextmanager
    async def fake_stdio_client(params: Any):
        if params.command not in sessions:
            raise FileNotFoundError(params.command)
        yield params, None

    def fake_client_session(read: Any, write: Any) -> FakeSession:
        return sessions[read.command]

    with (
        patch("market_mcp.client.stdio_client", fake_stdio_client),
        patch("market_mcp.client.ClientSession", fake_client_session),
    ):
        yield sessions
