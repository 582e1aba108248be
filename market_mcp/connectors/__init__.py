"""MCP コネクターモジュール."""

from market_mcp.connectors.base import ConnectorBuilder, ConnectorSpec
from market_mcp.connectors.builtin import FilesystemConnector, GitHubConnector, MemoryConnector
from market_mcp.connectors.registry import ConnectorRegistry, store_call


__all__ = [
    "ConnectorBuilder",
    "ConnectorRegistry",
    "ConnectorSpec",
    "FilesystemConnector",
    "GitHubConnector",
    "MemoryConnector",
    "store_call",
]
