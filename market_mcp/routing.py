"""ストレージルーティング.

統合宣言の storage ヒント (primary / persistent / versioned) に従って、
データをどのコネクターに保存するかを解決します。
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from market_mcp.client import MCPConnectorClient
from market_mcp.config.schema import IntegrationConfig, StorageRole
from market_mcp.connectors.base import ConnectorSpec
from market_mcp.connectors.registry import store_call
from market_mcp.exceptions import (
    IntegrationDisabledError,
    IntegrationNotFoundError,
    MarketMCPError,
    RoutingError,
)


@dataclass(frozen=True)
class Route:
    """ルーティング表の 1 行."""

    integration: str
    role: str
    connector: str
    connector_type: str

    def to_dict(self) -> dict[str, str]:
        return {
            "integration": self.integration,
            "role": self.role,
            "connector": self.connector,
            "type": self.connector_type,
        }


class StorageRouter:
    """統合ごとのストレージルーター."""

    def __init__(
        self,
        config: IntegrationConfig,
        specs: Mapping[str, ConnectorSpec],
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._config = config
        self._specs = dict(specs)
        self._logger = logger or logging.getLogger(__name__)

    def route(self, integration: str, role: StorageRole | str) -> str:
        """統合と役割からコネクター名を解決.

        Args:
            integration: 統合名 (例: "marketAnalysis")
            role: ストレージ役割

        Returns:
            コネクター名

        Raises:
            IntegrationNotFoundError: 統合が未宣言の場合
            IntegrationDisabledError: 統合が無効の場合
            RoutingError: 役割がルーティングされていない場合
        """
        declaration = self._config.integrations.get(integration)
        if declaration is None:
            raise IntegrationNotFoundError(integration)
        if not declaration.enabled:
            raise IntegrationDisabledError(integration)

        try:
            storage_role = StorageRole(role)
        except ValueError as e:
            msg = f"Unknown storage role: {role}"
            raise RoutingError(msg) from e

        connector = declaration.storage.get(storage_role)
        if connector is None:
            msg = f"Integration {integration} has no {storage_role.value} storage"
            raise RoutingError(msg)
        return connector

    def routes(self) -> list[Route]:
        """全統合のルーティング表を取得 (無効な統合も含む)."""
        table = []
        for name, declaration in self._config.integrations.items():
            for role, connector in declaration.storage.items():
                spec = self._specs.get(connector)
                table.append(
                    Route(
                        integration=name,
                        role=role.value,
                        connector=connector,
                        connector_type=spec.type if spec else "unknown",
                    )
                )
        return table

    async def store(
        self,
        client: MCPConnectorClient,
        integration: str,
        role: StorageRole | str,
        path: str,
        content: str,
        message: str | None = None,
    ) -> dict[str, Any]:
        """役割に対応するコネクターへドキュメントを保存.

        Args:
            client: 接続済みクライアント
            integration: 統合名
            role: ストレージ役割
            path: 保存先の相対パス
            content: 内容
            message: 変更メッセージ (省略時は自動生成)

        Returns:
            client.call_tool() の結果
        """
        connector = self.route(integration, role)
        spec = self._specs.get(connector)
        if spec is None:
            msg = f"Connector {connector} is not built"
            raise RoutingError(msg)

        tool_name, arguments = store_call(
            spec, path, content, message or f"Update {path} ({integration})"
        )
        self._logger.info(f"Storing {path} for {integration} via {connector}/{tool_name}")
        return await client.call_tool(spec.tool_uri(tool_name), arguments)

    async def store_all(
        self,
        client: MCPConnectorClient,
        integration: str,
        path: str,
        content: str,
        message: str | None = None,
    ) -> dict[str, dict[str, Any]]:
        """ルーティングされたすべての役割へ保存.

        同じコネクターを共有する役割は一度だけ書き込みます。
        ある役割の保存に失敗しても残りの役割への保存は続行し、
        失敗した役割には {"success": False, "error": ...} を返します。

        Returns:
            役割名 -> 結果

        Raises:
            IntegrationNotFoundError: 統合が未宣言の場合
            IntegrationDisabledError: 統合が無効の場合
        """
        declaration = self._config.integrations.get(integration)
        if declaration is None:
            raise IntegrationNotFoundError(integration)
        if not declaration.enabled:
            raise IntegrationDisabledError(integration)

        results: dict[str, dict[str, Any]] = {}
        written: dict[str, dict[str, Any]] = {}
        for role, connector in declaration.storage.items():
            if connector in written:
                results[role.value] = written[connector]
                continue
            try:
                result = await self.store(client, integration, role, path, content, message)
            except MarketMCPError as e:
                self._logger.warning(
                    f"Failed to store {path} for {integration}/{role.value} via {connector}: {e}"
                )
                result = {"success": False, "error": str(e), "server": connector}
            written[connector] = result
            results[role.value] = result
        return results
