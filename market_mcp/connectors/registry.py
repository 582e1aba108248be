"""コネクターレジストリ.

コネクター種別からビルダーへの対応を管理します。
"""

import logging
from typing import Any

from market_mcp.config.schema import IntegrationConfig
from market_mcp.connectors.base import ConnectorBuilder, ConnectorSpec
from market_mcp.connectors.builtin import FilesystemConnector, GitHubConnector, MemoryConnector
from market_mcp.exceptions import ConnectorError, ConnectorNotSupportedError


class ConnectorRegistry:
    """コネクター種別 -> ビルダーのレジストリ.

    Example:
        >>> registry = ConnectorRegistry()
        >>> specs = registry.build_all(config)
        >>> specs["github"].args
        ['-y', '@modelcontextprotocol/server-github']
    """

    def __init__(self, *, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger(__name__)
        self._builders: dict[str, ConnectorBuilder] = {}
        for builder in (GitHubConnector(), MemoryConnector(), FilesystemConnector()):
            self.register(builder.type, builder)

    def register(self, connector_type: str, builder: ConnectorBuilder) -> None:
        """ビルダーを登録 (既存の登録は上書き)."""
        self._builders[connector_type] = builder

    def get(self, connector_type: str) -> ConnectorBuilder:
        """ビルダーを取得.

        Raises:
            ConnectorNotSupportedError: 未登録の種別の場合
        """
        builder = self._builders.get(connector_type)
        if builder is None:
            raise ConnectorNotSupportedError(connector_type)
        return builder

    def types(self) -> list[str]:
        return sorted(self._builders)

    def build_all(self, config: IntegrationConfig) -> dict[str, ConnectorSpec]:
        """設定中のすべてのコネクター仕様を作成.

        Args:
            config: 統合設定

        Returns:
            コネクター名 -> ConnectorSpec
        """
        specs: dict[str, ConnectorSpec] = {}
        for name, declaration in config.mcp_servers.items():
            builder = self.get(declaration.type.value)
            specs[name] = builder.build(name, declaration)
            self._logger.debug(
                f"Built connector {name} ({declaration.type.value}): "
                f"{specs[name].command} {' '.join(specs[name].args)}"
            )
        return specs


def store_call(
    spec: ConnectorSpec,
    path: str,
    content: str,
    message: str,
) -> tuple[str, dict[str, Any]]:
    """コネクター仕様に対応するドキュメント保存ツール呼び出しを作成.

    Raises:
        ConnectorError: 仕様にビルダーがない場合
    """
    if spec.builder is None:
        msg = f"Connector {spec.name} has no builder"
        raise ConnectorError(msg)
    return spec.builder.store_call(spec, path, content, message)
