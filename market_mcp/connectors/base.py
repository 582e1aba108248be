"""コネクター基底クラス.

コネクター宣言 (type + config) を、MCP サーバーの起動仕様
(:class:`ConnectorSpec`) に変換するビルダーの基底クラスを提供します。
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from market_mcp.config.schema import ConnectorDeclaration, ConnectorSettings, Permission


NPX_COMMAND = "npx"


@dataclass
class ConnectorSpec:
    """起動可能なコネクター仕様.

    Attributes:
        name: コネクター名 (設定の mcpServers のキー)
        type: コネクター種別
        command: 実行するコマンド
        args: コマンドライン引数
        env: 環境変数
        enabled: コネクターが有効かどうか
        permissions: 付与された権限
        settings: 元の config オブジェクト
        builder: 仕様を作成したビルダー
    """

    name: str
    type: str
    command: str
    args: list[str] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)
    enabled: bool = True
    permissions: frozenset[Permission] = frozenset({Permission.READ})
    settings: ConnectorSettings = field(default_factory=ConnectorSettings)
    builder: "ConnectorBuilder | None" = field(default=None, repr=False, compare=False)

    def required_permission(self, tool_name: str) -> Permission:
        """ツールに必要な権限を取得.

        カタログにないツールは書き込みツールとして扱います。
        """
        if self.builder is not None and tool_name in self.builder.read_tools:
            return Permission.READ
        return Permission.WRITE

    def tool_uri(self, tool_name: str) -> str:
        return f"mcp://{self.name}/{tool_name}"


class ConnectorBuilder(ABC):
    """コネクタービルダー基底クラス.

    サブクラスは ``type``、ツールカタログ、デフォルト起動引数、
    ドキュメント保存ツールの対応付けを定義します。
    """

    type: str = ""
    package: str = ""
    read_tools: frozenset[str] = frozenset()
    write_tools: frozenset[str] = frozenset()

    def build(self, name: str, declaration: ConnectorDeclaration) -> ConnectorSpec:
        """宣言からコネクター仕様を作成.

        宣言に command / args があればデフォルトを上書きし、
        env はデフォルトの上にマージします。

        Args:
            name: コネクター名
            declaration: コネクター宣言

        Returns:
            ConnectorSpec
        """
        settings = declaration.config
        env = {**self.default_env(settings), **settings.env}
        return ConnectorSpec(
            name=name,
            type=self.type,
            command=settings.command or NPX_COMMAND,
            args=list(settings.args) if settings.args is not None else self.default_args(settings),
            env=env,
            enabled=settings.enabled,
            permissions=frozenset(settings.permissions),
            settings=settings,
            builder=self,
        )

    def default_args(self, settings: ConnectorSettings) -> list[str]:
        return ["-y", self.package]

    def default_env(self, settings: ConnectorSettings) -> dict[str, str]:
        return {}

    def missing_credentials(self, settings: ConnectorSettings) -> list[str]:
        """未設定の認証情報環境変数名を列挙."""
        return []

    @abstractmethod
    def store_call(
        self,
        spec: ConnectorSpec,
        path: str,
        content: str,
        message: str,
    ) -> tuple[str, dict[str, Any]]:
        """ドキュメント保存用のツール呼び出しを作成.

        Args:
            spec: コネクター仕様
            path: 保存先の相対パス
            content: 内容
            message: 変更メッセージ (バージョン管理用)

        Returns:
            (ツール名, 引数)
        """
        raise NotImplementedError
