"""統合設定スキーマ.

このモジュールは、マーケット分析アシスタントと MCP コネクターの統合設定
(JSON) を表す Pydantic モデルを提供します。

トップレベルのキー:
    - mcpServers: コネクター宣言 (github / memory / filesystem)
    - integrations: 統合宣言 (marketAnalysis / riskManagement / reporting)
    - security: 暗号化・認証・監査ポリシー
    - performance: キャッシュ・監視・接続設定

使用例:
    >>> config = IntegrationConfig.model_validate(data)
    >>> config.connector("github").type
    <ConnectorType.GITHUB: 'github'>
"""

import re
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from market_mcp.exceptions import ConfigValidationError


DURATION_PATTERN = re.compile(r"^\s*(0*[1-9]\d*)\s*([smhdw])\s*$")
SIZE_PATTERN = re.compile(r"^\s*(\d+)\s*(B|KB|MB|GB|TB)\s*$", re.IGNORECASE)

_SIZE_UNITS = {
    "B": 1,
    "KB": 1024,
    "MB": 1024**2,
    "GB": 1024**3,
    "TB": 1024**4,
}


def parse_size(value: str) -> int:
    """サイズ文字列をバイト数に変換.

    Args:
        value: サイズ文字列 (例: "512MB")

    Returns:
        バイト数

    Raises:
        ValueError: 形式が不正な場合
    """
    match = SIZE_PATTERN.match(value)
    if not match:
        msg = f"Invalid size: {value!r} (expected e.g. '512MB')"
        raise ValueError(msg)
    amount, unit = match.groups()
    return int(amount) * _SIZE_UNITS[unit.upper()]


class _CamelModel(BaseModel):
    """camelCase エイリアスとフィールド名の両方を受け付ける基底モデル."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class ConnectorType(str, Enum):
    """コネクター種別."""

    GITHUB = "github"
    MEMORY = "memory"
    FILESYSTEM = "filesystem"


class Permission(str, Enum):
    """コネクター権限."""

    READ = "read"
    WRITE = "write"


class StorageRole(str, Enum):
    """ストレージルーティングの役割.

    - primary: 作業中のデータ
    - persistent: 永続化データ
    - versioned: バージョン管理されたデータ
    """

    PRIMARY = "primary"
    PERSISTENT = "persistent"
    VERSIONED = "versioned"


class ConnectorSettings(_CamelModel):
    """コネクターの自由形式 config オブジェクト.

    既知のキーのみ型付けし、それ以外のキーはそのまま保持します。

    Attributes:
        enabled: コネクターが有効かどうか
        features: 宣言された機能名
        permissions: 付与された権限
        command: 起動コマンドの上書き
        args: 起動引数の上書き
        env: 追加の環境変数
        repository: GitHub リポジトリ (owner/name)
        branch: GitHub ブランチ
        token_env: GitHub トークンを保持する環境変数名
        rate_limit: GitHub のレート制限宣言
        max_size: memory の最大サイズ
        ttl: memory のデフォルト TTL (秒)
        base_path: filesystem のルートディレクトリ
        max_file_size: filesystem の最大ファイルサイズ
    """

    enabled: bool = Field(default=True, description="コネクターが有効かどうか")
    features: list[str] = Field(default_factory=list, description="機能名")
    permissions: list[Permission] = Field(
        default_factory=lambda: [Permission.READ], description="付与された権限"
    )
    command: str | None = Field(default=None, description="起動コマンド")
    args: list[str] | None = Field(default=None, description="起動引数")
    env: dict[str, str] = Field(default_factory=dict, description="環境変数")

    # github
    repository: str | None = Field(default=None, description="owner/name")
    branch: str = Field(default="main", description="ブランチ")
    token_env: str = Field(
        default="GITHUB_PERSONAL_ACCESS_TOKEN",
        alias="tokenEnv",
        description="トークン環境変数名",
    )
    rate_limit: dict[str, Any] | None = Field(default=None, alias="rateLimit")

    # memory
    max_size: str | None = Field(default=None, alias="maxSize")
    ttl: int | None = Field(default=None, ge=0, description="TTL (秒)")

    # filesystem
    base_path: str = Field(default="./data", alias="basePath")
    max_file_size: str | None = Field(default=None, alias="maxFileSize")

    @field_validator("max_size", "max_file_size")
    @classmethod
    def _check_size(cls, value: str | None) -> str | None:
        if value is not None:
            parse_size(value)
        return value

    @field_validator("repository")
    @classmethod
    def _check_repository(cls, value: str | None) -> str | None:
        if value is not None and value.count("/") != 1:
            msg = f"repository must be 'owner/name', got {value!r}"
            raise ValueError(msg)
        return value

    def size_bytes(self, key: str) -> int | None:
        """サイズ設定をバイト数で取得.

        Args:
            key: フィールド名またはエイリアス (例: "maxSize")

        Returns:
            バイト数、未設定の場合は None
        """
        field_name = {"maxSize": "max_size", "maxFileSize": "max_file_size"}.get(key, key)
        value = getattr(self, field_name, None)
        return parse_size(value) if value else None

    def has_permission(self, permission: Permission) -> bool:
        """権限が付与されているか確認."""
        return permission in self.permissions


class ConnectorDeclaration(_CamelModel):
    """コネクター宣言."""

    type: ConnectorType
    config: ConnectorSettings = Field(default_factory=ConnectorSettings)

    @property
    def enabled(self) -> bool:
        return self.config.enabled


class IntegrationDeclaration(_CamelModel):
    """統合宣言.

    Attributes:
        enabled: 統合が有効かどうか
        features: 機能名
        storage: ストレージ役割 -> コネクター名
    """

    enabled: bool = Field(default=True)
    features: list[str] = Field(default_factory=list)
    storage: dict[StorageRole, str] = Field(default_factory=dict)


class EncryptionPolicy(_CamelModel):
    enabled: bool = Field(default=False)
    algorithm: str | None = Field(default=None)
    key_rotation: str | None = Field(default=None, alias="keyRotation")

    @field_validator("key_rotation")
    @classmethod
    def _check_rotation(cls, value: str | None) -> str | None:
        if value is not None and not DURATION_PATTERN.match(value):
            msg = f"keyRotation must be a positive duration like '30d', got {value!r}"
            raise ValueError(msg)
        return value


class AuthenticationPolicy(_CamelModel):
    method: str = Field(default="token")


class SecurityConfig(_CamelModel):
    """セキュリティポリシー宣言."""

    encryption: EncryptionPolicy = Field(default_factory=EncryptionPolicy)
    authentication: AuthenticationPolicy = Field(default_factory=AuthenticationPolicy)
    audit_logging: bool = Field(default=True, alias="auditLogging")


class CachingPolicy(_CamelModel):
    strategy: str | None = Field(default=None)
    default_ttl: int | None = Field(default=None, ge=0, alias="defaultTtl")


class AlertThresholds(_CamelModel):
    """アラート閾値.

    Attributes:
        response_time_ms: 平均応答時間 (ミリ秒)
        error_rate: エラー率 (0-1)
        memory_usage: メモリ使用率 (0-1)
    """

    response_time_ms: float | None = Field(default=None, gt=0, alias="responseTimeMs")
    error_rate: float | None = Field(default=None, ge=0.0, le=1.0, alias="errorRate")
    memory_usage: float | None = Field(default=None, ge=0.0, le=1.0, alias="memoryUsage")


class MonitoringPolicy(_CamelModel):
    enabled: bool = Field(default=True)
    alert_thresholds: AlertThresholds = Field(
        default_factory=AlertThresholds, alias="alertThresholds"
    )
    notify: list[str] = Field(default_factory=list)


class ConnectionPolicy(_CamelModel):
    timeout: float | None = Field(default=None, gt=0)
    max_retries: int | None = Field(default=None, ge=1, alias="maxRetries")


class PerformanceConfig(_CamelModel):
    """パフォーマンス設定宣言."""

    caching: CachingPolicy = Field(default_factory=CachingPolicy)
    monitoring: MonitoringPolicy = Field(default_factory=MonitoringPolicy)
    connection: ConnectionPolicy = Field(default_factory=ConnectionPolicy)


class IntegrationConfig(_CamelModel):
    """統合設定のルートモデル."""

    mcp_servers: dict[str, ConnectorDeclaration] = Field(
        default_factory=dict, alias="mcpServers"
    )
    integrations: dict[str, IntegrationDeclaration] = Field(default_factory=dict)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    performance: PerformanceConfig = Field(default_factory=PerformanceConfig)

    @model_validator(mode="after")
    def _check_routing(self) -> "IntegrationConfig":
        problems = self.find_problems()
        if problems:
            raise ConfigValidationError(problems)
        return self

    def find_problems(self) -> list[str]:
        """設定の整合性問題をすべて列挙.

        Returns:
            問題の説明リスト (問題がなければ空)
        """
        problems: list[str] = []
        if not self.mcp_servers:
            problems.append("mcpServers: at least one connector must be declared")

        for name, integration in self.integrations.items():
            for role, target in integration.storage.items():
                where = f"integrations.{name}.storage.{role.value}"
                connector = self.mcp_servers.get(target)
                if connector is None:
                    problems.append(f"{where}: unknown connector '{target}'")
                    continue
                if role is StorageRole.VERSIONED and connector.type is not ConnectorType.GITHUB:
                    problems.append(
                        f"{where}: versioned data requires a github connector, "
                        f"'{target}' is {connector.type.value}"
                    )
                if role is StorageRole.PERSISTENT and connector.type is ConnectorType.MEMORY:
                    problems.append(
                        f"{where}: persistent data cannot live in memory connector '{target}'"
                    )
                if integration.enabled and not connector.enabled:
                    problems.append(f"{where}: connector '{target}' is disabled")
        return problems

    def connector(self, name: str) -> ConnectorDeclaration | None:
        return self.mcp_servers.get(name)

    def enabled_integrations(self) -> dict[str, IntegrationDeclaration]:
        return {name: item for name, item in self.integrations.items() if item.enabled}

    def to_json_dict(self) -> dict[str, Any]:
        """JSON 出力用の辞書に変換 (エイリアス使用、未設定のデフォルトは除外)."""
        return self.model_dump(by_alias=True, exclude_unset=True, mode="json")
