# -*- coding: utf-8 -*-
"""market-mcp プロセス設定.

このモジュールは、環境変数または .env ファイルからプロセス設定を読み込みます。
統合設定 (JSON) とは別に、ログや接続の既定値を管理します。

使用例:
    ```python
    from market_mcp.config import get_settings

    settings = get_settings()
    print(settings.config_path)  # "market_mcp.json"
    ```

環境変数:
    - MARKET_MCP_CONFIG_PATH: 統合設定ファイルパス
    - MARKET_MCP_LOG_LEVEL: ログレベル（DEBUG/INFO/WARNING/ERROR）
    - MARKET_MCP_CONNECT_TIMEOUT: コネクター起動タイムアウト（秒）
    - MARKET_MCP_MAX_RETRIES: コネクター起動の最大試行回数
    - MARKET_MCP_AUDIT_ENABLED: 監査ログの有効化
    - MARKET_MCP_USER_ID: 監査ログに記録するユーザー ID
"""

import logging
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from market_mcp.config.schema import IntegrationConfig
from market_mcp.retry import RetryPolicy


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class MarketMCPSettings(BaseSettings):
    """market-mcp 設定.

    Attributes:
        config_path: 統合設定ファイルパス
        log_level: ログレベル
        connect_timeout: コネクター起動タイムアウト（秒）
        max_retries: コネクター起動の最大試行回数
        retry_wait_min: リトライ最小待機時間（秒）
        retry_wait_multiplier: リトライ待機時間の倍率
        retry_wait_max: リトライ最大待機時間（秒）
        audit_enabled: 監査ログの有効化
        user_id: 監査ログのユーザー ID
    """

    config_path: str = Field(default="market_mcp.json", description="統合設定ファイルパス")

    # ログ設定
    log_level: str = Field(default="INFO", description="ログレベル")

    # 接続設定
    connect_timeout: float = Field(default=30.0, gt=0, description="起動タイムアウト（秒）")
    max_retries: int = Field(default=3, ge=1, description="最大試行回数")
    retry_wait_min: float = Field(default=1.0, ge=0.0, description="最小待機時間（秒）")
    retry_wait_multiplier: float = Field(default=2.0, ge=0.0, description="待機時間の倍率")
    retry_wait_max: float = Field(default=30.0, ge=0.0, description="最大待機時間（秒）")

    # 監査設定
    audit_enabled: bool = Field(default=True, description="監査ログの有効化")
    user_id: str = Field(default="market-analyst", description="監査ログのユーザー ID")

    # Pydantic設定
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="MARKET_MCP_",
        case_sensitive=False,
        extra="ignore",
    )

    def configure_logging(self) -> None:
        """ログ設定を適用."""
        logging.basicConfig(
            level=getattr(logging, self.log_level.upper(), logging.INFO),
            format=LOG_FORMAT,
        )

    def get_retry_policy(self, config: IntegrationConfig | None = None) -> RetryPolicy:
        """リトライ設定を取得.

        統合設定の performance.connection.maxRetries があれば優先します。

        Args:
            config: 統合設定 (オプション)

        Returns:
            RetryPolicy
        """
        max_attempts = self.max_retries
        if config is not None and config.performance.connection.max_retries:
            max_attempts = config.performance.connection.max_retries
        return RetryPolicy(
            max_attempts=max_attempts,
            wait_min=self.retry_wait_min,
            wait_multiplier=self.retry_wait_multiplier,
            wait_max=self.retry_wait_max,
        )

    def get_connect_timeout(self, config: IntegrationConfig | None = None) -> float:
        """起動タイムアウトを取得 (統合設定の値を優先)."""
        if config is not None and config.performance.connection.timeout:
            return config.performance.connection.timeout
        return self.connect_timeout


@lru_cache
def get_settings() -> MarketMCPSettings:
    """設定シングルトンを取得.

    Returns:
        market-mcp 設定
    """
    settings = MarketMCPSettings()
    settings.configure_logging()
    return settings
