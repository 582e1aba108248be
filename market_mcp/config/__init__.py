"""market-mcp 設定モジュール."""

from market_mcp.config.loader import (
    DEFAULT_CONFIG_PATH,
    load_config,
    load_config_from_dict,
    load_default_config,
    save_config,
)
from market_mcp.config.schema import (
    AlertThresholds,
    ConnectorDeclaration,
    ConnectorSettings,
    ConnectorType,
    IntegrationConfig,
    IntegrationDeclaration,
    Permission,
    SecurityConfig,
    StorageRole,
)
from market_mcp.config.settings import MarketMCPSettings, get_settings


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "AlertThresholds",
    "ConnectorDeclaration",
    "ConnectorSettings",
    "ConnectorType",
    "IntegrationConfig",
    "IntegrationDeclaration",
    "MarketMCPSettings",
    "Permission",
    "SecurityConfig",
    "StorageRole",
    "get_settings",
    "load_config",
    "load_config_from_dict",
    "load_default_config",
    "save_config",
]
