"""market-mcp - マーケット分析アシスタント向け MCP コネクター統合.

github / memory / filesystem の MCP コネクターを統合設定 (JSON) から起動し、
ストレージルーティング、権限チェック、ヘルスチェック、監視を提供します。

使用例:
    >>> from market_mcp import MCPConnectorClient, load_config
    >>> config = load_config("market_mcp.json")
    >>> async with MCPConnectorClient.from_config(config) as client:
    ...     client.status("github")
"""

__version__ = "0.1.0"

from market_mcp.client import ConnectorStatus, MCPConnectorClient
from market_mcp.config import IntegrationConfig, get_settings, load_config
from market_mcp.error_handler import ErrorHandler
from market_mcp.exceptions import MarketMCPError
from market_mcp.health import HealthChecker, HealthReport
from market_mcp.reporting import ReportGenerator
from market_mcp.routing import StorageRouter


__all__ = [
    "ConnectorStatus",
    "ErrorHandler",
    "HealthChecker",
    "HealthReport",
    "IntegrationConfig",
    "MCPConnectorClient",
    "MarketMCPError",
    "ReportGenerator",
    "StorageRouter",
    "__version__",
    "get_settings",
    "load_config",
]
