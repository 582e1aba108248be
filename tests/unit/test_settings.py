"""プロセス設定とリトライ機構のユニットテスト."""

from unittest.mock import AsyncMock

import pytest

from market_mcp.config.schema import IntegrationConfig
from market_mcp.config.settings import MarketMCPSettings
from market_mcp.retry import RetryPolicy, retry_async


class TestMarketMCPSettings:
    """MarketMCPSettings のテスト."""

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """デフォルト値をテスト."""
        monkeypatch.delenv("MARKET_MCP_MAX_RETRIES", raising=False)
        settings = MarketMCPSettings(_env_file=None)
        assert settings.max_retries == 3
        assert settings.audit_enabled is True

    def test_env_prefix(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """MARKET_MCP_ プレフィックスの環境変数が読まれることをテスト."""
        monkeypatch.setenv("MARKET_MCP_MAX_RETRIES", "5")
        monkeypatch.setenv("MARKET_MCP_USER_ID", "risk-desk")
        settings = MarketMCPSettings(_env_file=None)
        assert settings.max_retries == 5
        assert settings.user_id == "risk-desk"

    def test_config_overrides_connection(self, sample_config: IntegrationConfig) -> None:
        """統合設定の connection が既定値を上書きすることをテスト."""
        settings = MarketMCPSettings(_env_file=None, max_retries=4, connect_timeout=60)
        assert settings.get_retry_policy().max_attempts == 4
        assert settings.get_retry_policy(sample_config).max_attempts == 1
        assert settings.get_connect_timeout() == 60
        assert settings.get_connect_timeout(sample_config) == 5


class TestRetry:
    """retry_async のテスト."""

    def test_wait_time_backoff(self) -> None:
        """待機時間が指数的に増え、上限で頭打ちになることをテスト."""
        policy = RetryPolicy(wait_min=1.0, wait_multiplier=2.0, wait_max=3.0)
        assert [policy.wait_time(n) for n in (1, 2, 3)] == [1.0, 2.0, 3.0]

    async def test_retries_until_success(self) -> None:
        """失敗後にリトライして成功することをテスト."""
        func = AsyncMock(side_effect=[OSError("boom"), "ok"])
        result = await retry_async(func, RetryPolicy(max_attempts=3, wait_min=0))
        assert result == "ok"
        assert func.await_count == 2

    async def test_raises_last_error(self) -> None:
        """最大試行回数を超えると最後の例外が送出されることをテスト."""
        func = AsyncMock(side_effect=[OSError("first"), OSError("second")])
        with pytest.raises(OSError, match="second"):
            await retry_async(func, RetryPolicy(max_attempts=2, wait_min=0))
