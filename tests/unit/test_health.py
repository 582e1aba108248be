"""ヘルスチェックのユニットテスト."""

import asyncio
from typing import Any

from market_mcp.client import ConnectorStatus, MCPConnectorClient
from market_mcp.config.schema import Permission
from market_mcp.connectors import GitHubConnector, MemoryConnector
from market_mcp.connectors.base import ConnectorSpec
from market_mcp.health import ConnectorHealth, HealthChecker, HealthReport
from market_mcp.retry import RetryPolicy


def make_specs(*, memory_enabled: bool = True) -> dict[str, ConnectorSpec]:
    return {
        "github": ConnectorSpec(
            name="github",
            type="github",
            command="github-server",
            permissions=frozenset({Permission.READ}),
            builder=GitHubConnector(),
        ),
        "memory": ConnectorSpec(
            name="memory",
            type="memory",
            command="memory-server",
            enabled=memory_enabled,
            builder=MemoryConnector(),
        ),
    }


async def connect(specs: dict[str, ConnectorSpec]) -> MCPConnectorClient:
    client = MCPConnectorClient(
        specs, timeout=1.0, retry_policy=RetryPolicy(max_attempts=1, wait_min=0)
    )
    await client.connect()
    return client


class TestHealthChecker:
    """HealthChecker のテストスイート."""

    async def test_all_connected(self, fake_servers: Any) -> None:
        """すべて接続済みなら healthy になることをテスト."""
        fake_servers.add("github-server", ["list_issues"])
        fake_servers.add("memory-server", ["read_graph"])
        client = await connect(make_specs())
        try:
            report = await HealthChecker(client).check_all()
        finally:
            await client.disconnect()

        assert report.healthy
        assert report.get("github").status == "connected"
        assert report.get("github").latency_ms is not None
        assert report.summary()["connected"] == 2
        fake_servers["memory-server"].send_ping.assert_awaited_once()

    async def test_failed_start(self, fake_servers: Any) -> None:
        """起動に失敗したコネクターがエラー付きで報告されることをテスト."""
        fake_servers.add("github-server", ["list_issues"])
        client = await connect(make_specs())
        try:
            report = await HealthChecker(client).check_all()
        finally:
            await client.disconnect()

        memory = report.get("memory")
        assert memory.status is ConnectorStatus.FAILED
        assert "memory-server" in memory.error
        assert not report.healthy

    async def test_ping_failure(self, fake_servers: Any) -> None:
        """ping 失敗が failed として報告されることをテスト."""
        fake_servers.add("github-server", ["list_issues"])
        fake_servers.add("memory-server", [])
        fake_servers["github-server"].send_ping.side_effect = BrokenPipeError("closed")
        client = await connect(make_specs())
        try:
            report = await HealthChecker(client).check_all()
        finally:
            await client.disconnect()

        github = report.get("github")
        assert github.status is ConnectorStatus.FAILED
        assert "BrokenPipeError" in github.error

    async def test_ping_timeout(self, fake_servers: Any) -> None:
        """ping タイムアウトが failed として報告されることをテスト."""

        async def hang() -> None:
            await asyncio.sleep(10)

        fake_servers.add("github-server", [])
        fake_servers.add("memory-server", [])
        fake_servers["github-server"].send_ping.side_effect = hang
        client = await connect(make_specs())
        try:
            report = await HealthChecker(client, timeout=0.05).check_all()
        finally:
            await client.disconnect()

        assert report.get("github").status is ConnectorStatus.FAILED
        assert "timed out" in report.get("github").error
        assert report.get("memory").status is ConnectorStatus.CONNECTED

    async def test_disabled_does_not_affect_health(self, fake_servers: Any) -> None:
        """無効なコネクターは healthy 判定から除外されることをテスト."""
        fake_servers.add("github-server", [])
        client = await connect(make_specs(memory_enabled=False))
        try:
            report = await HealthChecker(client).check_all()
        finally:
            await client.disconnect()

        assert report.get("memory").status is ConnectorStatus.DISABLED
        assert report.healthy


class TestHealthReport:
    """HealthReport のテスト."""

    def test_to_dict(self) -> None:
        """辞書変換をテスト."""
        report = HealthReport(
            connectors=[
                ConnectorHealth(name="github", status=ConnectorStatus.CONNECTED, latency_ms=1.234),
                ConnectorHealth(name="memory", status=ConnectorStatus.DISCONNECTED),
            ]
        )
        data = report.to_dict()
        assert data["healthy"] is False
        assert data["summary"] == {"connected": 1, "disconnected": 1, "failed": 0, "disabled": 0}
        assert data["connectors"][0]["latency_ms"] == 1.23
        assert data["connectors"][1]["status"] == "disconnected"
