"""コネクターのヘルスチェック.

接続済みのすべてのコネクターに並列で ping を送り、結果を集約します。
"""

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from market_mcp.client import ConnectorStatus, MCPConnectorClient


@dataclass
class ConnectorHealth:
    """コネクター単位のヘルスチェック結果."""

    name: str
    status: ConnectorStatus
    latency_ms: float | None = None
    error: str | None = None
    checked_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status.value,
            "latency_ms": round(self.latency_ms, 2) if self.latency_ms is not None else None,
            "error": self.error,
            "checked_at": self.checked_at.isoformat(),
        }


@dataclass
class HealthReport:
    """ヘルスチェック結果の集約."""

    connectors: list[ConnectorHealth]

    @property
    def healthy(self) -> bool:
        """無効化されたものを除くすべてのコネクターが接続済みか."""
        return all(
            item.status is ConnectorStatus.CONNECTED
            for item in self.connectors
            if item.status is not ConnectorStatus.DISABLED
        )

    def get(self, name: str) -> ConnectorHealth | None:
        return next((item for item in self.connectors if item.name == name), None)

    def summary(self) -> dict[str, int]:
        counts = Counter(item.status.value for item in self.connectors)
        return {status.value: counts.get(status.value, 0) for status in ConnectorStatus}

    def to_dict(self) -> dict[str, Any]:
        return {
            "healthy": self.healthy,
            "summary": self.summary(),
            "connectors": [item.to_dict() for item in self.connectors],
        }


class HealthChecker:
    """ヘルスチェッカー.

    Example:
        >>> checker = HealthChecker(client, timeout=5.0)
        >>> report = await checker.check_all()
        >>> report.healthy
        True
    """

    def __init__(
        self,
        client: MCPConnectorClient,
        *,
        timeout: float = 5.0,
        logger: logging.Logger | None = None,
    ) -> None:
        self._client = client
        self._timeout = timeout
        self._logger = logger or logging.getLogger(__name__)

    async def check(self, name: str) -> ConnectorHealth:
        """単一コネクターをチェック."""
        status = self._client.status(name)
        if status is not ConnectorStatus.CONNECTED:
            return ConnectorHealth(name=name, status=status, error=self._client.last_error(name))

        try:
            latency = await asyncio.wait_for(self._client.ping(name), self._timeout)
        except asyncio.TimeoutError:
            self._logger.warning(f"Health check timed out for {name} after {self._timeout}s")
            return ConnectorHealth(
                name=name,
                status=ConnectorStatus.FAILED,
                error=f"ping timed out after {self._timeout}s",
            )
        except Exception as e:
            self._logger.warning(f"Health check failed for {name}: {type(e).__name__}: {e}")
            return ConnectorHealth(
                name=name, status=ConnectorStatus.FAILED, error=f"{type(e).__name__}: {e}"
            )
        return ConnectorHealth(name=name, status=ConnectorStatus.CONNECTED, latency_ms=latency)

    async def check_all(self) -> HealthReport:
        """すべてのコネクターを並列にチェック."""
        names = list(self._client.specs)
        results = await asyncio.gather(*(self.check(name) for name in names))
        report = HealthReport(connectors=list(results))
        self._logger.info(f"Health check complete: {report.summary()}")
        return report
