"""統合ステータスレポート.

設定概要、ストレージルーティング、ヘルスチェック、メトリクスとアラート、
鍵ローテーション状況をまとめたレポートを作成し、JSON または Markdown で出力します。
reporting 統合のストレージルートを使ってレポートを保存することもできます。
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from market_mcp.client import MCPConnectorClient
from market_mcp.config.schema import IntegrationConfig
from market_mcp.connectors.base import ConnectorSpec
from market_mcp.connectors.registry import ConnectorRegistry
from market_mcp.health import HealthChecker, HealthReport
from market_mcp.monitoring import AlertEvaluator, MetricsRecorder
from market_mcp.routing import StorageRouter
from market_mcp.security import KeyRotationSchedule, resolve_credentials


REPORTING_INTEGRATION = "reporting"
FORMATS = {"json": "json", "markdown": "md"}


@dataclass
class IntegrationReport:
    """統合ステータスレポート."""

    generated_at: datetime
    connectors: list[dict[str, Any]]
    integrations: list[dict[str, Any]]
    routes: list[dict[str, str]]
    security: dict[str, Any]
    performance: dict[str, Any]
    health: dict[str, Any] | None = None
    metrics: list[dict[str, Any]] = field(default_factory=list)
    alerts: list[dict[str, Any]] = field(default_factory=list)
    key_rotation: dict[str, Any] | None = None
    credential_warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "generated_at": self.generated_at.isoformat(),
            "connectors": self.connectors,
            "integrations": self.integrations,
            "routes": self.routes,
            "security": self.security,
            "performance": self.performance,
            "health": self.health,
            "metrics": self.metrics,
            "alerts": self.alerts,
            "key_rotation": self.key_rotation,
            "credential_warnings": self.credential_warnings,
        }


class ReportGenerator:
    """統合ステータスレポートの生成器.

    Example:
        >>> generator = ReportGenerator(config, client=client)
        >>> report = await generator.generate()
        >>> print(generator.render(report, "markdown"))
    """

    def __init__(
        self,
        config: IntegrationConfig,
        *,
        client: MCPConnectorClient | None = None,
        health: HealthReport | None = None,
        recorder: MetricsRecorder | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        """初期化.

        Args:
            config: 統合設定
            client: 接続済みクライアント (ヘルスチェックとメトリクスに使用)
            health: 実行済みのヘルスチェック結果 (指定時はチェックを省略)
            recorder: メトリクス記録器 (省略時はクライアントのもの)
            logger: ロガー
        """
        self._config = config
        self._client = client
        self._health = health
        self._recorder = recorder or (client.recorder if client is not None else None)
        self._logger = logger or logging.getLogger(__name__)

    def _specs(self) -> dict[str, ConnectorSpec]:
        if self._client is not None:
            return self._client.specs
        return ConnectorRegistry().build_all(self._config)

    async def generate(
        self,
        *,
        last_rotated: datetime | None = None,
        memory_usage: float | None = None,
    ) -> IntegrationReport:
        """レポートを生成.

        Args:
            last_rotated: 最後に鍵をローテーションした日時
            memory_usage: メモリ使用率 (0-1)

        Returns:
            IntegrationReport
        """
        config = self._config
        specs = self._specs()

        health = self._health
        if health is None and self._client is not None:
            health = await HealthChecker(self._client).check_all()

        metrics = []
        alerts = []
        monitoring = config.performance.monitoring
        if self._recorder is not None:
            snapshot = self._recorder.snapshot()
            metrics = [snapshot[name].to_dict() for name in sorted(snapshot)]
            if monitoring.enabled:
                evaluator = AlertEvaluator(monitoring.alert_thresholds)
                alerts = [alert.to_dict() for alert in evaluator.evaluate(snapshot, memory_usage)]

        report = IntegrationReport(
            generated_at=datetime.now(UTC),
            connectors=[
                {
                    "name": name,
                    "type": declaration.type.value,
                    "enabled": declaration.enabled,
                    "features": declaration.config.features,
                    "permissions": sorted(p.value for p in declaration.config.permissions),
                }
                for name, declaration in config.mcp_servers.items()
            ],
            integrations=[
                {
                    "name": name,
                    "enabled": declaration.enabled,
                    "features": declaration.features,
                    "storage": {role.value: target for role, target in declaration.storage.items()},
                }
                for name, declaration in config.integrations.items()
            ],
            routes=[route.to_dict() for route in StorageRouter(config, specs).routes()],
            security={
                "encryption_enabled": config.security.encryption.enabled,
                "algorithm": config.security.encryption.algorithm,
                "key_rotation": config.security.encryption.key_rotation,
                "authentication": config.security.authentication.method,
                "audit_logging": config.security.audit_logging,
            },
            performance={
                "cache_strategy": config.performance.caching.strategy,
                "default_ttl": config.performance.caching.default_ttl,
                "monitoring_enabled": monitoring.enabled,
                "alert_thresholds": monitoring.alert_thresholds.model_dump(
                    by_alias=True, exclude_none=True
                ),
            },
            health=health.to_dict() if health is not None else None,
            metrics=metrics,
            alerts=alerts,
            key_rotation=self._key_rotation(last_rotated),
            credential_warnings=resolve_credentials(specs),
        )
        self._logger.info(
            f"Generated integration report: {len(report.connectors)} connectors, "
            f"{len(report.alerts)} alerts"
        )
        return report

    def _key_rotation(self, last_rotated: datetime | None) -> dict[str, Any] | None:
        schedule = KeyRotationSchedule.from_config(self._config.security)
        if schedule is None:
            return None
        status: dict[str, Any] = {"interval": self._config.security.encryption.key_rotation}
        if last_rotated is not None:
            status["last_rotated"] = last_rotated.isoformat()
            status["next_rotation"] = schedule.next_rotation(last_rotated).isoformat()
            status["due"] = schedule.is_due(last_rotated)
        return status

    def render(self, report: IntegrationReport, fmt: str = "markdown") -> str:
        """レポートを文字列に変換.

        Raises:
            ValueError: 未対応の形式の場合
        """
        if fmt == "json":
            return json.dumps(report.to_dict(), indent=2, ensure_ascii=False)
        if fmt == "markdown":
            return _render_markdown(report)
        msg = f"Unsupported report format: {fmt} (expected one of {sorted(FORMATS)})"
        raise ValueError(msg)

    async def publish(
        self,
        report: IntegrationReport,
        router: StorageRouter,
        client: MCPConnectorClient,
        fmt: str = "markdown",
    ) -> dict[str, Any]:
        """reporting 統合のストレージルートにレポートを保存.

        Returns:
            {"path": 保存パス, "results": 役割名 -> 結果}
        """
        content = self.render(report, fmt)
        stamp = report.generated_at.strftime("%Y%m%dT%H%M%S")
        path = f"reports/integration-{stamp}.{FORMATS[fmt]}"
        results = await router.store_all(
            client,
            REPORTING_INTEGRATION,
            path,
            content,
            message=f"Integration report {stamp}",
        )
        failed = [role for role, result in results.items() if not result.get("success")]
        if failed:
            self._logger.warning(f"Report {path} failed to store for roles: {failed}")
        return {"path": path, "results": results}


def _table(headers: list[str], rows: list[list[Any]]) -> list[str]:
    lines = [
        "| " + " | ".join(headers) + " |",
        "| " + " | ".join("---" for _ in headers) + " |",
    ]
    for row in rows:
        lines.append("| " + " | ".join("" if cell is None else str(cell) for cell in row) + " |")
    return lines


def _render_markdown(report: IntegrationReport) -> str:
    lines = [
        "# Market MCP Integration Report",
        "",
        f"Generated at: {report.generated_at.isoformat()}",
        "",
        "## Connectors",
        "",
    ]
    lines += _table(
        ["Name", "Type", "Enabled", "Permissions", "Features"],
        [
            [c["name"], c["type"], c["enabled"], ", ".join(c["permissions"]), ", ".join(c["features"])]
            for c in report.connectors
        ],
    )
    lines += ["", "## Storage Routing", ""]
    lines += _table(
        ["Integration", "Role", "Connector", "Type"],
        [[r["integration"], r["role"], r["connector"], r["type"]] for r in report.routes],
    )

    if report.health is not None:
        lines += ["", "## Health", "", f"Healthy: {report.health['healthy']}", ""]
        lines += _table(
            ["Connector", "Status", "Latency (ms)", "Error"],
            [
                [h["name"], h["status"], h["latency_ms"], h["error"]]
                for h in report.health["connectors"]
            ],
        )

    if report.metrics:
        lines += ["", "## Metrics", ""]
        lines += _table(
            ["Connector", "Calls", "Errors", "Avg latency (ms)", "Error rate"],
            [
                [m["connector"], m["calls"], m["errors"], m["avg_latency_ms"], m["error_rate"]]
                for m in report.metrics
            ],
        )

    lines += ["", "## Alerts", ""]
    if report.alerts:
        lines += [
            f"- **{a['severity']}** {a['metric']}"
            + (f" on {a['connector']}" if a["connector"] else "")
            + f": {a['value']} > {a['threshold']}"
            for a in report.alerts
        ]
    else:
        lines.append("No alerts.")

    lines += ["", "## Security", ""]
    lines += [f"- {key}: {value}" for key, value in report.security.items()]
    if report.key_rotation is not None:
        lines += [f"- key_rotation.{key}: {value}" for key, value in report.key_rotation.items()]
    if report.credential_warnings:
        lines += ["", "### Credential warnings", ""]
        lines += [f"- {warning}" for warning in report.credential_warnings]

    return "\n".join(lines) + "\n"
