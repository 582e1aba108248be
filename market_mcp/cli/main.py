"""market-mcp CLI メインエントリーポイント.

統合設定の検証・表示、コネクターのヘルスチェック、
ステータスレポートの生成を行うコマンドを提供します。
"""

import asyncio
import json
import logging
import sys
from datetime import datetime
from pathlib import Path

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from market_mcp import __version__
from market_mcp.client import ConnectorStatus, MCPConnectorClient
from market_mcp.config.loader import load_config
from market_mcp.config.schema import IntegrationConfig
from market_mcp.config.settings import get_settings
from market_mcp.connectors.registry import ConnectorRegistry
from market_mcp.error_handler import ErrorHandler
from market_mcp.exceptions import ConfigError, ConfigValidationError
from market_mcp.health import HealthChecker, HealthReport
from market_mcp.reporting import FORMATS, ReportGenerator
from market_mcp.routing import StorageRouter
from market_mcp.security import KeyRotationSchedule


# Rich Console インスタンス
console = Console()

STATUS_STYLES = {
    ConnectorStatus.CONNECTED.value: "green",
    ConnectorStatus.DISCONNECTED.value: "yellow",
    ConnectorStatus.FAILED.value: "red",
    ConnectorStatus.DISABLED.value: "dim",
}

config_argument = click.argument("config_path", type=click.Path(path_type=Path))


class MarketMCPCLI(click.Group):
    """market-mcp CLI グループクラス."""

    def format_help(self, ctx: click.Context, formatter: click.HelpFormatter) -> None:
        """ヘルプメッセージをフォーマット."""
        title = Text("market-mcp", style="bold cyan")
        subtitle = Text("Market analysis MCP connector integration", style="dim")

        console.print()
        console.print(Panel(title, subtitle=subtitle, border_style="cyan"))
        console.print()

        super().format_help(ctx, formatter)


def _load(config_path: Path) -> IntegrationConfig:
    """設定を読み込み、失敗時はエラーを表示して終了."""
    try:
        return load_config(config_path)
    except ConfigValidationError as e:
        console.print(f"[red]✗ Invalid configuration: {config_path}[/red]")
        for problem in e.problems:
            console.print(f"  [red]-[/red] {problem}")
        sys.exit(1)
    except ConfigError as e:
        console.print(f"[red]✗ {e}[/red]")
        sys.exit(1)


def _parse_datetime(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value)
    except ValueError as e:
        msg = f"Invalid ISO datetime: {value}"
        raise click.BadParameter(msg) from e


@click.group(cls=MarketMCPCLI)
@click.version_option(version=__version__, prog_name="market-mcp")
@click.option("--verbose", "-v", is_flag=True, help="詳細な出力を表示")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """market-mcp - Market analysis MCP connector integration.

    使用例:

        \b
        # 設定を検証
        $ market-mcp validate market_mcp.json

        \b
        # コネクターのヘルスチェック
        $ market-mcp health market_mcp.json
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["console"] = console
    settings = get_settings()
    if verbose:
        logging.getLogger("market_mcp").setLevel(logging.DEBUG)
    ctx.obj["settings"] = settings


@cli.command()
@config_argument
def validate(config_path: Path) -> None:
    """統合設定を検証."""
    config = _load(config_path)
    console.print(
        f"[green]✓ Configuration is valid:[/green] {len(config.mcp_servers)} connectors, "
        f"{len(config.integrations)} integrations"
    )


@cli.command()
@config_argument
def show(config_path: Path) -> None:
    """コネクターと統合の宣言を表示."""
    config = _load(config_path)

    connectors = Table(title="Connectors")
    connectors.add_column("Name", style="cyan")
    connectors.add_column("Type")
    connectors.add_column("Enabled")
    connectors.add_column("Permissions")
    connectors.add_column("Features")
    for name, declaration in config.mcp_servers.items():
        connectors.add_row(
            name,
            declaration.type.value,
            "yes" if declaration.enabled else "no",
            ", ".join(p.value for p in declaration.config.permissions),
            ", ".join(declaration.config.features),
        )
    console.print(connectors)

    integrations = Table(title="Integrations")
    integrations.add_column("Name", style="cyan")
    integrations.add_column("Enabled")
    integrations.add_column("Features")
    integrations.add_column("Storage")
    for name, declaration in config.integrations.items():
        integrations.add_row(
            name,
            "yes" if declaration.enabled else "no",
            ", ".join(declaration.features),
            ", ".join(f"{role.value}={target}" for role, target in declaration.storage.items()),
        )
    console.print(integrations)


@cli.command()
@config_argument
def routes(config_path: Path) -> None:
    """ストレージルーティング表を表示."""
    config = _load(config_path)
    router = StorageRouter(config, ConnectorRegistry().build_all(config))

    table = Table(title="Storage Routing")
    table.add_column("Integration", style="cyan")
    table.add_column("Role")
    table.add_column("Connector")
    table.add_column("Type")
    for route in router.routes():
        table.add_row(route.integration, route.role, route.connector, route.connector_type)
    console.print(table)


async def _run_health(config: IntegrationConfig, ctx: click.Context) -> HealthReport:
    handler = ErrorHandler(recipients=config.performance.monitoring.notify)
    client = MCPConnectorClient.from_config(config, ctx.obj["settings"])
    async with handler.guard({"command": "health"}):
        async with client:
            return await HealthChecker(client).check_all()


@cli.command()
@config_argument
@click.option("--json", "json_output", is_flag=True, help="JSON 形式で出力")
@click.pass_context
def health(ctx: click.Context, config_path: Path, json_output: bool) -> None:
    """コネクターに接続してヘルスチェックを実行."""
    config = _load(config_path)
    report = asyncio.run(_run_health(config, ctx))

    if json_output:
        click.echo(json.dumps(report.to_dict(), indent=2, ensure_ascii=False))
    else:
        table = Table(title="Connector Health")
        table.add_column("Connector", style="cyan")
        table.add_column("Status")
        table.add_column("Latency (ms)", justify="right")
        table.add_column("Error")
        for item in report.connectors:
            style = STATUS_STYLES.get(item.status.value, "")
            table.add_row(
                item.name,
                f"[{style}]{item.status.value}[/{style}]",
                f"{item.latency_ms:.1f}" if item.latency_ms is not None else "-",
                item.error or "",
            )
        console.print(table)

    if not report.healthy:
        sys.exit(1)


async def _run_report(
    config: IntegrationConfig,
    ctx: click.Context,
    *,
    fmt: str,
    offline: bool,
    publish: bool,
    last_rotated: datetime | None,
) -> str:
    if offline:
        generator = ReportGenerator(config)
        report = await generator.generate(last_rotated=last_rotated)
        return generator.render(report, fmt)

    handler = ErrorHandler(recipients=config.performance.monitoring.notify)
    client = MCPConnectorClient.from_config(config, ctx.obj["settings"])
    async with handler.guard({"command": "report"}):
        async with client:
            generator = ReportGenerator(config, client=client)
            report = await generator.generate(last_rotated=last_rotated)
            if publish:
                router = StorageRouter(config, client.specs)
                published = await generator.publish(report, router, client, fmt)
                console.print(f"[green]✓ Published report:[/green] {published['path']}")
            return generator.render(report, fmt)


@cli.command()
@config_argument
@click.option(
    "--format",
    "-f",
    "fmt",
    type=click.Choice(sorted(FORMATS)),
    default="markdown",
    help="出力形式",
)
@click.option(
    "--output",
    "-o",
    "output_file",
    type=click.Path(path_type=Path),
    help="出力ファイルパス (指定しない場合は標準出力)",
)
@click.option("--offline", is_flag=True, help="コネクターに接続せずに生成")
@click.option("--publish", is_flag=True, help="reporting 統合のストレージに保存")
@click.option("--last-rotated", help="最後に鍵をローテーションした日時 (ISO 8601)")
@click.pass_context
def report(
    ctx: click.Context,
    config_path: Path,
    fmt: str,
    output_file: Path | None,
    offline: bool,
    publish: bool,
    last_rotated: str | None,
) -> None:
    """統合ステータスレポートを生成."""
    if offline and publish:
        msg = "--publish requires connectors; remove --offline"
        raise click.UsageError(msg)
    config = _load(config_path)
    text = asyncio.run(
        _run_report(
            config,
            ctx,
            fmt=fmt,
            offline=offline,
            publish=publish,
            last_rotated=_parse_datetime(last_rotated) if last_rotated else None,
        )
    )

    if output_file:
        output_file.parent.mkdir(parents=True, exist_ok=True)
        output_file.write_text(text, "utf-8")
        console.print(f"[green]✓ Report written to {output_file}[/green]")
    else:
        click.echo(text)


@cli.command()
@config_argument
@click.option("--last-rotated", required=True, help="最後に鍵をローテーションした日時 (ISO 8601)")
def rotation(config_path: Path, last_rotated: str) -> None:
    """鍵ローテーションの期限を確認."""
    config = _load(config_path)
    schedule = KeyRotationSchedule.from_config(config.security)
    if schedule is None:
        console.print("[yellow]Key rotation is not configured[/yellow]")
        return

    last = _parse_datetime(last_rotated)
    next_rotation = schedule.next_rotation(last)
    if schedule.is_due(last):
        console.print(f"[red]Key rotation overdue since {next_rotation.isoformat()}[/red]")
    else:
        console.print(f"[green]Next key rotation: {next_rotation.isoformat()}[/green]")


def main() -> None:
    """CLI エントリーポイント."""
    cli(obj={})


if __name__ == "__main__":
    main()
