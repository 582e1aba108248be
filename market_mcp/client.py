"""MCP コネクタークライアント実装.

このモジュールは宣言された MCP コネクターを並列に起動し、
権限チェック・監査・メトリクス記録付きでツールを呼び出すクライアントを提供します。
"""

import asyncio
import contextlib
import logging
import time
from collections.abc import Mapping
from enum import Enum
from typing import Any

from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client

from market_mcp.config.schema import IntegrationConfig
from market_mcp.config.settings import MarketMCPSettings, get_settings
from market_mcp.connectors.base import ConnectorSpec
from market_mcp.connectors.registry import ConnectorRegistry
from market_mcp.exceptions import ConnectorNotConnectedError, ToolNotFoundError
from market_mcp.monitoring import MetricsRecorder
from market_mcp.retry import RetryPolicy, retry_async
from market_mcp.security import AuditLogger, PermissionPolicy, split_tool_uri


class ConnectorStatus(str, Enum):
    """コネクターの接続状態."""

    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    FAILED = "failed"
    DISABLED = "disabled"


class _ConnectorSession:
    """単一コネクターの接続.

    stdio_client / ClientSession のコンテキストは専用タスク内で開閉します。
    anyio のキャンセルスコープは開いたタスクで閉じる必要があるためです。
    """

    def __init__(self, spec: ConnectorSpec, logger: logging.Logger) -> None:
        self.spec = spec
        self.session: ClientSession | None = None
        self.tools: list[Any] = []
        self._logger = logger
        self._task: asyncio.Task[None] | None = None
        self._ready: asyncio.Future[None] | None = None
        self._closing = asyncio.Event()

    @property
    def connected(self) -> bool:
        return self.session is not None

    async def start(self, timeout: float) -> None:
        """接続タスクを開始し、初期化完了まで待機.

        Raises:
            asyncio.TimeoutError: timeout 秒以内に初期化できなかった場合
            Exception: 起動・初期化に失敗した場合
        """
        self._ready = asyncio.get_running_loop().create_future()
        self._task = asyncio.create_task(self._run(), name=f"mcp-connector-{self.spec.name}")
        try:
            await asyncio.wait_for(asyncio.shield(self._ready), timeout)
        except BaseException:
            await self.stop()
            raise

    async def _run(self) -> None:
        params = StdioServerParameters(
            command=self.spec.command,
            args=self.spec.args,
            env=self.spec.env if self.spec.env else None,
        )
        assert self._ready is not None
        try:
            async with stdio_client(params) as (read, write):
                async with ClientSession(read, write) as session:
                    await session.initialize()
                    tools_result = await session.list_tools()
                    self.tools = list(tools_result.tools)
                    self.session = session
                    self._ready.set_result(None)
                    await self._closing.wait()
        except Exception as e:
            if not self._ready.done():
                self._ready.set_exception(e)
            else:
                self._logger.exception(f"Connector {self.spec.name} terminated unexpectedly")
        finally:
            self.session = None

    async def stop(self) -> None:
        """接続タスクを終了."""
        if self._task is None:
            return
        self._closing.set()
        if self._ready is not None and not self._ready.done():
            self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        # 未取得の例外警告を避ける
        if self._ready is not None and self._ready.done() and not self._ready.cancelled():
            self._ready.exception()
        self._task = None
        self.session = None


class MCPConnectorClient:
    """複数の MCP コネクターを管理するクライアント.

    Example:
        >>> client = MCPConnectorClient.from_config(config)
        >>> async with client:
        ...     client.status("github")
        ...     result = await client.call_tool("mcp://filesystem/read_file", {"path": "..."})
    """

    def __init__(
        self,
        specs: Mapping[str, ConnectorSpec],
        *,
        policy: PermissionPolicy | None = None,
        audit_logger: AuditLogger | None = None,
        recorder: MetricsRecorder | None = None,
        timeout: float = 30.0,
        retry_policy: RetryPolicy | None = None,
        user_id: str = "market-analyst",
        logger: logging.Logger | None = None,
    ) -> None:
        """クライアントを初期化.

        Args:
            specs: コネクター名 -> ConnectorSpec
            policy: 権限ポリシー (省略時は specs から作成)
            audit_logger: 監査ロガー
            recorder: メトリクス記録器
            timeout: コネクター起動タイムアウト（秒）
            retry_policy: 起動リトライ設定
            user_id: 監査ログに記録するユーザー ID
            logger: ロガーインスタンス (オプション)
        """
        self._specs = dict(specs)
        self._policy = policy or PermissionPolicy(self._specs)
        self._audit = audit_logger or AuditLogger()
        self.recorder = recorder or MetricsRecorder()
        self._timeout = timeout
        self._retry_policy = retry_policy or RetryPolicy()
        self._user_id = user_id
        self._logger = logger or logging.getLogger(__name__)

        self._connections: dict[str, _ConnectorSession] = {}
        self._errors: dict[str, str] = {}
        self._tools: dict[str, dict[str, Any]] = {}

    @classmethod
    def from_config(
        cls,
        config: IntegrationConfig,
        settings: MarketMCPSettings | None = None,
        *,
        registry: ConnectorRegistry | None = None,
        recorder: MetricsRecorder | None = None,
        logger: logging.Logger | None = None,
    ) -> "MCPConnectorClient":
        """統合設定からクライアントを作成.

        Args:
            config: 統合設定
            settings: プロセス設定 (省略時は get_settings())
            registry: コネクターレジストリ
            recorder: メトリクス記録器
            logger: ロガー

        Returns:
            MCPConnectorClient
        """
        settings = settings or get_settings()
        specs = (registry or ConnectorRegistry()).build_all(config)
        return cls(
            specs,
            policy=PermissionPolicy(specs),
            audit_logger=AuditLogger(
                enabled=settings.audit_enabled and config.security.audit_logging
            ),
            recorder=recorder,
            timeout=settings.get_connect_timeout(config),
            retry_policy=settings.get_retry_policy(config),
            user_id=settings.user_id,
            logger=logger,
        )

    @property
    def specs(self) -> dict[str, ConnectorSpec]:
        return dict(self._specs)

    async def connect(self) -> None:
        """すべての有効なコネクターに並列で接続.

        起動に失敗したコネクターは failed として記録され、例外は送出しません。
        """
        enabled = [spec for spec in self._specs.values() if spec.enabled]
        for spec in self._specs.values():
            if not spec.enabled:
                self._logger.debug(f"Skipping disabled connector: {spec.name}")

        self._logger.info(f"Connecting to {len(enabled)} MCP connectors")
        await asyncio.gather(*(self._start_connector(spec) for spec in enabled))
        self._logger.info(f"Connected to {len(self.connected_names())} MCP connectors")

    async def _open(self, spec: ConnectorSpec) -> _ConnectorSession:
        connection = _ConnectorSession(spec, self._logger)
        await connection.start(self._timeout)
        return connection

    async def _start_connector(self, spec: ConnectorSpec) -> None:
        self._errors.pop(spec.name, None)
        try:
            connection = await retry_async(
                lambda: self._open(spec),
                self._retry_policy,
                label=f"connect {spec.name}",
                logger=self._logger,
            )
        except Exception as e:
            self._errors[spec.name] = f"{type(e).__name__}: {e}"
            self._logger.exception(f"Failed to connect to connector {spec.name}")
            return

        try:
            tools = {
                spec.tool_uri(tool.name): {
                    "name": tool.name,
                    "description": tool.description,
                    "input_schema": tool.inputSchema,
                    "server": spec.name,
                }
                for tool in connection.tools
            }
        except Exception as e:
            self._errors[spec.name] = f"{type(e).__name__}: {e}"
            self._logger.exception(f"Failed to load tools from connector {spec.name}")
            await connection.stop()
            return

        self._connections[spec.name] = connection
        self._tools.update(tools)
        self._logger.info(f"Connected to {spec.name}, loaded {len(tools)} tools")

    async def disconnect(self) -> None:
        """すべてのコネクターから切断."""
        self._logger.info("Disconnecting from all MCP connectors")
        for name, connection in list(self._connections.items()):
            try:
                await connection.stop()
                self._logger.debug(f"Disconnected from connector: {name}")
            except Exception:
                self._logger.exception(f"Error disconnecting from {name}")

        self._connections.clear()
        self._tools.clear()
        self._logger.info("Disconnected from all connectors")

    def status(self, name: str) -> ConnectorStatus:
        """コネクターの接続状態を取得.

        Raises:
            KeyError: 未宣言のコネクターの場合
        """
        spec = self._specs[name]
        if not spec.enabled:
            return ConnectorStatus.DISABLED
        connection = self._connections.get(name)
        if connection is not None and connection.connected:
            return ConnectorStatus.CONNECTED
        if name in self._errors:
            return ConnectorStatus.FAILED
        return ConnectorStatus.DISCONNECTED

    def statuses(self) -> dict[str, ConnectorStatus]:
        return {name: self.status(name) for name in self._specs}

    def last_error(self, name: str) -> str | None:
        return self._errors.get(name)

    def connected_names(self) -> list[str]:
        return [name for name, item in self._connections.items() if item.connected]

    def _session(self, name: str) -> ClientSession:
        connection = self._connections.get(name)
        if connection is None or connection.session is None:
            raise ConnectorNotConnectedError(name)
        return connection.session

    def list_tools(self) -> list[str]:
        """利用可能なツール URI のリストを取得."""
        return list(self._tools.keys())

    def get_tool_info(self, tool_uri: str) -> dict[str, Any] | None:
        return self._tools.get(tool_uri)

    def get_tool_definitions(self) -> list[dict[str, Any]]:
        """LLM 用のツール定義を取得 (権限で許可されたツールのみ).

        Returns:
            ツール定義のリスト
        """
        return [
            {
                "type": "function",
                "function": {
                    "name": tool_uri,
                    "description": tool_info["description"] or "",
                    "parameters": tool_info["input_schema"],
                },
            }
            for tool_uri, tool_info in self._tools.items()
            if self._policy.is_allowed(tool_uri)
        ]

    async def call_tool(self, tool_uri: str, arguments: dict[str, Any]) -> dict[str, Any]:
        """ツールを呼び出す.

        Args:
            tool_uri: ツール URI (例: "mcp://filesystem/read_file")
            arguments: ツール引数

        Returns:
            {"success", "result" または "error", "tool", "server"}

        Raises:
            ToolNotFoundError: ツール URI が無効、または未知の場合
            ConnectorNotConnectedError: コネクターが接続されていない場合
            PermissionDeniedError: 必要な権限がない場合
        """
        server_name, tool_name = split_tool_uri(tool_uri)
        if server_name in self._specs and self.status(server_name) is not ConnectorStatus.CONNECTED:
            raise ConnectorNotConnectedError(server_name)
        if tool_uri not in self._tools:
            raise ToolNotFoundError(tool_uri)
        session = self._session(server_name)

        try:
            self._policy.check(tool_uri)
        except Exception as e:
            self._audit.log_tool_call(
                self._user_id, tool_uri, arguments, None, success=False, error=str(e)
            )
            raise

        started = time.perf_counter()
        try:
            result = await session.call_tool(tool_name, arguments)
        except Exception as e:
            latency_ms = (time.perf_counter() - started) * 1000
            self.recorder.record(server_name, latency_ms, success=False)
            self._logger.exception(f"Tool call failed: {tool_uri}")
            self._audit.log_tool_call(
                self._user_id, tool_uri, arguments, None, success=False, error=str(e)
            )
            return {
                "success": False,
                "error": f"Tool call failed: {e}",
                "tool": tool_name,
                "server": server_name,
            }

        latency_ms = (time.perf_counter() - started) * 1000
        if result.isError:
            error = _content_text(result.content) or "Tool reported an error"
            self.recorder.record(server_name, latency_ms, success=False)
            self._audit.log_tool_call(
                self._user_id, tool_uri, arguments, None, success=False, error=error
            )
            return {
                "success": False,
                "error": error,
                "tool": tool_name,
                "server": server_name,
            }

        self.recorder.record(server_name, latency_ms, success=True)
        self._audit.log_tool_call(
            self._user_id, tool_uri, arguments, _content_text(result.content), success=True
        )
        return {
            "success": True,
            "result": result.content,
            "tool": tool_name,
            "server": server_name,
        }

    async def ping(self, name: str) -> float:
        """コネクターに ping を送信.

        Returns:
            往復時間 (ミリ秒)

        Raises:
            ConnectorNotConnectedError: コネクターが接続されていない場合
        """
        session = self._session(name)
        started = time.perf_counter()
        await session.send_ping()
        return (time.perf_counter() - started) * 1000

    async def __aenter__(self) -> "MCPConnectorClient":
        """非同期コンテキストマネージャーのエントリー."""
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        """非同期コンテキストマネージャーの終了."""
        await self.disconnect()


def _content_text(content: list[Any]) -> str:
    """ツール結果からテキスト部分を連結."""
    return "\n".join(item.text for item in content if getattr(item, "type", None) == "text")
