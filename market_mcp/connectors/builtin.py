"""組み込みコネクタービルダー.

公式 MCP サーバー (``@modelcontextprotocol/server-*``) を起動する
github / memory / filesystem コネクターを提供します。
"""

import os
from pathlib import Path
from typing import Any

from market_mcp.config.schema import ConnectorSettings, ConnectorType
from market_mcp.connectors.base import ConnectorBuilder, ConnectorSpec
from market_mcp.exceptions import ConnectorError


GITHUB_TOKEN_VARIABLE = "GITHUB_PERSONAL_ACCESS_TOKEN"


class GitHubConnector(ConnectorBuilder):
    """GitHub コネクター (バージョン管理)."""

    type = ConnectorType.GITHUB.value
    package = "@modelcontextprotocol/server-github"
    read_tools = frozenset(
        {
            "get_file_contents",
            "search_repositories",
            "search_code",
            "search_issues",
            "list_issues",
            "get_issue",
            "list_commits",
            "list_pull_requests",
            "get_pull_request",
        }
    )
    write_tools = frozenset(
        {
            "create_or_update_file",
            "push_files",
            "create_issue",
            "update_issue",
            "add_issue_comment",
            "create_branch",
            "create_pull_request",
            "create_repository",
            "fork_repository",
        }
    )

    def default_env(self, settings: ConnectorSettings) -> dict[str, str]:
        token = os.environ.get(settings.token_env)
        if token is None:
            return {}
        return {GITHUB_TOKEN_VARIABLE: token}

    def missing_credentials(self, settings: ConnectorSettings) -> list[str]:
        if GITHUB_TOKEN_VARIABLE in settings.env or settings.token_env in os.environ:
            return []
        return [settings.token_env]

    def store_call(
        self,
        spec: ConnectorSpec,
        path: str,
        content: str,
        message: str,
    ) -> tuple[str, dict[str, Any]]:
        if not spec.settings.repository:
            msg = f"Connector {spec.name} has no repository configured"
            raise ConnectorError(msg)
        owner, repo = spec.settings.repository.split("/")
        return "create_or_update_file", {
            "owner": owner,
            "repo": repo,
            "path": path,
            "content": content,
            "message": message,
            "branch": spec.settings.branch,
        }


class MemoryConnector(ConnectorBuilder):
    """メモリコネクター (ナレッジグラフ型のインメモリストア)."""

    type = ConnectorType.MEMORY.value
    package = "@modelcontextprotocol/server-memory"
    read_tools = frozenset({"read_graph", "search_nodes", "open_nodes"})
    write_tools = frozenset(
        {
            "create_entities",
            "create_relations",
            "add_observations",
            "delete_entities",
            "delete_observations",
            "delete_relations",
        }
    )

    def store_call(
        self,
        spec: ConnectorSpec,
        path: str,
        content: str,
        message: str,
    ) -> tuple[str, dict[str, Any]]:
        return "create_entities", {
            "entities": [
                {
                    "name": path,
                    "entityType": "document",
                    "observations": [content],
                }
            ]
        }


class FilesystemConnector(ConnectorBuilder):
    """ファイルシステムコネクター.

    basePath を絶対パスに解決し、サーバーの許可ディレクトリとして渡します。
    """

    type = ConnectorType.FILESYSTEM.value
    package = "@modelcontextprotocol/server-filesystem"
    read_tools = frozenset(
        {
            "read_file",
            "read_text_file",
            "read_media_file",
            "read_multiple_files",
            "list_directory",
            "list_directory_with_sizes",
            "directory_tree",
            "search_files",
            "get_file_info",
            "list_allowed_directories",
        }
    )
    write_tools = frozenset({"write_file", "edit_file", "create_directory", "move_file"})

    @staticmethod
    def resolve_base(settings: ConnectorSettings) -> Path:
        return Path(settings.base_path).expanduser().resolve()

    def default_args(self, settings: ConnectorSettings) -> list[str]:
        return ["-y", self.package, str(self.resolve_base(settings))]

    def store_call(
        self,
        spec: ConnectorSpec,
        path: str,
        content: str,
        message: str,
    ) -> tuple[str, dict[str, Any]]:
        base = self.resolve_base(spec.settings)
        target = (base / path).resolve()
        if not target.is_relative_to(base):
            msg = f"Path escapes filesystem base directory: {path}"
            raise ConnectorError(msg)
        return "write_file", {"path": str(target), "content": content}
