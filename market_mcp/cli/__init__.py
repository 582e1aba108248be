"""market-mcp CLI."""

from market_mcp.cli.main import cli, main


__all__ = ["cli", "main"]
