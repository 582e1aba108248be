"""Custom exceptions for market-mcp."""


class MarketMCPError(Exception):
    """Base exception for all market-mcp errors."""

    severity = "error"


class ConfigError(MarketMCPError):
    """Base exception for configuration-related errors."""


class ConfigNotFoundError(ConfigError):
    """Raised when a configuration file does not exist."""

    def __init__(self, path: str) -> None:
        """Initialize ConfigNotFoundError.

        Args:
            path: The path of the missing configuration file.
        """
        super().__init__(f"Configuration file not found: {path}")
        self.path = path


class ConfigValidationError(ConfigError):
    """Raised when a configuration document is invalid."""

    def __init__(self, problems: list[str]) -> None:
        """Initialize ConfigValidationError.

        Args:
            problems: Every problem found while validating.
        """
        joined = "; ".join(problems)
        super().__init__(f"Invalid configuration: {joined}")
        self.problems = problems


class ConnectorError(MarketMCPError):
    """Base exception for connector-related errors."""


class ConnectorNotSupportedError(ConnectorError):
    """Raised when no builder is registered for a connector type."""

    def __init__(self, connector_type: str) -> None:
        """Initialize ConnectorNotSupportedError.

        Args:
            connector_type: The unsupported connector type.
        """
        super().__init__(f"Connector type not supported: {connector_type}")
        self.connector_type = connector_type


class ConnectorNotConnectedError(ConnectorError):
    """Raised when a tool is called on a connector that is not connected."""

    def __init__(self, name: str) -> None:
        """Initialize ConnectorNotConnectedError.

        Args:
            name: The connector name.
        """
        super().__init__(f"Connector not connected: {name}")
        self.name = name


class ToolNotFoundError(ConnectorError):
    """Raised when a tool URI is invalid or unknown."""

    severity = "warning"

    def __init__(self, tool_uri: str) -> None:
        """Initialize ToolNotFoundError.

        Args:
            tool_uri: The tool URI that was not found.
        """
        super().__init__(f"Tool not found: {tool_uri}")
        self.tool_uri = tool_uri


class PermissionDeniedError(MarketMCPError):
    """Raised when a tool call needs a permission the connector lacks."""

    severity = "critical"

    def __init__(self, tool_uri: str, permission: str) -> None:
        """Initialize PermissionDeniedError.

        Args:
            tool_uri: The rejected tool URI.
            permission: The missing permission.
        """
        super().__init__(f"Permission '{permission}' required for {tool_uri}")
        self.tool_uri = tool_uri
        self.permission = permission


class RoutingError(MarketMCPError):
    """Base exception for storage routing errors."""


class IntegrationNotFoundError(RoutingError):
    """Raised when an integration is not declared."""

    def __init__(self, integration: str) -> None:
        """Initialize IntegrationNotFoundError.

        Args:
            integration: The integration name.
        """
        super().__init__(f"Integration not found: {integration}")
        self.integration = integration


class IntegrationDisabledError(RoutingError):
    """Raised when routing through a disabled integration."""

    severity = "warning"

    def __init__(self, integration: str) -> None:
        """Initialize IntegrationDisabledError.

        Args:
            integration: The integration name.
        """
        super().__init__(f"Integration disabled: {integration}")
        self.integration = integration
