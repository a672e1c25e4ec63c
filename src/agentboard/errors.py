"""Custom exception types for agentboard."""


class AgentboardError(Exception):
    """Base exception for all agentboard errors."""


class ConfigError(AgentboardError):
    """Raised when a configuration value is missing or invalid."""
