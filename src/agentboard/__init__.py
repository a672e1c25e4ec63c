"""agentboard: call-center agent performance dashboard."""

__version__ = "0.1.0"
