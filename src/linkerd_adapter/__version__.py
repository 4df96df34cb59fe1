"""Version information for linkerd_adapter."""

__version__ = "0.3.0"
