"""Linkerd mesh adapter - discovery-driven manifest lifecycle for Kubernetes."""

from linkerd_adapter.__version__ import __version__

__all__ = ["__version__"]
