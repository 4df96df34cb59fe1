"""Command line interface for the Linkerd adapter."""
