"""Adapter services."""
