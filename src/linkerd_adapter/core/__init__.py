"""Core adapter infrastructure."""
