"""Forge: container-backed Projects."""

__version__ = "0.1.0"
