"""Rynn API - plugin-based HTTP API host."""

__version__ = "0.1.0"
