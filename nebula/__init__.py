"""Nebula: a single-user bookmark dashboard."""

__version__ = "0.1.0"
