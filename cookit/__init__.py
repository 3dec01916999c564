"""Cookit - ingredient-based recipe recommendation server."""

__version__ = "1.0.0"
