"""Versioned game save store."""

__version__ = "1.0.0"
