"""Operator console for tomography reconstruction runs."""

__version__ = "0.1.0"
