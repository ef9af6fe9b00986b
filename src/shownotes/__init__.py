"""Inline documentation notes for method calls, powered by hover information."""

__version__ = "0.1.0"
