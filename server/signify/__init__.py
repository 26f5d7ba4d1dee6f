"""Signify: keystroke-verified writing."""

__version__ = "0.1.0"
