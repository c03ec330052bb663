"""Redeem Download Service: single-use codes for one-time asset downloads."""

__version__ = "1.0.0"
