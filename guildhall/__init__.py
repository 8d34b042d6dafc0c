"""Guildhall: guild management backend for a game account site."""

__version__ = "1.0.0"
