"""Cog: on-demand and scheduled script execution runtime."""

__version__ = "0.3.0"
