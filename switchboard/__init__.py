"""Switchboard - session manager for the Antigravity editor."""

from .__version__ import __version__

__all__ = ["__version__"]
