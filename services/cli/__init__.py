"""
livechart CLI

Command-line interface for composing charts from candle files, managing
saved annotations and running live streaming sessions.
"""

from .cli import app

__all__ = ["app"]
