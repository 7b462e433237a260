"""Utility modules for the window engine."""

from .columns import Window, pack_column, unpack_column

__all__ = [
    "Window",
    "pack_column",
    "unpack_column",
]
