"""Core utilities shared by the SDK and the bot layer.

This package is framework-agnostic. It must NEVER import from ``bot/`` or ``sdk/``.
"""

from core.logger import TelewireLogger

__all__ = [
    "TelewireLogger",
]
