"""Core module - settings, tokens, sessions and auth providers"""

from .settings import Settings, settings

__all__ = ["settings", "Settings"]
