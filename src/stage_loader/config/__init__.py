"""Configuration management for stage-loader.

Usage:
    >>> from stage_loader.config import get_settings
    >>> settings = get_settings()
    >>> settings.get_warehouse_connection_string()
"""

from stage_loader.config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
