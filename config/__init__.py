"""Configuration module."""

from config.settings import settings, Settings, get_settings, reload_settings

__all__ = [
    "settings",
    "Settings",
    "get_settings",
    "reload_settings",
]
