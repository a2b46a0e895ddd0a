"""
Configuration Module
"""

from .settings import SearchSettings, SearchConfigurationError, get_settings, reset_settings

__all__ = [
    "SearchSettings",
    "SearchConfigurationError",
    "get_settings",
    "reset_settings",
]
